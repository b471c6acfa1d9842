"""
===============================================================================
AHRS PROJECT - Attitude Kinematics
===============================================================================
Matrix helpers shared by the prediction and correction steps of the
indirect Kalman filter:

    skew_symmetric       -- 3x3 cross-product matrix [v x]
    omega_matrix         -- 4x4 quaternion-rate matrix, q_dot = 0.5 * Omega(w) * q
    quaternion_to_dcm    -- navigation-to-body direction cosine matrix
    integrate_quaternion -- fourth-order quaternion integration over one step

The fourth-order integrator blends the current and previous rate matrices,
assuming the angular velocity varies linearly over the step (Trawny &
Roumeliotis, TR 2005-002, Eq. 122). For a constant rate it reduces to the
third-order truncation of exp(0.5 * Omega * dt).
===============================================================================
"""

import numpy as np

from core.quaternion import Quaternion


def skew_symmetric(v: np.ndarray) -> np.ndarray:
    """
    Construct the 3x3 skew-symmetric (cross-product) matrix of a 3-vector.

        [v x] = |  0   -vz   vy |
                |  vz   0   -vx |
                | -vy   vx   0  |

    so that [v x] @ u == np.cross(v, u).
    """
    return np.array([
        [0.0,   -v[2],  v[1]],
        [v[2],   0.0,  -v[0]],
        [-v[1],  v[0],  0.0]
    ], dtype=np.float64)


def omega_matrix(w: np.ndarray) -> np.ndarray:
    """
    Build the 4x4 rate matrix for a body angular velocity ``w``.

    With scalar-first quaternions and body rates composed on the right
    (q_dot = 0.5 * q * [0, w]):

        Omega(w) = | 0   -wx  -wy  -wz |
                   | wx   0    wz  -wy |
                   | wy  -wz   0    wx |
                   | wz   wy  -wx   0  |

    Omega(w) @ Omega(w) == -|w|^2 * I.
    """
    return np.array([
        [0.0,  -w[0], -w[1], -w[2]],
        [w[0],  0.0,   w[2], -w[1]],
        [w[1], -w[2],  0.0,   w[0]],
        [w[2],  w[1], -w[0],  0.0]
    ], dtype=np.float64)


def quaternion_to_dcm(q: Quaternion) -> np.ndarray:
    """
    Direction cosine matrix mapping navigation-frame vectors to the body.

    The transpose of ``q.to_dcm()``.

    Parameters
    ----------
    q : Quaternion
        Attitude (body to navigation), assumed unit norm.

    Returns
    -------
    np.ndarray
        3x3 matrix C with v_body = C @ v_nav.
    """
    q0, q1, q2, q3 = q.w, q.x, q.y, q.z

    return np.array([
        [2*q0*q0 + 2*q1*q1 - 1, 2*q1*q2 + 2*q0*q3,     2*q1*q3 - 2*q0*q2],
        [2*q1*q2 - 2*q0*q3,     2*q0*q0 + 2*q2*q2 - 1, 2*q2*q3 + 2*q0*q1],
        [2*q1*q3 + 2*q0*q2,     2*q2*q3 - 2*q0*q1,     2*q0*q0 + 2*q3*q3 - 1]
    ], dtype=np.float64)


def integrate_quaternion(q: Quaternion, omega4: np.ndarray,
                         oldomega4: np.ndarray, w: np.ndarray,
                         dt: float) -> Quaternion:
    """
    Propagate a quaternion over one step with the fourth-order formula.

        q+ = ( I + 3/4 Omega dt - 1/4 Omega_old dt
               - 1/6 |w|^2 dt^2 I - 1/24 Omega Omega_old dt^2
               - 1/48 |w|^2 Omega dt^3 ) q

    Parameters
    ----------
    q : Quaternion
        Attitude at the start of the step.
    omega4 : np.ndarray
        Omega(w) for the current (bias-corrected) rate.
    oldomega4 : np.ndarray
        Omega of the previous step's rate.
    w : np.ndarray
        Current bias-corrected angular velocity (rad/s).
    dt : float
        Step length in seconds.

    Returns
    -------
    Quaternion
        Propagated attitude, renormalized.
    """
    eye4 = np.eye(4)
    w_sq = float(np.dot(w, w))

    transition = (eye4
                  + 0.75 * omega4 * dt
                  - 0.25 * oldomega4 * dt
                  - (1.0 / 6.0) * w_sq * dt ** 2 * eye4
                  - (1.0 / 24.0) * (omega4 @ oldomega4) * dt ** 2
                  - (1.0 / 48.0) * w_sq * omega4 * dt ** 3)

    return Quaternion.from_array(transition @ q.components, normalize=True)
