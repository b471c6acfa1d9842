"""
===============================================================================
AHRS PROJECT - Quaternion-Based Indirect Kalman Filter
===============================================================================

Attitude and heading reference filter fusing a three-axis gyroscope,
accelerometer and magnetometer. The gyroscope drives the prediction step
through quaternion integration; the accelerometer corrects roll and pitch
(with adaptive compensation of external acceleration) and the magnetometer
corrects yaw only.

Error State Vector (9 elements)
-------------------------------
    x[0:3] = attitude error   (vector part of the error quaternion)
    x[3:6] = gyro bias error  (rad/s)
    x[6:9] = accel bias error (m/s^2)

The filter is "indirect": it estimates a small perturbation around the
reference attitude q4 and the bias estimates bghat / bahat. After every
correction the perturbation is folded into the references and reset:

    q4    <- q4 * [1, x0, x1, x2]   (then normalized)
    bghat <- bghat + x[3:6]
    bahat <- bahat + x[6:9]

Because x[0:3] is the vector part of the error quaternion (half the error
angle), the continuous system matrix couples it to the gyro bias with -1/2
and the observation matrices carry a factor of 2:

    A = | -[w x]  -0.5 I  0 |        H1 = | 2[g_b x]  0  I |
        |   0       0     0 |        H2 = | 2[m_b x]  0  0 |
        |   0       0     0 |

References
----------
    [1] Suh, "Orientation Estimation Using a Quaternion-Based Indirect
        Kalman Filter With Adaptive Estimation of External Acceleration",
        IEEE Trans. Instrum. Meas. 59(12), 2010.
    [2] Trawny & Roumeliotis, "Indirect Kalman Filter for 3D Attitude
        Estimation", TR 2005-002, University of Minnesota.

===============================================================================
"""

import logging
from typing import Optional, Tuple

import numpy as np

from core.constants import (
    IDX_ACCEL_BIAS, IDX_ATTITUDE, IDX_GYRO_BIAS, NUMAXIS, QUATERNION_SIZE,
    STATE_SIZE,
)
from core.kinematics import (
    integrate_quaternion, omega_matrix, quaternion_to_dcm, skew_symmetric,
)
from core.quaternion import Quaternion
from navigation.adaptive import ExternalAccelerationEstimator
from navigation.ikf_config import FilterConfig

logger = logging.getLogger(__name__)


class InvalidArgumentError(ValueError):
    """Raised when a required input to a state-seeding call is missing."""


def _symmetrize(m: np.ndarray) -> np.ndarray:
    return 0.5 * (m + m.T)


def _check_shape(name: str, value, shape: Tuple[int, ...]) -> np.ndarray:
    arr = np.array(value, dtype=np.float64)
    if arr.shape != shape:
        raise ValueError(f"{name} must have shape {shape}, got {arr.shape}")
    return arr


class IndirectKalmanFilter:
    """
    Indirect (error-state) Kalman filter for an AHRS.

    A single owning control loop calls ``predict`` with every gyroscope
    sample and ``update`` with the matching accelerometer / magnetometer
    samples. The instance holds all filter state; it is not thread-safe.

    Attributes
    ----------
    x : np.ndarray
        9-element error state.
    P : np.ndarray
        9x9 error covariance (kept symmetric).
    Q : np.ndarray
        9x9 process noise, blocks 0.25*Rg, Qbg, Qba.
    q4 : Quaternion
        Reference attitude (body to navigation).
    bghat, bahat : np.ndarray
        Gyro and accelerometer bias estimates.
    gtilde, mtilde : np.ndarray
        Gravity and magnetic field reference vectors (navigation frame).
    adaptive : ExternalAccelerationEstimator
        Innovation window, counters and Qstar.

    Examples
    --------
    >>> ikf = IndirectKalmanFilter()
    >>> ikf.initialize(0.01 * np.eye(9), 0.01 * np.eye(3), 0.01 * np.eye(3),
    ...                0.01 * np.eye(3), 1e-8 * np.eye(3), 1e-8 * np.eye(3),
    ...                9.81, 0.0)
    >>> ikf.predict(np.zeros(3), 0.01)
    >>> ikf.update(np.array([0.0, 0.0, 9.81]), np.array([1.0, 0.0, 0.0]), True)
    """

    def __init__(self, config: Optional[FilterConfig] = None) -> None:
        """
        Parameters
        ----------
        config : FilterConfig, optional
            Initial noise matrices, references and adaptive constants.
            Defaults to ``FilterConfig()``.
        """
        if config is None:
            config = FilterConfig()
        self.adaptive_config = config.adaptive
        self.initialize(config.P0, config.Ra, config.Rg, config.Rm,
                        config.Qbg, config.Qba, config.gravity, config.dip_angle)

    @classmethod
    def from_config(cls, config: FilterConfig) -> 'IndirectKalmanFilter':
        """Construct and initialize a filter from a ``FilterConfig``."""
        return cls(config)

    # =========================================================================
    # INITIALIZATION
    # =========================================================================

    def initialize(self, P_0: np.ndarray, Ra: np.ndarray, Rg: np.ndarray,
                   Rm: np.ndarray, Qbg: np.ndarray, Qba: np.ndarray,
                   g: float, alpha: float) -> None:
        """
        (Re)initialize every vector and matrix of the filter.

        Parameters
        ----------
        P_0 : np.ndarray
            Initial error covariance (9x9).
        Ra, Rg, Rm : np.ndarray
            Accelerometer, gyroscope and magnetometer noise (3x3 each).
        Qbg, Qba : np.ndarray
            Gyro and accelerometer bias drift noise (3x3 each).
        g : float
            Gravity magnitude [m/s^2].
        alpha : float
            Magnetic dip angle [rad].

        Raises
        ------
        ValueError
            If any matrix has the wrong shape. Positive-definiteness is the
            caller's responsibility and is not checked.
        """
        n3 = (NUMAXIS, NUMAXIS)
        P_0 = _check_shape("P_0", P_0, (STATE_SIZE, STATE_SIZE))
        self.Ra = _check_shape("Ra", Ra, n3)
        self.Rg = _check_shape("Rg", Rg, n3)
        self.Rm = _check_shape("Rm", Rm, n3)
        Qbg = _check_shape("Qbg", Qbg, n3)
        Qba = _check_shape("Qba", Qba, n3)

        # --- Reference vectors (navigation frame) ---
        self.gtilde = np.array([0.0, 0.0, g], dtype=np.float64)
        self.mtilde = np.array([np.cos(alpha), 0.0, -np.sin(alpha)],
                               dtype=np.float64)

        # --- State, covariance, process noise ---
        self.x = np.zeros(STATE_SIZE)
        self.P = P_0

        self.Q = np.zeros((STATE_SIZE, STATE_SIZE))
        self.Q[IDX_ATTITUDE, IDX_ATTITUDE] = 0.25 * self.Rg
        self.Q[IDX_GYRO_BIAS, IDX_GYRO_BIAS] = Qbg
        self.Q[IDX_ACCEL_BIAS, IDX_ACCEL_BIAS] = Qba

        # --- Observation matrices; accel bias observed directly ---
        self.H1 = np.zeros((NUMAXIS, STATE_SIZE))
        self.H2 = np.zeros((NUMAXIS, STATE_SIZE))
        self.H1[:, IDX_ACCEL_BIAS] = np.eye(NUMAXIS)

        # --- Continuous system matrix; attitude block set on each predict ---
        self.A = np.zeros((STATE_SIZE, STATE_SIZE))
        self.A[IDX_ATTITUDE, IDX_GYRO_BIAS] = -0.5 * np.eye(NUMAXIS)

        self.bghat = np.zeros(NUMAXIS)
        self.bahat = np.zeros(NUMAXIS)

        self.oldomega4 = np.zeros((QUATERNION_SIZE, QUATERNION_SIZE))
        self.q4 = Quaternion.identity()

        self.adaptive = ExternalAccelerationEstimator(self.adaptive_config)

        logger.info(
            "Indirect Kalman filter initialized (g=%.4f m/s^2, dip=%.4f rad, "
            "M1=%d, M2=%d, gamma=%.3g)",
            g, alpha, self.adaptive_config.window_size,
            self.adaptive_config.quiet_threshold, self.adaptive_config.gamma
        )

    def set_attitude(self, initq: Optional[Quaternion]) -> None:
        """
        Overwrite the reference attitude.

        Raises
        ------
        InvalidArgumentError
            If ``initq`` is None.
        """
        if initq is None:
            raise InvalidArgumentError("set_attitude requires a quaternion")

        if not isinstance(initq, Quaternion):
            initq = Quaternion.from_array(initq, normalize=False)
        self.q4 = initq.copy()

    def set_omega(self, u: Optional[np.ndarray]) -> None:
        """
        Seed the quaternion integrator with an initial angular velocity.

        Raises
        ------
        InvalidArgumentError
            If ``u`` is None.
        """
        if u is None:
            raise InvalidArgumentError("set_omega requires an angular velocity")

        u = _check_shape("u", np.asarray(u, dtype=np.float64).flatten(), (NUMAXIS,))
        self.oldomega4 = omega_matrix(u)

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    def get_attitude(self) -> Quaternion:
        return self.q4.copy()

    def get_euler(self) -> np.ndarray:
        """Current attitude as [roll, pitch, yaw] (rad), Z-Y-X sequence."""
        return np.array(self.q4.to_euler())

    def get_state(self) -> np.ndarray:
        return self.x.copy()

    def set_state(self, x_0: np.ndarray) -> None:
        self.x = _check_shape("x_0", np.asarray(x_0, dtype=np.float64).flatten(),
                              (STATE_SIZE,))

    def get_covariance(self) -> np.ndarray:
        return self.P.copy()

    @property
    def gyro_bias(self) -> np.ndarray:
        return self.bghat.copy()

    @property
    def accel_bias(self) -> np.ndarray:
        return self.bahat.copy()

    @property
    def qstar(self) -> np.ndarray:
        return self.adaptive.qstar

    @property
    def r1count(self) -> int:
        return self.adaptive.r1count

    @property
    def r2count(self) -> int:
        return self.adaptive.r2count

    # =========================================================================
    # PREDICT STEP
    # =========================================================================

    def predict(self, u: np.ndarray, dt: float) -> None:
        """
        Propagate error state, covariance and attitude by one gyro sample.

        Parameters
        ----------
        u : np.ndarray
            Measured angular velocity [wx, wy, wz] in rad/s (body frame).
        dt : float
            Step length in seconds; must be positive (not checked).
        """
        angvelo = np.asarray(u, dtype=np.float64) - self.bghat

        # Continuous system matrix with the current rate
        self.A[IDX_ATTITUDE, IDX_ATTITUDE] = -skew_symmetric(angvelo)

        # Second-order discretization of the transition matrix
        A = self.A
        dA = np.eye(STATE_SIZE) + A * dt + (A @ A) * dt ** 2 / 2.0

        self.x = dA @ self.x

        Qd = self.Q * dt + 0.5 * dt * dt * (A @ self.Q + self.Q @ A.T)
        Qd = _symmetrize(Qd)
        self.P = _symmetrize(dA @ self.P @ dA.T + Qd)

        omega4 = omega_matrix(angvelo)
        self.q4 = integrate_quaternion(self.q4, omega4, self.oldomega4, angvelo, dt)
        self.oldomega4 = omega4

    # =========================================================================
    # MEASUREMENT UPDATE
    # =========================================================================

    def update(self, acc: np.ndarray, mag: np.ndarray,
               magn_on_off: bool) -> None:
        """
        Correct the filter with one accelerometer / magnetometer sample.

        Stage 1 (always) corrects roll and pitch from the accelerometer,
        inflating its noise by the estimated external acceleration. Stage 2
        (only when ``magn_on_off`` is True) corrects yaw from the
        magnetometer. Bias errors are folded into the estimates at the end.

        Parameters
        ----------
        acc : np.ndarray
            Measured specific force (m/s^2, body frame).
        mag : np.ndarray
            Measured magnetic field (body frame, same units as mtilde).
        magn_on_off : bool
            Enable the magnetometer stage.
        """
        acc = np.asarray(acc, dtype=np.float64)

        self._correct_accelerometer(acc, magn_on_off)

        if magn_on_off:
            self._correct_magnetometer(np.asarray(mag, dtype=np.float64))

        self.bghat = self.bghat + self.x[IDX_GYRO_BIAS]
        self.x[IDX_GYRO_BIAS] = 0.0

        self.bahat = self.bahat + self.x[IDX_ACCEL_BIAS]
        self.x[IDX_ACCEL_BIAS] = 0.0

    def _correct_accelerometer(self, acc: np.ndarray, magn_on_off: bool) -> None:
        Cq = quaternion_to_dcm(self.q4)

        gtilde_body = Cq @ self.gtilde
        self.H1[:, IDX_ATTITUDE] = 2.0 * skew_symmetric(gtilde_body)
        H1 = self.H1

        z1 = acc - self.bahat - gtilde_body
        residual = z1 - H1 @ self.x

        # Adaptive estimate of the external acceleration covariance
        R = np.outer(residual, residual)
        fooR2 = H1 @ self.P @ H1.T + self.Ra
        Qstar = self.adaptive.step(R, fooR2)

        if not magn_on_off:
            # Gravity cannot observe yaw: restrict the gain to the
            # attitude block, projected on the horizontal plane
            P1 = np.zeros((STATE_SIZE, STATE_SIZE))
            P1[IDX_ATTITUDE, IDX_ATTITUDE] = self.P[IDX_ATTITUDE, IDX_ATTITUDE]

            vertical = Cq @ np.array([0.0, 0.0, 1.0])
            mask = np.zeros((STATE_SIZE, STATE_SIZE))
            mask[IDX_ATTITUDE, IDX_ATTITUDE] = (np.eye(NUMAXIS)
                                                - np.outer(vertical, vertical))

            S = H1 @ P1 @ H1.T + self.Ra + Qstar
            K1 = mask @ P1 @ H1.T @ np.linalg.inv(S)
        else:
            S = H1 @ self.P @ H1.T + self.Ra + Qstar
            K1 = self.P @ H1.T @ np.linalg.inv(S)

        self.x = self.x + K1 @ residual

        # Joseph form
        I_KH = np.eye(STATE_SIZE) - K1 @ H1
        self.P = I_KH @ self.P @ I_KH.T + K1 @ (self.Ra + Qstar) @ K1.T
        self.P = _symmetrize(self.P)

        self._fold_attitude_error()

    def _correct_magnetometer(self, mag: np.ndarray) -> None:
        Cq = quaternion_to_dcm(self.q4)

        mtilde_body = Cq @ self.mtilde
        self.H2[:, IDX_ATTITUDE] = 2.0 * skew_symmetric(mtilde_body)
        H2 = self.H2

        z2 = mag - mtilde_body

        P2 = np.zeros((STATE_SIZE, STATE_SIZE))
        P2[IDX_ATTITUDE, IDX_ATTITUDE] = self.P[IDX_ATTITUDE, IDX_ATTITUDE]

        # Only the component along the navigation vertical is corrected
        axis = Cq @ np.array([0.0, 0.0, 1.0])
        mask = np.zeros((STATE_SIZE, STATE_SIZE))
        mask[IDX_ATTITUDE, IDX_ATTITUDE] = np.outer(axis, axis)

        K2 = mask @ P2 @ H2.T @ np.linalg.inv(H2 @ P2 @ H2.T + self.Rm)

        self.x = self.x + K2 @ (z2 - H2 @ self.x)

        P = self.P
        self.P = (P - K2 @ H2 @ P - P @ H2.T @ K2.T
                  + K2 @ (H2 @ P @ H2.T + self.Rm) @ K2.T)
        self.P = _symmetrize(self.P)

        self._fold_attitude_error()

    def _fold_attitude_error(self) -> None:
        """Apply x[0:3] to q4 as a right-multiplied error quaternion, reset it."""
        qe = Quaternion.error_quaternion(self.x[IDX_ATTITUDE])
        self.q4 = self.q4 * qe
        self.x[IDX_ATTITUDE] = 0.0
