"""
===============================================================================
AHRS PROJECT - Quaternion Value Type
===============================================================================

Unit quaternion used as the reference attitude of the indirect Kalman filter
and by the sensor simulation.

Convention
----------
Scalar-first Hamilton quaternions:

    q = [q_w, q_x, q_y, q_z] = q_w + q_x*i + q_y*j + q_z*k

The quaternion maps body-frame vectors into the navigation frame:

    v_nav = q * v_body * q_conjugate

so ``to_dcm()`` returns the body-to-navigation rotation matrix and its
transpose (``core.kinematics.quaternion_to_dcm``) the navigation-to-body
direction cosine matrix used by the measurement models. Body angular rates
compose on the right: q_next = q * dq(omega * dt).

Euler Angle Convention
----------------------
3-2-1 (ZYX) sequence: yaw about Z, pitch about the new Y, roll about the new
X. ``to_euler`` returns (roll, pitch, yaw).

References
----------
    [1] Trawny & Roumeliotis, "Indirect Kalman Filter for 3D Attitude
        Estimation", University of Minnesota TR 2005-002.
    [2] Diebel, "Representing Attitude: Euler Angles, Unit Quaternions, and
        Rotation Vectors", Stanford, 2006.

===============================================================================
"""

import numpy as np
from typing import Tuple, Union

class Quaternion:
    """
    Scalar-first quaternion for 3D rotations.

    Instances are treated as values: every operation returns a new
    quaternion. Components live in a 4-element float64 array.

    Examples
    --------
    >>> q_yaw = Quaternion.from_euler(0.0, 0.0, np.pi / 2)
    >>> q_yaw.rotate_vector(np.array([1.0, 0.0, 0.0]))
    array([0., 1., 0.])
    """

    _EPS = 1e-12
    _EQ_ATOL = 1e-9

    def __init__(self, w: float, x: float, y: float, z: float,
                 normalize: bool = True) -> None:
        """
        Parameters
        ----------
        w, x, y, z : float
            Scalar and vector components.
        normalize : bool, optional
            Scale to unit norm with w >= 0 (default). False stores the
            components unchanged, as the error quaternion and copies need.
        """
        self._q = np.array([w, x, y, z], dtype=np.float64)
        if normalize:
            self._unitize()

    def _unitize(self) -> None:
        n = np.linalg.norm(self._q)
        if n < self._EPS:
            raise ValueError(f"Quaternion norm {n:.2e} is too small to normalize")
        sign = -1.0 if self._q[0] < 0.0 else 1.0
        self._q *= sign / n

    # =========================================================================
    # COMPONENTS
    # =========================================================================

    @property
    def w(self) -> float:
        return float(self._q[0])

    @property
    def x(self) -> float:
        return float(self._q[1])

    @property
    def y(self) -> float:
        return float(self._q[2])

    @property
    def z(self) -> float:
        return float(self._q[3])

    @property
    def components(self) -> np.ndarray:
        """[w, x, y, z] as a new array."""
        return self._q.copy()

    @property
    def norm(self) -> float:
        return float(np.linalg.norm(self._q))

    # =========================================================================
    # CONSTRUCTION
    # =========================================================================

    @staticmethod
    def identity() -> 'Quaternion':
        return Quaternion(1.0, 0.0, 0.0, 0.0, normalize=False)

    @staticmethod
    def from_array(components, normalize: bool = True) -> 'Quaternion':
        """
        Quaternion from any 4-element [w, x, y, z] sequence.

        Raises
        ------
        ValueError
            If ``components`` does not hold exactly four values.
        """
        arr = np.asarray(components, dtype=np.float64).ravel()
        if arr.size != 4:
            raise ValueError(f"Expected 4 quaternion components, got {arr.size}")
        return Quaternion(*arr, normalize=normalize)

    @staticmethod
    def from_euler(phi: float, theta: float, psi: float) -> 'Quaternion':
        """
        Quaternion of the 3-2-1 Euler angles (roll ``phi``, pitch ``theta``,
        yaw ``psi``, radians), i.e. q_z(psi) * q_y(theta) * q_x(phi).
        """
        half = 0.5 * np.array([phi, theta, psi])
        (cr, cp, cy), (sr, sp, sy) = np.cos(half), np.sin(half)
        return Quaternion(
            cr * cp * cy + sr * sp * sy,
            sr * cp * cy - cr * sp * sy,
            cr * sp * cy + sr * cp * sy,
            cr * cp * sy - sr * sp * cy,
        )

    @staticmethod
    def from_axis_angle(axis: np.ndarray, angle: float) -> 'Quaternion':
        """
        Rotation by ``angle`` radians about ``axis`` (any non-zero length).

        Raises
        ------
        ValueError
            If the axis is (numerically) zero.
        """
        axis = np.asarray(axis, dtype=np.float64)
        length = np.linalg.norm(axis)
        if length < Quaternion._EPS:
            raise ValueError("Cannot build a rotation about a zero-length axis")
        return Quaternion(np.cos(0.5 * angle),
                          *(np.sin(0.5 * angle) / length * axis))

    @staticmethod
    def from_rotation_vector(rot_vec: np.ndarray) -> 'Quaternion':
        """Exact quaternion of the rotation vector ``angle * axis``."""
        rot_vec = np.asarray(rot_vec, dtype=np.float64)
        angle = np.linalg.norm(rot_vec)
        if angle < Quaternion._EPS:
            return Quaternion.identity()
        return Quaternion.from_axis_angle(rot_vec, angle)

    @staticmethod
    def error_quaternion(delta: np.ndarray) -> 'Quaternion':
        """
        Small-angle error quaternion [1, d0, d1, d2], not normalized.

        ``delta`` is the attitude block of the filter error state, which
        already holds the vector part of the error quaternion (half the
        rotation angle).
        """
        d = np.asarray(delta, dtype=np.float64)
        return Quaternion(1.0, d[0], d[1], d[2], normalize=False)

    # =========================================================================
    # ALGEBRA
    # =========================================================================

    def conjugate(self) -> 'Quaternion':
        """Inverse rotation of a unit quaternion."""
        w, x, y, z = self._q
        return Quaternion(w, -x, -y, -z, normalize=False)

    def normalize(self) -> 'Quaternion':
        return Quaternion(*self._q, normalize=True)

    def _left_matrix(self) -> np.ndarray:
        """L(q) such that q * p == L(q) @ p for any p."""
        w, x, y, z = self._q
        return np.array([
            [w, -x, -y, -z],
            [x,  w, -z,  y],
            [y,  z,  w, -x],
            [z, -y,  x,  w],
        ])

    def multiply(self, other: 'Quaternion') -> 'Quaternion':
        """
        Normalized Hamilton product ``self * other``: rotate by ``other``
        first, then by ``self``.
        """
        return Quaternion.from_array(self._left_matrix() @ other._q)

    def rotate_vector(self, v: np.ndarray) -> np.ndarray:
        """Body-frame vector expressed in the navigation frame."""
        v = np.asarray(v, dtype=np.float64)
        u = self._q[1:]
        t = 2.0 * np.cross(u, v)
        return v + self._q[0] * t + np.cross(u, t)

    # =========================================================================
    # CONVERSIONS
    # =========================================================================

    def to_dcm(self) -> np.ndarray:
        """
        Body-to-navigation rotation matrix

            R = (w^2 - u.u) I + 2 u u^T + 2 w [u x]

        with u the vector part.
        """
        w, u = self._q[0], self._q[1:]
        ux = np.array([
            [0.0, -u[2], u[1]],
            [u[2], 0.0, -u[0]],
            [-u[1], u[0], 0.0],
        ])
        return (w * w - u @ u) * np.eye(3) + 2.0 * np.outer(u, u) + 2.0 * w * ux

    def to_euler(self) -> Tuple[float, float, float]:
        """
        3-2-1 Euler angles (roll, pitch, yaw) in radians. Roll and yaw lie in
        [-pi, pi], pitch in [-pi/2, pi/2].
        """
        w, x, y, z = self._q
        roll = np.arctan2(2.0 * (w * x + y * z), 1.0 - 2.0 * (x * x + y * y))
        # rounding can push |sin(pitch)| past 1 at gimbal lock
        pitch = np.arcsin(np.clip(2.0 * (w * y - z * x), -1.0, 1.0))
        yaw = np.arctan2(2.0 * (w * z + x * y), 1.0 - 2.0 * (y * y + z * z))
        return float(roll), float(pitch), float(yaw)

    def angle_to(self, other: 'Quaternion') -> float:
        """Angle in radians of the rotation between ``self`` and ``other``."""
        cos_half = abs(float(self._q @ other._q)) / (self.norm * other.norm)
        return 2.0 * np.arccos(min(cos_half, 1.0))

    def as_attitude_string(self) -> str:
        """``roll/pitch/yaw = ... deg`` for log lines."""
        angles = np.degrees(self.to_euler())
        return "roll/pitch/yaw = {:+.2f} / {:+.2f} / {:+.2f} deg".format(*angles)

    def is_unit(self, tolerance: float = 1e-8) -> bool:
        return abs(self.norm - 1.0) < tolerance

    def copy(self) -> 'Quaternion':
        return Quaternion(*self._q, normalize=False)

    # =========================================================================
    # OPERATORS
    # =========================================================================

    def __mul__(self, other: Union['Quaternion', float, int]) -> 'Quaternion':
        if isinstance(other, Quaternion):
            return self.multiply(other)
        if isinstance(other, (int, float)):
            return Quaternion(*(self._q * other), normalize=False)
        return NotImplemented

    def __eq__(self, other: object) -> bool:
        """Rotation equality: q and -q compare equal."""
        if not isinstance(other, Quaternion):
            return NotImplemented
        return (np.allclose(self._q, other._q, rtol=0.0, atol=self._EQ_ATOL)
                or np.allclose(self._q, -other._q, rtol=0.0, atol=self._EQ_ATOL))

    __hash__ = None

    def __repr__(self) -> str:
        w, x, y, z = self._q
        return f"Quaternion({w:.9f}, {x:.9f}, {y:.9f}, {z:.9f})"
