"""
===============================================================================
AHRS PROJECT - Simulated Inertial and Magnetic Sensors
===============================================================================
Sensor models that turn body-frame truth into noisy, biased measurements for
exercising the attitude filter without hardware. Each sensor encapsulates:
  - Truth-to-measurement transformation with configurable noise
  - Bias random walk between samples
  - Bias telemetry

Sensors implemented:
  IMU          -- three-axis gyroscope + accelerometer
  Magnetometer -- three-axis magnetic field sensor

All noise is drawn from numpy.random.default_rng. Constructors accept
configuration dictionaries so parameters can be loaded from the YAML file.
===============================================================================
"""

import numpy as np
from numpy.linalg import norm

from core.constants import DEG2RAD


# =============================================================================
# IMU (Inertial Measurement Unit)
# =============================================================================

class IMU:
    """
    Gyroscope + accelerometer pair sharing one sample period.

    Gyroscope error model:
        omega_meas = omega_true + bias_g + n_g,   n_g ~ N(0, gyro_noise^2)
        bias_g(k+1) = bias_g(k) + N(0, gyro_bias_walk^2 * dt)

    Accelerometer error model:
        accel_meas = accel_true + bias_a + n_a,   n_a ~ N(0, accel_noise^2)
        bias_a(k+1) = bias_a(k) + N(0, accel_bias_walk^2 * dt)

    Parameters (passed as config dict):
        gyro_noise       : float -- deg/s (1-sigma white noise per sample)
        gyro_bias        : float -- deg/s (1-sigma initial bias per axis)
        gyro_bias_walk   : float -- deg/s/sqrt(s) bias random walk
        accel_noise      : float -- m/s^2 (1-sigma white noise per sample)
        accel_bias       : float -- m/s^2 (1-sigma initial bias per axis)
        accel_bias_walk  : float -- m/s^2/sqrt(s) bias random walk
        dt               : float -- sample period (s)
        seed             : int   -- (optional) RNG seed
    """

    def __init__(self, config: dict = None):
        config = config or {}
        self.rng = np.random.default_rng(config.get("seed", None))

        # ----- Gyroscope (deg -> rad) -----
        self.gyro_noise = config.get("gyro_noise", 0.05) * DEG2RAD
        self.gyro_bias_sigma = config.get("gyro_bias", 0.0) * DEG2RAD
        self.gyro_bias_walk = config.get("gyro_bias_walk", 0.0) * DEG2RAD

        # ----- Accelerometer -----
        self.accel_noise = config.get("accel_noise", 0.02)
        self.accel_bias_sigma = config.get("accel_bias", 0.0)
        self.accel_bias_walk = config.get("accel_bias_walk", 0.0)

        self.dt = config.get("dt", 0.01)

        self._init_biases()

    # --------------------------------------------------------------------- #
    def _init_biases(self):
        """Draw initial bias values."""
        self.gyro_bias = self.rng.normal(0.0, self.gyro_bias_sigma, size=3)
        self.accel_bias = self.rng.normal(0.0, self.accel_bias_sigma, size=3)

    # --------------------------------------------------------------------- #
    def measure(self, true_omega: np.ndarray, true_accel: np.ndarray):
        """
        Produce one noisy gyro / accelerometer sample.

        Parameters
        ----------
        true_omega : (3,) ndarray -- true angular velocity, body frame (rad/s)
        true_accel : (3,) ndarray -- true specific force, body frame (m/s^2)

        Returns
        -------
        omega_meas : (3,) ndarray
        accel_meas : (3,) ndarray
        """
        sqrt_dt = np.sqrt(self.dt)

        self.gyro_bias += self.rng.normal(0.0, self.gyro_bias_walk * sqrt_dt, size=3)
        omega_meas = (np.asarray(true_omega, dtype=float) + self.gyro_bias
                      + self.rng.normal(0.0, self.gyro_noise, size=3))

        self.accel_bias += self.rng.normal(0.0, self.accel_bias_walk * sqrt_dt, size=3)
        accel_meas = (np.asarray(true_accel, dtype=float) + self.accel_bias
                      + self.rng.normal(0.0, self.accel_noise, size=3))

        return omega_meas, accel_meas

    # --------------------------------------------------------------------- #
    def get_health_status(self) -> dict:
        return {
            "gyro_bias_norm": float(norm(self.gyro_bias)),
            "accel_bias_norm": float(norm(self.accel_bias)),
        }


# =============================================================================
# Magnetometer
# =============================================================================

class Magnetometer:
    """
    Three-axis magnetometer with white noise.

    Measurements are in the same (normalized) units as the filter's magnetic
    reference vector: the navigation field is [cos(dip), 0, -sin(dip)].

    Parameters (config dict):
        noise : float -- 1-sigma white noise per axis
        seed  : int   -- (optional) RNG seed
    """

    def __init__(self, config: dict = None):
        config = config or {}
        self.rng = np.random.default_rng(config.get("seed", None))
        self.noise = config.get("noise", 0.01)

    def measure(self, field_body: np.ndarray):
        """Noisy field sample in the units of ``field_body``."""
        return (np.asarray(field_body, dtype=float)
                + self.rng.normal(0.0, self.noise, size=3))
