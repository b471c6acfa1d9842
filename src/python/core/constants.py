"""
===============================================================================
AHRS PROJECT - Physical Constants and Filter Dimensions
===============================================================================
Central repository for the constants shared by the attitude filter, the
sensor models and the simulation. SI units throughout (meters, seconds,
radians, m/s^2).

The adaptive-estimation defaults (window length, quiet-count threshold and
detection threshold) are only defaults: every filter instance takes its own
values from navigation.ikf_config.AdaptiveConfig.
===============================================================================
"""

import numpy as np


# =============================================================================
# MATHEMATICAL CONSTANTS
# =============================================================================
PI = np.pi
TWO_PI = 2.0 * np.pi
DEG2RAD = PI / 180.0
RAD2DEG = 180.0 / PI

# =============================================================================
# EARTH ENVIRONMENT
# =============================================================================
STANDARD_GRAVITY = 9.80665             # m/s^2 (CGPM 1901)
DEFAULT_DIP_ANGLE = 0.0                # rad, magnetic inclination

# =============================================================================
# FILTER DIMENSIONS
# =============================================================================
NUMAXIS = 3                            # Sensor axes per measurement
QUATERNION_SIZE = 4                    # Scalar-first [w, x, y, z]
STATE_SIZE = 9                         # [attitude err, gyro bias err, accel bias err]

# Error-state block slices
IDX_ATTITUDE = slice(0, 3)
IDX_GYRO_BIAS = slice(3, 6)
IDX_ACCEL_BIAS = slice(6, 9)

# =============================================================================
# ADAPTIVE EXTERNAL-ACCELERATION ESTIMATION DEFAULTS
# =============================================================================
DEFAULT_WINDOW_SIZE = 5                # M1: innovation history length
DEFAULT_QUIET_THRESHOLD = 3            # M2: quiet cycles before Qstar release
DEFAULT_GAMMA = 0.1                    # Detection threshold on max(lambda - mu)
DEFAULT_QUIET_START = 100              # Initial quiet counter (filter starts steady)
