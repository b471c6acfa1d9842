"""
===============================================================================
AHRS PROJECT - Core Mathematics
===============================================================================
Constants and attitude mathematics shared by every subsystem.

Modules:
    constants   -- Unit conversions, gravity, filter dimensions and defaults
    quaternion  -- Scalar-first Hamilton quaternion value type
    kinematics  -- Skew / omega matrices, DCM, fourth-order integration
===============================================================================
"""
