"""
===============================================================================
AHRS PROJECT - Navigation Subsystem
===============================================================================
Attitude estimation from inertial and magnetic sensors.

Modules:
    ikf                 -- Quaternion-based indirect Kalman filter
    ikf_config          -- Filter configuration dataclasses and YAML loading
    adaptive            -- External-acceleration detection (SVD test)
    innovation_history  -- Ring buffer of innovation covariance samples
    sensors             -- Simulated IMU and magnetometer
===============================================================================
"""
