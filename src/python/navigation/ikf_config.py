"""
===============================================================================
AHRS PROJECT - Indirect Kalman Filter Configuration
===============================================================================
Dataclasses holding the tunable parameters of the attitude filter, and the
YAML loader that builds them from the project configuration file.

Noise and covariance entries may be given in the YAML file as
    - a scalar          -> scalar * I
    - a list of n values -> diag(values)
    - an n x n nested list -> the full matrix
===============================================================================
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np
import yaml

from core.constants import (
    DEFAULT_DIP_ANGLE, DEFAULT_GAMMA, DEFAULT_QUIET_START,
    DEFAULT_QUIET_THRESHOLD, DEFAULT_WINDOW_SIZE, DEG2RAD, NUMAXIS,
    STANDARD_GRAVITY, STATE_SIZE,
)

logger = logging.getLogger(__name__)


def as_matrix(value: Any, size: int, name: str = "matrix") -> np.ndarray:
    """
    Interpret a scalar, diagonal list or full nested list as a square matrix.

    Raises
    ------
    ValueError
        If the value cannot be read as a ``size`` x ``size`` matrix.
    """
    arr = np.asarray(value, dtype=np.float64)

    if arr.ndim == 0:
        return float(arr) * np.eye(size)
    if arr.ndim == 1 and arr.shape[0] == size:
        return np.diag(arr)
    if arr.shape == (size, size):
        return arr.copy()

    raise ValueError(
        f"{name} must be a scalar, {size} diagonal values or a "
        f"{size}x{size} matrix, got shape {arr.shape}"
    )


@dataclass(frozen=True)
class AdaptiveConfig:
    """
    Parameters of the external-acceleration estimator.

    Attributes:
        window_size: Innovation history length M1.
        quiet_threshold: Consecutive no-detection cycles M2 after which the
                         external-acceleration covariance is released.
        gamma: Detection threshold on max(lambda - mu).
        quiet_start: Initial value of the quiet counter.
    """
    window_size: int = DEFAULT_WINDOW_SIZE
    quiet_threshold: int = DEFAULT_QUIET_THRESHOLD
    gamma: float = DEFAULT_GAMMA
    quiet_start: int = DEFAULT_QUIET_START

    def __post_init__(self):
        if self.window_size <= 0:
            raise ValueError(f"window_size must be positive, got {self.window_size}")
        if self.quiet_threshold < 0:
            raise ValueError(
                f"quiet_threshold must be non-negative, got {self.quiet_threshold}"
            )

    @classmethod
    def from_dict(cls, cfg: Optional[Dict[str, Any]]) -> 'AdaptiveConfig':
        cfg = cfg or {}
        return cls(
            window_size=int(cfg.get("window_size", DEFAULT_WINDOW_SIZE)),
            quiet_threshold=int(cfg.get("quiet_threshold", DEFAULT_QUIET_THRESHOLD)),
            gamma=float(cfg.get("gamma", DEFAULT_GAMMA)),
            quiet_start=int(cfg.get("quiet_start", DEFAULT_QUIET_START)),
        )


@dataclass
class FilterConfig:
    """
    Everything ``IndirectKalmanFilter.initialize`` needs.

    Attributes:
        P0: Initial error covariance (9x9).
        Ra: Accelerometer measurement noise (3x3).
        Rg: Gyroscope measurement noise (3x3).
        Rm: Magnetometer measurement noise (3x3).
        Qbg: Gyro bias drift noise (3x3).
        Qba: Accelerometer bias drift noise (3x3).
        gravity: Local gravity magnitude [m/s^2].
        dip_angle: Magnetic dip angle [rad].
        adaptive: External-acceleration estimator parameters.
    """
    P0: np.ndarray = field(default_factory=lambda: 0.01 * np.eye(STATE_SIZE))
    Ra: np.ndarray = field(default_factory=lambda: 0.01 * np.eye(NUMAXIS))
    Rg: np.ndarray = field(default_factory=lambda: 0.01 * np.eye(NUMAXIS))
    Rm: np.ndarray = field(default_factory=lambda: 0.01 * np.eye(NUMAXIS))
    Qbg: np.ndarray = field(default_factory=lambda: 1e-8 * np.eye(NUMAXIS))
    Qba: np.ndarray = field(default_factory=lambda: 1e-8 * np.eye(NUMAXIS))
    gravity: float = STANDARD_GRAVITY
    dip_angle: float = DEFAULT_DIP_ANGLE
    adaptive: AdaptiveConfig = field(default_factory=AdaptiveConfig)

    @classmethod
    def from_dict(cls, cfg: Optional[Dict[str, Any]]) -> 'FilterConfig':
        """
        Build a filter configuration from the ``filter`` section of the YAML
        file. Missing keys fall back to the dataclass defaults.

        Recognized keys: initial_covariance, accel_noise, gyro_noise,
        mag_noise, gyro_bias_noise, accel_bias_noise, gravity,
        dip_angle_deg (or dip_angle in radians), adaptive.
        """
        cfg = cfg or {}
        defaults = cls()

        def matrix(key, default, size=NUMAXIS):
            if key not in cfg:
                return default
            return as_matrix(cfg[key], size, name=key)

        if "dip_angle_deg" in cfg:
            dip_angle = float(cfg["dip_angle_deg"]) * DEG2RAD
        else:
            dip_angle = float(cfg.get("dip_angle", defaults.dip_angle))

        return cls(
            P0=matrix("initial_covariance", defaults.P0, STATE_SIZE),
            Ra=matrix("accel_noise", defaults.Ra),
            Rg=matrix("gyro_noise", defaults.Rg),
            Rm=matrix("mag_noise", defaults.Rm),
            Qbg=matrix("gyro_bias_noise", defaults.Qbg),
            Qba=matrix("accel_bias_noise", defaults.Qba),
            gravity=float(cfg.get("gravity", defaults.gravity)),
            dip_angle=dip_angle,
            adaptive=AdaptiveConfig.from_dict(cfg.get("adaptive")),
        )


def load_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load the project YAML configuration.

    Args:
        config_path: Path to the YAML file.

    Returns:
        Dictionary of configuration sections (``filter``, ``sensors``,
        ``scenario``); empty sections are returned as empty dicts.
    """
    logger.info("Loading configuration from: %s", config_path)
    with open(config_path, 'r') as f:
        config = yaml.safe_load(f) or {}

    for section in ("filter", "sensors", "scenario"):
        if config.get(section) is None:
            config[section] = {}
    return config
