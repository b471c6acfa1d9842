"""
===============================================================================
AHRS PROJECT - Adaptive External-Acceleration Estimator
===============================================================================

An accelerometer at rest measures only the reaction to gravity. Any
non-gravitational acceleration of the body (vibration, manoeuvres) shows up
as innovation energy that the nominal model H*P*H^T + Ra cannot explain.
This module decides, every correction cycle, whether that is happening and
how much extra measurement covariance (Qstar) to add along which axes.

Algorithm (Suh, IEEE Trans. Instrum. Meas. 59(12), 2010)
--------------------------------------------------------
1. The instantaneous innovation outer product R = r r^T is pushed into a
   window of the last M1 samples.
2. Uk = (R + sum(window)) / M1 is the observed innovation covariance.
3. Uk is symmetric PSD, so its SVD  Uk = U diag(lambda) U^T  gives the
   principal axes u_i and energies lambda_i (descending).
4. mu_i = u_i^T (H P H^T + Ra) u_i is the energy the model expects along
   the same axis.
5. If max(lambda - mu) > gamma, external acceleration is present:
       Qstar = sum_i max(lambda_i - mu_i, 0) u_i u_i^T
   and the quiet counter restarts. Otherwise the counter advances; the
   previous Qstar is held until M2 quiet cycles have passed, then released
   to zero.
===============================================================================
"""

import logging

import numpy as np
from scipy import linalg

from core.constants import NUMAXIS
from navigation.ikf_config import AdaptiveConfig
from navigation.innovation_history import InnovationHistory

logger = logging.getLogger(__name__)


class ExternalAccelerationEstimator:
    """
    Windowed innovation statistics and the SVD detection test.

    Attributes
    ----------
    config : AdaptiveConfig
        Window length, quiet threshold, gamma and quiet-counter start.
    history : InnovationHistory
        Last M1 instantaneous innovation outer products.
    r2count : int
        Consecutive cycles without detection.
    """

    def __init__(self, config: AdaptiveConfig = None) -> None:
        self.config = config if config is not None else AdaptiveConfig()
        self.history = InnovationHistory(self.config.window_size, NUMAXIS)
        self.reset()

    def reset(self) -> None:
        """Clear the window and counters; Qstar back to zero."""
        self.history.clear()
        self.r2count = self.config.quiet_start
        self._qstar = np.zeros((NUMAXIS, NUMAXIS))
        self._uk = np.zeros((NUMAXIS, NUMAXIS))
        self._lambda = np.zeros(NUMAXIS)
        self._mu = np.zeros(NUMAXIS)
        self._detected = False

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    @property
    def r1count(self) -> int:
        """Number of innovation samples seen (monotonic)."""
        return self.history.count

    @property
    def qstar(self) -> np.ndarray:
        """Current external-acceleration covariance (3x3 copy)."""
        return self._qstar.copy()

    @property
    def uk(self) -> np.ndarray:
        """Windowed innovation covariance from the last step."""
        return self._uk.copy()

    @property
    def expected_energy(self) -> np.ndarray:
        """mu: model-predicted innovation energy along each singular axis."""
        return self._mu.copy()

    @property
    def detected(self) -> bool:
        """Whether the last step flagged external acceleration."""
        return self._detected

    # -------------------------------------------------------------------------
    # Update
    # -------------------------------------------------------------------------

    def step(self, innovation_cov: np.ndarray,
             expected_cov: np.ndarray) -> np.ndarray:
        """
        Run one detection cycle.

        Parameters
        ----------
        innovation_cov : np.ndarray
            Instantaneous R = (z - Hx)(z - Hx)^T, 3x3.
        expected_cov : np.ndarray
            Model innovation covariance H P H^T + Ra, 3x3.

        Returns
        -------
        np.ndarray
            Qstar to add to the measurement noise this cycle (copy).
        """
        cfg = self.config

        self.history.push(innovation_cov)
        self._uk = (innovation_cov + self.history.total) / cfg.window_size

        u, s, _ = linalg.svd(self._uk)
        self._lambda = s
        self._mu = np.einsum('ji,jk,ki->i', u, expected_cov, u)

        excess = self._lambda - self._mu
        was_detected = self._detected

        if excess.max() > cfg.gamma:
            self.r2count = 0
            weights = np.maximum(excess, 0.0)
            self._qstar = (u * weights) @ u.T
            self._detected = True
            if not was_detected:
                logger.debug(
                    "External acceleration detected (max excess %.4f > %.4f)",
                    excess.max(), cfg.gamma
                )
        else:
            self.r2count += 1
            self._detected = False
            if self.r2count >= cfg.quiet_threshold and self._qstar.any():
                logger.debug(
                    "External acceleration released after %d quiet cycles",
                    self.r2count
                )
                self._qstar = np.zeros((NUMAXIS, NUMAXIS))

        return self._qstar.copy()
