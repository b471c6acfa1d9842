"""
===============================================================================
AHRS PROJECT - External Acceleration Estimator Test Suite
===============================================================================
Drives the estimator directly with synthetic innovation and expected
covariances so every detection and release cycle is known in advance.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import pytest
from numpy.testing import assert_allclose

from navigation.adaptive import ExternalAccelerationEstimator
from navigation.ikf_config import AdaptiveConfig


EXPECTED = 0.01 * np.eye(3)
QUIET = np.zeros((3, 3))
BURST = np.diag([4.0, 0.0, 0.0])


@pytest.fixture
def estimator():
    return ExternalAccelerationEstimator(
        AdaptiveConfig(window_size=5, quiet_threshold=3, gamma=0.1, quiet_start=100)
    )


class TestQuiet:

    def test_initial_state(self, estimator):
        assert estimator.r1count == 0
        assert estimator.r2count == 100
        assert_allclose(estimator.qstar, np.zeros((3, 3)))

    def test_no_detection_on_zero_innovation(self, estimator):
        qstar = estimator.step(QUIET, EXPECTED)
        assert not estimator.detected
        assert estimator.r2count == 101
        assert estimator.r1count == 1
        assert_allclose(qstar, np.zeros((3, 3)))

    def test_small_innovation_below_gamma(self, estimator):
        for _ in range(10):
            estimator.step(0.05 * np.eye(3), EXPECTED)
        assert not estimator.detected
        assert_allclose(estimator.qstar, np.zeros((3, 3)))


class TestDetection:

    def test_burst_detected_first_cycle(self, estimator):
        """The newest sample counts twice: Uk = (R + window) / M1."""
        qstar = estimator.step(BURST, EXPECTED)
        assert estimator.detected
        assert estimator.r2count == 0
        assert_allclose(estimator.uk, np.diag([1.6, 0.0, 0.0]))
        assert_allclose(qstar, np.diag([1.59, 0.0, 0.0]), atol=1e-12)

    def test_qstar_follows_innovation_axis(self, estimator):
        axis = np.array([1.0, 1.0, 0.0]) / np.sqrt(2.0)
        estimator.step(4.0 * np.outer(axis, axis), EXPECTED)
        qstar = estimator.qstar
        assert_allclose(qstar @ axis, 1.59 * axis, atol=1e-12)
        assert_allclose(qstar @ np.array([0.0, 0.0, 1.0]), np.zeros(3), atol=1e-12)

    def test_qstar_is_symmetric_psd(self, estimator):
        rng = np.random.default_rng(0)
        for _ in range(5):
            r = rng.normal(scale=2.0, size=3)
            estimator.step(np.outer(r, r), EXPECTED)
        qstar = estimator.qstar
        assert_allclose(qstar, qstar.T, atol=1e-12)
        assert np.linalg.eigvalsh(qstar).min() > -1e-12

    def test_expected_energy_along_axes(self, estimator):
        estimator.step(BURST, np.diag([0.5, 0.2, 0.1]))
        # largest singular axis is x
        assert_allclose(estimator.expected_energy[0], 0.5)


class TestRelease:

    def test_hold_then_release(self, estimator):
        estimator.step(BURST, EXPECTED)

        # Burst stays in the window for four more cycles
        for _ in range(4):
            estimator.step(QUIET, EXPECTED)
            assert estimator.detected
        held = estimator.qstar
        assert_allclose(held, np.diag([0.79, 0.0, 0.0]), atol=1e-12)

        # Window clean: Qstar held for M2 - 1 quiet cycles
        for expected_count in (1, 2):
            estimator.step(QUIET, EXPECTED)
            assert not estimator.detected
            assert estimator.r2count == expected_count
            assert_allclose(estimator.qstar, held)

        estimator.step(QUIET, EXPECTED)
        assert estimator.r2count == 3
        assert_allclose(estimator.qstar, np.zeros((3, 3)))

    def test_redetection_resets_quiet_counter(self, estimator):
        estimator.step(BURST, EXPECTED)
        for _ in range(6):
            estimator.step(QUIET, EXPECTED)
        assert estimator.r2count == 2
        estimator.step(BURST, EXPECTED)
        assert estimator.r2count == 0
        assert estimator.detected

    def test_reset(self, estimator):
        estimator.step(BURST, EXPECTED)
        estimator.reset()
        assert estimator.r1count == 0
        assert estimator.r2count == 100
        assert_allclose(estimator.qstar, np.zeros((3, 3)))
