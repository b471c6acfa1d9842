"""
===============================================================================
AHRS PROJECT - Innovation History Test Suite
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import pytest
from numpy.testing import assert_allclose

from navigation.innovation_history import InnovationHistory


def _sample(k):
    return float(k) * np.eye(3)


class TestInnovationHistory:

    def test_empty(self):
        hist = InnovationHistory(5)
        assert len(hist) == 0
        assert not hist.is_full
        assert_allclose(hist.total, np.zeros((3, 3)))
        assert hist.to_array().shape == (0, 3, 3)

    def test_partial_fill_sum(self):
        hist = InnovationHistory(5)
        for k in range(1, 4):
            hist.push(_sample(k))
        assert len(hist) == 3
        assert_allclose(hist.total, 6.0 * np.eye(3))

    def test_wraparound_drops_oldest(self):
        hist = InnovationHistory(3)
        for k in range(1, 6):
            hist.push(_sample(k))
        # window holds 3, 4, 5
        assert hist.is_full
        assert hist.count == 5
        assert len(hist) == 3
        assert_allclose(hist.total, 12.0 * np.eye(3))

    def test_chronological_order(self):
        hist = InnovationHistory(3)
        for k in range(1, 6):
            hist.push(_sample(k))
        stored = hist.to_array()
        assert_allclose(stored[:, 0, 0], [3.0, 4.0, 5.0])

    def test_total_matches_stored(self):
        rng = np.random.default_rng(3)
        hist = InnovationHistory(4)
        for _ in range(11):
            r = rng.normal(size=3)
            hist.push(np.outer(r, r))
        assert_allclose(hist.total, hist.to_array().sum(axis=0), atol=1e-12)

    def test_total_exact_after_large_samples(self):
        """A window refilled with zeros sums to exactly zero."""
        rng = np.random.default_rng(7)
        hist = InnovationHistory(5)
        for _ in range(1000):
            r = 1e7 * rng.normal(size=3)
            hist.push(np.outer(r, r))
        for _ in range(hist.capacity):
            hist.push(np.zeros((3, 3)))
        assert np.array_equal(hist.total, np.zeros((3, 3)))

    def test_clear(self):
        hist = InnovationHistory(2)
        hist.push(_sample(1))
        hist.clear()
        assert hist.count == 0
        assert_allclose(hist.total, np.zeros((3, 3)))

    def test_bad_shape_raises(self):
        hist = InnovationHistory(2)
        with pytest.raises(ValueError):
            hist.push(np.zeros(3))

    def test_bad_capacity_raises(self):
        with pytest.raises(ValueError):
            InnovationHistory(0)
