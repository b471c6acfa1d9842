"""
===============================================================================
AHRS PROJECT - Configuration Test Suite
===============================================================================
"""

import logging
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import pytest
import yaml
from numpy.testing import assert_allclose

from navigation.ikf import IndirectKalmanFilter
from navigation.ikf_config import AdaptiveConfig, FilterConfig, as_matrix, load_config
from simulation.scenario import ScenarioConfig

PROJECT_CONFIG = os.path.join(os.path.dirname(__file__), '..', '..', '..',
                              'config', 'ahrs_config.yaml')


class TestAsMatrix:

    def test_scalar(self):
        assert_allclose(as_matrix(0.5, 3), 0.5 * np.eye(3))

    def test_diagonal(self):
        assert_allclose(as_matrix([1.0, 2.0, 3.0], 3), np.diag([1.0, 2.0, 3.0]))

    def test_full(self):
        m = [[1.0, 0.1, 0.0], [0.1, 2.0, 0.0], [0.0, 0.0, 3.0]]
        assert_allclose(as_matrix(m, 3), np.array(m))

    def test_wrong_size_raises(self):
        with pytest.raises(ValueError):
            as_matrix([1.0, 2.0], 3)


class TestFilterConfig:

    def test_defaults(self):
        cfg = FilterConfig.from_dict(None)
        assert cfg.P0.shape == (9, 9)
        assert cfg.adaptive == AdaptiveConfig()

    def test_from_dict(self):
        cfg = FilterConfig.from_dict({
            "gravity": 9.8,
            "dip_angle_deg": 90.0,
            "accel_noise": 4e-4,
            "initial_covariance": [0.1] * 9,
            "adaptive": {"window_size": 8, "gamma": 0.5},
        })
        assert cfg.gravity == 9.8
        assert_allclose(cfg.dip_angle, np.pi / 2)
        assert_allclose(cfg.Ra, 4e-4 * np.eye(3))
        assert_allclose(cfg.P0, 0.1 * np.eye(9))
        assert cfg.adaptive.window_size == 8
        assert cfg.adaptive.gamma == 0.5
        assert cfg.adaptive.quiet_threshold == 3

    def test_dip_angle_radians(self):
        cfg = FilterConfig.from_dict({"dip_angle": 0.3})
        assert cfg.dip_angle == 0.3

    def test_filter_from_config(self):
        cfg = FilterConfig.from_dict({"gravity": 9.8, "dip_angle_deg": 90.0,
                                      "adaptive": {"quiet_start": 7}})
        ikf = IndirectKalmanFilter.from_config(cfg)
        assert_allclose(ikf.gtilde, [0.0, 0.0, 9.8])
        assert_allclose(ikf.mtilde, [0.0, 0.0, -1.0], atol=1e-15)
        assert ikf.r2count == 7

    def test_from_config_initializes_once(self, caplog):
        cfg = FilterConfig.from_dict({"adaptive": {"window_size": 4}})
        with caplog.at_level(logging.INFO, logger="navigation.ikf"):
            ikf = IndirectKalmanFilter.from_config(cfg)
        records = [r for r in caplog.records if "initialized" in r.getMessage()]
        assert len(records) == 1
        assert "M1=4" in records[0].getMessage()
        assert ikf.adaptive.config.window_size == 4

    def test_constructor_accepts_config(self):
        ikf = IndirectKalmanFilter(FilterConfig(gravity=9.7))
        assert_allclose(ikf.gtilde, [0.0, 0.0, 9.7])
        assert ikf.r2count == 100

    @pytest.mark.parametrize("kwargs", [
        {"window_size": 0},
        {"quiet_threshold": -1},
    ])
    def test_invalid_adaptive_config(self, kwargs):
        with pytest.raises(ValueError):
            AdaptiveConfig(**kwargs)


class TestLoadConfig:

    def test_project_config(self):
        config = load_config(PROJECT_CONFIG)
        for section in ("filter", "sensors", "scenario"):
            assert section in config
        cfg = FilterConfig.from_dict(config["filter"])
        assert cfg.adaptive.window_size == 5
        ScenarioConfig.from_dict(config["scenario"])

    def test_missing_sections_are_empty(self, tmp_path):
        path = tmp_path / "partial.yaml"
        path.write_text(yaml.safe_dump({"filter": {"gravity": 9.7}}))
        config = load_config(path)
        assert config["filter"]["gravity"] == 9.7
        assert config["sensors"] == {}
        assert config["scenario"] == {}

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        config = load_config(path)
        assert config == {"filter": {}, "sensors": {}, "scenario": {}}

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")
