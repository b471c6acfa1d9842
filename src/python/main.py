#!/usr/bin/env python3
"""
===============================================================================
AHRS SIMULATION - MAIN ENTRY POINT
===============================================================================
Runs the quaternion indirect Kalman filter against a simulated IMU and
magnetometer and reports how well it tracks the true attitude.

USAGE:
    python main.py                          # Scenario from config/ahrs_config.yaml
    python main.py --config my.yaml         # Custom configuration
    python main.py --duration 30            # Override scenario length (s)
    python main.py --no-mag                 # Accelerometer-only (roll/pitch)
    python main.py --plot                   # Also write PNG plots
    python main.py --verbose                # DEBUG logging (detection events)

OUTPUTS:
    output/ahrs_run.csv        - Per-cycle estimates, truth and filter telemetry
    output/plots/*.png         - Attitude, error and adaptive-state plots

DEPENDENCIES:
    numpy, scipy, matplotlib, pandas, pyyaml
===============================================================================
"""

import sys
import argparse
import logging
from pathlib import Path

import numpy as np

# ---------------------------------------------------------------------------
# Path setup: ensure all project modules are importable
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent
sys.path.insert(0, str(PROJECT_ROOT))

from navigation.ikf import IndirectKalmanFilter
from navigation.ikf_config import FilterConfig, load_config
from navigation.sensors import IMU, Magnetometer
from simulation.scenario import ScenarioConfig, run_scenario, summarize

logger = logging.getLogger('AHRS_MAIN')

DEFAULT_CONFIG = PROJECT_ROOT.parent.parent / 'config' / 'ahrs_config.yaml'


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description='Quaternion indirect Kalman filter AHRS simulation'
    )
    parser.add_argument('--config', type=str, default=str(DEFAULT_CONFIG),
                        help='Path to YAML configuration')
    parser.add_argument('--duration', type=float, default=None,
                        help='Override scenario duration (s)')
    parser.add_argument('--no-mag', action='store_true',
                        help='Disable the magnetometer correction stage')
    parser.add_argument('--output', type=str, default='output',
                        help='Output directory')
    parser.add_argument('--plot', action='store_true',
                        help='Save attitude and adaptive-state plots')
    parser.add_argument('--verbose', action='store_true',
                        help='Enable DEBUG logging')
    return parser.parse_args(argv)


def build_sensors(sensor_cfg: dict, dt: float):
    """Create the IMU and magnetometer models from the ``sensors`` section."""
    imu_cfg = dict(sensor_cfg.get('imu') or {})
    imu_cfg.setdefault('dt', dt)
    mag_cfg = dict(sensor_cfg.get('magnetometer') or {})
    return IMU(imu_cfg), Magnetometer(mag_cfg)


def run(args: argparse.Namespace) -> dict:
    """
    Load configuration, run the scenario and write the outputs.

    Returns
    -------
    dict
        Summary statistics from ``simulation.scenario.summarize``.
    """
    config = load_config(args.config)

    filter_cfg = FilterConfig.from_dict(config['filter'])
    scenario_cfg = ScenarioConfig.from_dict(config['scenario'])
    if args.duration is not None:
        scenario_cfg.duration_s = args.duration
    if args.no_mag:
        scenario_cfg.use_magnetometer = False

    ikf = IndirectKalmanFilter.from_config(filter_cfg)
    imu, magnetometer = build_sensors(config['sensors'], scenario_cfg.dt)

    df = run_scenario(ikf, scenario_cfg, imu, magnetometer)

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)
    csv_path = output_dir / 'ahrs_run.csv'
    df.to_csv(csv_path, index=False)
    logger.info("Wrote %d rows to %s", len(df), csv_path)

    if args.plot:
        from simulation.plots import (
            plot_adaptive_state, plot_attitude, plot_attitude_error,
        )
        plot_dir = output_dir / 'plots'
        plot_attitude(df, 'Attitude estimate', str(plot_dir / 'attitude.png'))
        plot_attitude_error(df, 'Attitude error', str(plot_dir / 'attitude_error.png'))
        plot_adaptive_state(df, 'Adaptive state', str(plot_dir / 'adaptive_state.png'))
        logger.info("Plots saved to %s", plot_dir)

    summary = summarize(df, settle_time=1.0)
    logger.info("=" * 60)
    logger.info("RUN SUMMARY")
    logger.info("=" * 60)
    for key, value in summary.items():
        logger.info("  %-18s %10.4f", key, value)
    logger.info("Final attitude: %s", ikf.get_attitude().as_attitude_string())
    logger.info("Gyro bias estimate [deg/s]: %s",
                np.array2string(np.degrees(ikf.gyro_bias), precision=4))
    health = imu.get_health_status()
    logger.info("True IMU bias norms: gyro %.4g rad/s, accel %.4g m/s^2",
                health["gyro_bias_norm"], health["accel_bias_norm"])
    return summary


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        run(args)
    except KeyboardInterrupt:
        logger.warning("Simulation interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Simulation error: {e}", exc_info=True)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
