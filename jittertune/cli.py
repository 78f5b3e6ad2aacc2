from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from .calibration import CalibrationError, CalibrationSession, CalibrationState
from .config import AppConfig, load_config
from .constants import PRECISION_SIGMAS
from .filters import AdaptiveLowPassFilter, PrecisionGrid, PrecisionTable, default_table
from .simulation import PROFILE_LIBRARY, SimulatedClock, SyntheticPointer, run_calibration

LOGGER = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="jittertune",
        description="Estimate pointer noise and tune an adaptive low-pass filter",
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to config YAML")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override logging.level from the config (DEBUG, INFO, ...)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    tune = sub.add_parser("tune", help="Tune the filter for known device characteristics")
    tune.add_argument("--noise-stddev", type=float, required=True, help="Jitter stddev (px)")
    tune.add_argument(
        "--amplitude", type=float, required=True, help="Peak movement per sample (px)"
    )
    tune.add_argument("--sample-hz", type=float, required=True, help="Device sample rate (Hz)")
    tune.add_argument("--least-precision", type=float, default=None, help="Precision budget (px)")
    tune.add_argument("--worst-lag-s", type=float, default=None, help="Lag budget (seconds)")
    tune.add_argument(
        "--handle-ringing",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Override tuning.handle_ringing from the config",
    )
    tune.add_argument("--grid", type=Path, default=None, help="Precision table (.npz)")

    simulate = sub.add_parser("simulate", help="Run a full calibration on a synthetic device")
    simulate.add_argument(
        "--profile",
        choices=sorted(PROFILE_LIBRARY),
        default="head_tracker",
        help="Synthetic device profile",
    )
    simulate.add_argument("--seed", type=int, default=0)
    simulate.add_argument("--grid", type=Path, default=None, help="Precision table (.npz)")

    export = sub.add_parser("export-grid", help="Write the embedded precision table to .npz")
    export.add_argument("output", type=Path)
    return parser.parse_args(argv)


def build_filter(config: AppConfig, grid_path: Path | None = None) -> AdaptiveLowPassFilter:
    path = grid_path or config.tuning.grid_path
    grid = PrecisionGrid.from_file(path) if path is not None else None
    return AdaptiveLowPassFilter(grid=grid, max_settle_s=config.tuning.max_settle_s)


def _tune_targets(args: argparse.Namespace, config: AppConfig) -> tuple[float, float, bool]:
    """Command-line overrides merged over the config: precision, lag, ringing."""
    cal = config.calibration
    least_precision = (
        cal.least_precision_px if args.least_precision is None else args.least_precision
    )
    worst_lag_s = cal.worst_lag_s if args.worst_lag_s is None else args.worst_lag_s
    for flag, val in (("--least-precision", least_precision), ("--worst-lag-s", worst_lag_s)):
        if val <= 0:
            raise ValueError(f"{flag} must be positive, got {val!r}")
    handle_ringing = (
        config.tuning.handle_ringing if args.handle_ringing is None else args.handle_ringing
    )
    return least_precision, worst_lag_s, handle_ringing


def _cmd_tune(args: argparse.Namespace, config: AppConfig) -> int:
    least_precision, worst_lag_s, handle_ringing = _tune_targets(args, config)
    lowpass = build_filter(config, args.grid)
    result = lowpass.tune(
        least_precision / PRECISION_SIGMAS,
        worst_lag_s,
        args.noise_stddev**2,
        args.amplitude,
        args.sample_hz,
        handle_ringing,
    )
    print(json.dumps(result.to_dict(), indent=2))
    return 0


def _cmd_simulate(args: argparse.Namespace, config: AppConfig) -> int:
    profile = PROFILE_LIBRARY[args.profile]
    clock = SimulatedClock()
    session = CalibrationSession.from_config(config, build_filter(config, args.grid), clock)
    pointer = SyntheticPointer(profile, seed=args.seed)
    state = run_calibration(session, pointer, clock)
    if state is not CalibrationState.tuned or session.result is None:
        print(f"Error: calibration stopped in state {state.label!r}", file=sys.stderr)
        return 1
    print(json.dumps({"profile": profile.name, **session.result.to_dict()}, indent=2))
    return 0


def _cmd_export_grid(args: argparse.Namespace) -> int:
    table: PrecisionTable = default_table()
    table.save(args.output)
    print(f"wrote precision table {table.version}: {args.output}")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        config = load_config(args.config)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    level = (args.log_level or config.logging.level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    LOGGER.debug("Configuration loaded from %s", config.config_path or "built-in defaults")

    try:
        if args.command == "tune":
            return _cmd_tune(args, config)
        if args.command == "simulate":
            return _cmd_simulate(args, config)
        return _cmd_export_grid(args)
    except (ValueError, CalibrationError, FileNotFoundError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
