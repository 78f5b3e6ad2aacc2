from __future__ import annotations

import logging
from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .constants import (
    DEFAULT_LEAST_PRECISION_PX,
    DEFAULT_MAX_SETTLE_S,
    DEFAULT_WORST_LAG_S,
    NOISE_CONVERGENCE_THRESHOLD,
    NOISE_SETTLE_S,
    SAMPLE_RATE_DWELL_S,
)

LOGGER = logging.getLogger(__name__)

VALID_LOG_LEVELS: frozenset[str] = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

DEFAULT_CONFIG: dict[str, Any] = {
    "calibration": {
        "least_precision_px": DEFAULT_LEAST_PRECISION_PX,
        "worst_lag_s": DEFAULT_WORST_LAG_S,
        "sample_rate_dwell_s": SAMPLE_RATE_DWELL_S,
        "noise_settle_s": NOISE_SETTLE_S,
        "noise_convergence_threshold": NOISE_CONVERGENCE_THRESHOLD,
        "amplitude_dwell_s": None,
    },
    "tuning": {
        "handle_ringing": False,
        "max_settle_s": DEFAULT_MAX_SETTLE_S,
        "grid_path": None,
    },
    "logging": {
        "level": "INFO",
    },
}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _resolve_config_path(path_text: str, config_path: Path) -> Path:
    path = Path(path_text)
    if path.is_absolute():
        return path
    return config_path.resolve().parent / path


@dataclass(slots=True)
class CalibrationConfig:
    least_precision_px: float
    worst_lag_s: float
    sample_rate_dwell_s: float
    noise_settle_s: float
    noise_convergence_threshold: float
    amplitude_dwell_s: float | None

    def __post_init__(self) -> None:
        for name in ("least_precision_px", "worst_lag_s"):
            val = getattr(self, name)
            if not isinstance(val, (int, float)) or val <= 0:
                raise ValueError(f"calibration.{name} must be positive, got {val!r}")
        for name in ("sample_rate_dwell_s", "noise_settle_s"):
            val = getattr(self, name)
            if val < 0:
                LOGGER.warning("calibration.%s=%s is negative; clamped to 0", name, val)
                object.__setattr__(self, name, 0.0)
        if not 0.0 < self.noise_convergence_threshold < 1.0:
            LOGGER.warning(
                "calibration.noise_convergence_threshold=%s outside (0, 1); using %s",
                self.noise_convergence_threshold,
                NOISE_CONVERGENCE_THRESHOLD,
            )
            object.__setattr__(self, "noise_convergence_threshold", NOISE_CONVERGENCE_THRESHOLD)
        if self.amplitude_dwell_s is not None and self.amplitude_dwell_s <= 0:
            LOGGER.warning(
                "calibration.amplitude_dwell_s=%s is not positive; amplitude phase is "
                "left via advance() only",
                self.amplitude_dwell_s,
            )
            object.__setattr__(self, "amplitude_dwell_s", None)


@dataclass(slots=True)
class TuningConfig:
    handle_ringing: bool
    max_settle_s: float
    grid_path: Path | None

    def __post_init__(self) -> None:
        if not isinstance(self.max_settle_s, (int, float)) or self.max_settle_s <= 0:
            LOGGER.warning(
                "tuning.max_settle_s=%s is not positive; using %s",
                self.max_settle_s,
                DEFAULT_MAX_SETTLE_S,
            )
            object.__setattr__(self, "max_settle_s", DEFAULT_MAX_SETTLE_S)


@dataclass(slots=True)
class LoggingConfig:
    level: str

    def __post_init__(self) -> None:
        level = str(self.level).upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"logging.level must be one of {sorted(VALID_LOG_LEVELS)}, got {self.level!r}"
            )
        object.__setattr__(self, "level", level)


@dataclass(slots=True)
class AppConfig:
    calibration: CalibrationConfig
    tuning: TuningConfig
    logging: LoggingConfig
    config_path: Path | None = None


def documented_default_config() -> dict[str, Any]:
    """Return a deep copy of the built-in defaults, in YAML file shape."""
    return deepcopy(DEFAULT_CONFIG)


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path} must contain a YAML object at the top level.")
        return data


def _optional_float(value: Any, name: str) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number or null, got {value!r}") from None


def load_config(config_path: Path | None = None) -> AppConfig:
    """Merge an optional YAML file over :data:`DEFAULT_CONFIG` and validate it."""
    path = config_path.resolve() if config_path is not None else None
    override = _read_config_file(path) if path is not None else {}
    merged = _deep_merge(DEFAULT_CONFIG, override)
    cal = merged["calibration"]
    tuning = merged["tuning"]

    grid_path_raw = tuning.get("grid_path")
    grid_path: Path | None = None
    if isinstance(grid_path_raw, str) and grid_path_raw.strip():
        grid_path = (
            _resolve_config_path(grid_path_raw, path) if path is not None else Path(grid_path_raw)
        )

    try:
        calibration = CalibrationConfig(
            least_precision_px=float(cal["least_precision_px"]),
            worst_lag_s=float(cal["worst_lag_s"]),
            sample_rate_dwell_s=float(cal["sample_rate_dwell_s"]),
            noise_settle_s=float(cal["noise_settle_s"]),
            noise_convergence_threshold=float(cal["noise_convergence_threshold"]),
            amplitude_dwell_s=_optional_float(
                cal.get("amplitude_dwell_s"), "calibration.amplitude_dwell_s"
            ),
        )
        tuning_cfg = TuningConfig(
            handle_ringing=bool(tuning.get("handle_ringing", False)),
            max_settle_s=float(tuning.get("max_settle_s", DEFAULT_MAX_SETTLE_S)),
            grid_path=grid_path,
        )
    except (TypeError, KeyError) as exc:
        raise ValueError(f"invalid configuration: {exc}") from None

    return AppConfig(
        calibration=calibration,
        tuning=tuning_cfg,
        logging=LoggingConfig(level=str(merged["logging"].get("level", "INFO"))),
        config_path=path,
    )
