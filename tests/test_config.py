from __future__ import annotations

import logging
from pathlib import Path

import pytest
import yaml

from jittertune.config import DEFAULT_CONFIG, documented_default_config, load_config


def _write_config(path: Path, payload: dict) -> None:
    path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")


def test_defaults_without_config_file() -> None:
    cfg = load_config()
    assert cfg.config_path is None
    assert cfg.calibration.least_precision_px == 3.0
    assert cfg.calibration.worst_lag_s == pytest.approx(0.08)
    assert cfg.calibration.sample_rate_dwell_s == 2.0
    assert cfg.calibration.noise_settle_s == 1.0
    assert cfg.calibration.noise_convergence_threshold == 0.01
    assert cfg.calibration.amplitude_dwell_s is None
    assert cfg.tuning.handle_ringing is False
    assert cfg.tuning.max_settle_s == 30.0
    assert cfg.tuning.grid_path is None
    assert cfg.logging.level == "INFO"


def test_missing_file_falls_back_to_defaults(tmp_path: Path) -> None:
    cfg = load_config(tmp_path / "absent.yaml")
    assert cfg.calibration.least_precision_px == 3.0


def test_partial_override_keeps_other_defaults(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    _write_config(
        config_path,
        {
            "calibration": {"least_precision_px": 5, "amplitude_dwell_s": 3},
            "tuning": {"handle_ringing": True},
            "logging": {"level": "debug"},
        },
    )
    cfg = load_config(config_path)
    assert cfg.config_path == config_path.resolve()
    assert cfg.calibration.least_precision_px == 5.0
    assert cfg.calibration.amplitude_dwell_s == 3.0
    assert cfg.calibration.worst_lag_s == pytest.approx(0.08)
    assert cfg.tuning.handle_ringing is True
    assert cfg.logging.level == "DEBUG"


def test_grid_path_resolves_relative_to_config_dir(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    _write_config(config_path, {"tuning": {"grid_path": "tables/fs60.npz"}})
    cfg = load_config(config_path)
    assert cfg.tuning.grid_path == tmp_path.resolve() / "tables" / "fs60.npz"


def test_absolute_grid_path_is_kept(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    grid = tmp_path / "elsewhere" / "grid.npz"
    _write_config(config_path, {"tuning": {"grid_path": str(grid)}})
    assert load_config(config_path).tuning.grid_path == grid


@pytest.mark.parametrize("field", ["least_precision_px", "worst_lag_s"])
def test_non_positive_budget_is_rejected(tmp_path: Path, field: str) -> None:
    config_path = tmp_path / "config.yaml"
    _write_config(config_path, {"calibration": {field: 0}})
    with pytest.raises(ValueError, match=f"calibration.{field} must be positive"):
        load_config(config_path)


def test_out_of_range_values_are_clamped(tmp_path: Path, caplog) -> None:
    config_path = tmp_path / "config.yaml"
    _write_config(
        config_path,
        {
            "calibration": {
                "sample_rate_dwell_s": -1,
                "noise_convergence_threshold": 2.0,
                "amplitude_dwell_s": 0,
            },
            "tuning": {"max_settle_s": -5},
        },
    )
    with caplog.at_level(logging.WARNING, logger="jittertune.config"):
        cfg = load_config(config_path)
    assert cfg.calibration.sample_rate_dwell_s == 0.0
    assert cfg.calibration.noise_convergence_threshold == 0.01
    assert cfg.calibration.amplitude_dwell_s is None
    assert cfg.tuning.max_settle_s == 30.0
    assert len(caplog.records) == 4


def test_invalid_log_level(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    _write_config(config_path, {"logging": {"level": "LOUD"}})
    with pytest.raises(ValueError, match="logging.level"):
        load_config(config_path)


def test_non_numeric_amplitude_dwell(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    _write_config(config_path, {"calibration": {"amplitude_dwell_s": "soon"}})
    with pytest.raises(ValueError, match="amplitude_dwell_s"):
        load_config(config_path)


def test_top_level_must_be_mapping(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValueError, match="YAML object"):
        load_config(config_path)


def test_documented_defaults_are_a_copy() -> None:
    defaults = documented_default_config()
    defaults["calibration"]["least_precision_px"] = 99
    assert DEFAULT_CONFIG["calibration"]["least_precision_px"] == 3.0
