"""Tests for AdaptiveLowPassFilter.tune and its parameter sweeps."""

from __future__ import annotations

import math

import pytest

from jittertune.filters import AdaptiveLowPassFilter, PrecisionGrid
from jittertune.filters.adaptive_lowpass import beta_sweep, min_cutoff_sweep


class TestSweeps:
    def test_min_cutoff_sweep(self) -> None:
        cutoffs = min_cutoff_sweep()
        assert len(cutoffs) == 390
        assert cutoffs[0] == 0.1
        assert cutoffs[1] == 0.11
        assert cutoffs[-1] == 3.99

    def test_beta_sweep(self) -> None:
        betas = beta_sweep()
        assert len(betas) == 180
        assert betas[0] == 0.975
        assert betas[35] == pytest.approx(0.1)
        assert betas[71] == pytest.approx(0.01)
        assert betas[143] == pytest.approx(0.0001)
        assert all(b > a for a, b in zip(betas[1:], betas))
        assert betas[-1] > 0.0
        assert all(b == round(b, 6) for b in betas)


class TestTune:
    def test_meets_budgets_on_reference_device(self, default_grid: PrecisionGrid) -> None:
        f = AdaptiveLowPassFilter(grid=default_grid)
        f.filter(1.0, 0.0)
        result = f.tune(3.5 / 3.0, 0.08, 1.0, 50.0, 60.0)

        assert result.relaxations == 0
        assert result.lag_feasible
        assert result.lag_s < 0.08
        assert result.precision <= result.target_precision == pytest.approx(3.5 / 3.0)
        assert 0.1 <= result.min_cutoff_hz < 4.0
        assert 0.0 < result.beta < 1.0
        assert result.candidates > 0

        assert (f.min_cutoff_hz, f.beta) == (result.min_cutoff_hz, result.beta)
        assert not f.initialized

        replay = AdaptiveLowPassFilter(result.min_cutoff_hz, result.beta)
        assert replay.lag_s(result.target_precision, 1.0, 50.0, 60.0) == result.lag_s
        assert replay.lag_s(3.5, 1.0, 50.0, 60.0) <= 0.08

    def test_relaxes_unreachable_precision(self, constant_grid) -> None:
        f = AdaptiveLowPassFilter(grid=constant_grid(1.9))
        result = f.tune(1.0, 0.08, 1.0, 50.0, 60.0)

        assert result.relaxations == 3
        assert result.target_precision == pytest.approx(2.0)
        assert result.precision == pytest.approx(1.9)
        assert math.isfinite(result.lag_s)

    def test_infeasible_lag_keeps_fastest_candidate(self, constant_grid) -> None:
        f = AdaptiveLowPassFilter(grid=constant_grid(0.5))
        result = f.tune(1.0, 1.0 / 120.0, 1.0, 50.0, 60.0)

        assert not result.lag_feasible
        assert result.lag_s == pytest.approx(1.0 / 60.0)
        replay = AdaptiveLowPassFilter(result.min_cutoff_hz, result.beta)
        assert replay.lag_s(1.0, 1.0, 50.0, 60.0) == result.lag_s

    def test_ringing_result_is_reproducible(self, constant_grid) -> None:
        f = AdaptiveLowPassFilter(grid=constant_grid(0.5))
        result = f.tune(1.0, 0.08, 9.0, 50.0, 60.0, handle_ringing=True)

        assert math.isfinite(result.lag_s)
        replay = AdaptiveLowPassFilter(result.min_cutoff_hz, result.beta)
        assert replay.lag_s(1.0, 3.0, 50.0, 60.0, handle_ringing=True) == result.lag_s

    def test_to_dict(self, constant_grid) -> None:
        result = AdaptiveLowPassFilter(grid=constant_grid(0.5)).tune(1.0, 0.08, 1.0, 50.0, 60.0)
        payload = result.to_dict()
        assert payload["min_cutoff_hz"] == result.min_cutoff_hz
        assert payload["lag_feasible"] is result.lag_feasible
        assert set(payload) >= {"beta", "precision", "lag_s", "relaxations", "candidates"}

    def test_rejects_non_positive_rate(self, constant_grid) -> None:
        with pytest.raises(ValueError, match="sample_rate_hz"):
            AdaptiveLowPassFilter(grid=constant_grid(0.5)).tune(1.0, 0.08, 1.0, 50.0, 0.0)
