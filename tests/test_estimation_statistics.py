from __future__ import annotations

import math

import numpy as np
import pytest

from jittertune.estimation import FrameRateEstimator, MaximumDistanceEstimator, RunningStatistics
from jittertune.simulation import SimulatedClock


class TestRunningStatistics:
    def test_matches_closed_form(self) -> None:
        values = np.random.default_rng(3).normal(5.0, 2.0, size=500)
        stats = RunningStatistics()
        for v in values:
            stats.update(float(v))

        assert stats.count == 500
        assert stats.mean == pytest.approx(float(np.mean(values)), rel=1e-12)
        assert stats.variance == pytest.approx(float(np.var(values, ddof=1)), rel=1e-9)
        assert stats.ci95 == pytest.approx(1.96 * math.sqrt(stats.variance / 500), rel=1e-12)
        assert stats.max == float(np.max(values))
        assert stats.stddev == pytest.approx(math.sqrt(stats.variance))

    def test_single_sample_has_no_spread(self) -> None:
        stats = RunningStatistics()
        stats.update(3.0)
        assert stats.mean == 3.0
        assert stats.variance == 0.0
        assert stats.ci95 == 0.0
        assert stats.max == 3.0

    def test_empty_defaults(self) -> None:
        stats = RunningStatistics()
        assert stats.count == 0
        assert stats.mean == 0.0
        assert stats.max == -math.inf


class TestFrameRateEstimator:
    def test_zero_before_two_samples(self) -> None:
        est = FrameRateEstimator()
        assert est.fps() == 0.0
        est.update(0.0)
        assert est.fps() == 0.0
        assert est.sample_hz() == 0

    def test_regular_gaps(self) -> None:
        est = FrameRateEstimator()
        for k in range(121):
            est.update(k / 60.0)
        assert est.fps() == pytest.approx(60.0)
        assert est.sample_hz() == 60

    def test_uses_injected_clock(self) -> None:
        clock = SimulatedClock(start_s=100.0)
        est = FrameRateEstimator(clock)
        for _ in range(50):
            est.update()
            clock.advance(0.04)
        assert est.sample_hz() == 25


class TestMaximumDistanceEstimator:
    def test_reports_smallest_of_largest_five(self) -> None:
        est = MaximumDistanceEstimator()
        # displacements: 100, 0, 10, 1, 11, 2, 12, 13
        for pos in (0.0, 100.0, 100.0, 110.0, 111.0, 122.0, 124.0, 136.0, 149.0):
            est.update(pos, stddev=1.0)
        assert sorted(est.speeds) == [10.0, 11.0, 12.0, 13.0, 100.0]
        assert est.velocity() == 10.0

        est.update(199.0, stddev=1.0)
        assert est.velocity() == 11.0

    def test_ignores_movement_within_noise_gate(self) -> None:
        est = MaximumDistanceEstimator()
        for pos in (0.0, 2.0, -1.0, 1.5, 0.0):
            est.update(pos, stddev=1.0)
        assert est.velocity() == 0.0

    def test_fewer_than_five_movements_reports_zero(self) -> None:
        est = MaximumDistanceEstimator()
        for pos in (0.0, 50.0, 0.0, 50.0):
            est.update(pos, stddev=1.0)
        assert est.velocity() == 0.0
        assert max(est.speeds) == 50.0
