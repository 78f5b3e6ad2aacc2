"""End-to-end calibration against the synthetic pointer."""

from __future__ import annotations

import numpy as np
import pytest

from jittertune.calibration import CalibrationSession, CalibrationState
from jittertune.filters import AdaptiveLowPassFilter, PrecisionGrid
from jittertune.simulation import (
    PROFILE_LIBRARY,
    SimulatedClock,
    SyntheticPointer,
    run_calibration,
)


class TestSyntheticPointer:
    def test_seeded_stream_is_reproducible(self) -> None:
        profile = PROFILE_LIBRARY["head_tracker"]
        a = SyntheticPointer(profile, seed=5)
        b = SyntheticPointer(profile, seed=5)
        assert [a.sample() for _ in range(20)] == [b.sample() for _ in range(20)]

    def test_jumps_only_while_moving(self) -> None:
        profile = PROFILE_LIBRARY["head_tracker"]
        pointer = SyntheticPointer(profile, seed=1)
        still = np.array([pointer.sample() for _ in range(120)])
        assert np.max(np.abs(np.diff(still, axis=0))) < 10.0

        pointer.moving = True
        moving = np.array([pointer.sample() for _ in range(120)])
        steps = np.abs(np.diff(moving, axis=0))
        assert np.sum(steps[:, 0] > 40.0) >= 3
        assert np.sum(steps[:, 1] > 40.0) >= 3

    def test_simulated_clock(self) -> None:
        clock = SimulatedClock(start_s=1.0)
        clock.advance(0.5)
        assert clock() == 1.5


def test_head_tracker_calibration(default_grid: PrecisionGrid) -> None:
    profile = PROFILE_LIBRARY["head_tracker"]
    clock = SimulatedClock()
    lowpass = AdaptiveLowPassFilter(grid=default_grid)
    session = CalibrationSession(3.5, 0.08, lowpass, clock=clock)

    state = run_calibration(session, SyntheticPointer(profile, seed=3), clock)

    assert state is CalibrationState.tuned
    result = session.result
    assert result is not None
    assert result.sample_hz == 60
    assert result.noise_stddev == pytest.approx(profile.noise_stddev, rel=0.2)
    assert result.amplitude == pytest.approx(profile.jump_px, rel=0.15)
    assert result.tune.lag_feasible
    assert result.tune.precision <= result.tune.target_precision
    assert (lowpass.min_cutoff_hz, lowpass.beta) == (
        result.tune.min_cutoff_hz,
        result.tune.beta,
    )
