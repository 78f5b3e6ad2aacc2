"""Streaming estimators fed one sample at a time.

``RunningStatistics`` keeps Welford sufficient statistics.  The sample-rate
and peak-velocity estimators built on top of it are owned by a single
calibration phase and discarded when the phase ends.
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable

from ..constants import CI95_Z, MOVEMENT_NOISE_GATE_SIGMAS, MOVEMENT_POOL_SIZE


class RunningStatistics:
    """Incremental mean, variance, 95% CI half-width and maximum."""

    __slots__ = ("count", "mean", "m2", "variance", "ci95", "max")

    def __init__(self) -> None:
        self.count: int = 0
        self.mean: float = 0.0
        self.m2: float = 0.0
        self.variance: float = 0.0
        self.ci95: float = 0.0
        self.max: float = -math.inf

    def update(self, value: float) -> None:
        self.count += 1
        delta = value - self.mean
        self.mean += delta / self.count
        self.m2 += delta * (value - self.mean)
        if value > self.max:
            self.max = value
        if self.count > 1:
            self.variance = self.m2 / (self.count - 1)
            self.ci95 = CI95_Z * math.sqrt(self.variance / self.count)

    @property
    def stddev(self) -> float:
        return math.sqrt(max(0.0, self.variance))


class FrameRateEstimator:
    """Average sampling rate from the gaps between successive updates."""

    __slots__ = ("_stats", "_last_s", "_clock")

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._stats = RunningStatistics()
        self._last_s: float | None = None
        self._clock = clock

    def update(self, now_s: float | None = None) -> None:
        now = self._clock() if now_s is None else now_s
        if self._last_s is not None:
            self._stats.update(now - self._last_s)
        self._last_s = now

    def fps(self) -> float:
        """Mean rate in Hz, or 0.0 until two samples have arrived."""
        if self._stats.count == 0 or self._stats.mean <= 0.0:
            return 0.0
        return 1.0 / self._stats.mean

    def sample_hz(self) -> int:
        return int(round(self.fps()))


class MaximumDistanceEstimator:
    """Conservative peak displacement between successive samples.

    The five largest displacements above the noise gate are kept and their
    minimum is reported, so a single tracking glitch cannot inflate the
    estimate.
    """

    __slots__ = ("_previous", "_speeds")

    def __init__(self) -> None:
        self._previous: float | None = None
        self._speeds: list[float] = [0.0] * MOVEMENT_POOL_SIZE

    def update(self, sample: float, stddev: float) -> None:
        previous = sample if self._previous is None else self._previous
        delta = abs(previous - sample)
        if delta > MOVEMENT_NOISE_GATE_SIGMAS * stddev:
            slot = self._speeds.index(min(self._speeds))
            if delta > self._speeds[slot]:
                self._speeds[slot] = delta
        self._previous = sample

    def velocity(self) -> float:
        return min(self._speeds)

    @property
    def speeds(self) -> tuple[float, ...]:
        return tuple(self._speeds)
