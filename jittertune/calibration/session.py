"""Calibration state machine.

``CalibrationSession`` is fed every raw pointer sample through
:meth:`~CalibrationSession.update` and walks through the estimation phases:

1. sample rate: inter-arrival gaps over a fixed dwell,
2. noise: sliding-DFT white-noise variance until the CI converges,
3. amplitude: conservative peak displacement per axis,
4. parameters: a single :meth:`AdaptiveLowPassFilter.tune` call.

Instruction phases (``*_prepare``) and the end of the amplitude phase are
gated by the host application through :meth:`~CalibrationSession.advance`.
Each phase owns fresh estimator instances; nothing carries over between
phases except the frozen outputs (``sample_hz``, ``noise_stddev``,
``amplitude``).
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..constants import (
    NOISE_CONVERGENCE_THRESHOLD,
    NOISE_SETTLE_S,
    PRECISION_SIGMAS,
    SAMPLE_RATE_DWELL_S,
)
from ..estimation import FrameRateEstimator, MaximumDistanceEstimator, NoiseEstimator
from ..filters import AdaptiveLowPassFilter, TuneResult
from .states import GATED_TRANSITIONS, CalibrationState

if TYPE_CHECKING:
    from ..config import AppConfig

LOGGER = logging.getLogger(__name__)


class CalibrationError(RuntimeError):
    """Raised when the calibration procedure is driven out of order."""


@dataclass(frozen=True, slots=True)
class CalibrationResult:
    sample_hz: int
    noise_stddev: float
    amplitude: float
    tune: TuneResult

    def to_dict(self) -> dict[str, Any]:
        return {
            "sample_hz": self.sample_hz,
            "noise_stddev": self.noise_stddev,
            "amplitude": self.amplitude,
            **self.tune.to_dict(),
        }


class AmplitudeEstimator:
    """Peak per-sample movement over both axes."""

    __slots__ = ("_x", "_y", "_noise_stddev")

    def __init__(self, noise_stddev: float) -> None:
        self._x = MaximumDistanceEstimator()
        self._y = MaximumDistanceEstimator()
        self._noise_stddev = noise_stddev

    def update(self, x: float, y: float) -> None:
        self._x.update(x, self._noise_stddev)
        self._y.update(y, self._noise_stddev)

    def amplitude(self) -> float:
        return max(self._x.velocity(), self._y.velocity())


class CalibrationSession:
    def __init__(
        self,
        least_precision: float,
        worst_lag_s: float,
        lowpass_filter: AdaptiveLowPassFilter | None = None,
        *,
        sample_rate_dwell_s: float = SAMPLE_RATE_DWELL_S,
        noise_settle_s: float = NOISE_SETTLE_S,
        noise_threshold: float = NOISE_CONVERGENCE_THRESHOLD,
        amplitude_dwell_s: float | None = None,
        handle_ringing: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.least_precision = float(least_precision)
        self.worst_lag_s = float(worst_lag_s)
        self.lowpass_filter = (
            lowpass_filter if lowpass_filter is not None else AdaptiveLowPassFilter()
        )
        self.sample_rate_dwell_s = float(sample_rate_dwell_s)
        self.noise_settle_s = float(noise_settle_s)
        self.noise_threshold = float(noise_threshold)
        self.amplitude_dwell_s = amplitude_dwell_s
        self.handle_ringing = handle_ringing
        self._clock = clock

        self.state = CalibrationState.wait_to_start
        self._phase_start_s = clock()
        self._rate_estimator: FrameRateEstimator | None = None
        self._noise_estimator: NoiseEstimator | None = None
        self._amplitude_estimator: AmplitudeEstimator | None = None

        self.sample_hz: int = 0
        self.noise_stddev: float | None = None
        self._amplitude: float = 0.0
        self.result: CalibrationResult | None = None

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        lowpass_filter: AdaptiveLowPassFilter | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> CalibrationSession:
        cal = config.calibration
        return cls(
            cal.least_precision_px,
            cal.worst_lag_s,
            lowpass_filter,
            sample_rate_dwell_s=cal.sample_rate_dwell_s,
            noise_settle_s=cal.noise_settle_s,
            noise_threshold=cal.noise_convergence_threshold,
            amplitude_dwell_s=cal.amplitude_dwell_s,
            handle_ringing=config.tuning.handle_ringing,
            clock=clock,
        )

    # -- diagnostics ---------------------------------------------------------

    @property
    def label(self) -> str:
        return self.state.label

    @property
    def noise_variance(self) -> float | None:
        if self._noise_estimator is not None:
            return self._noise_estimator.variance()
        if self.noise_stddev is not None:
            return self.noise_stddev * self.noise_stddev
        return None

    @property
    def countdown(self) -> float | None:
        """Remaining relative CI width before the noise estimate converges."""
        if self._noise_estimator is None:
            return None
        return self._noise_estimator.countdown()

    @property
    def amplitude(self) -> float:
        if self._amplitude_estimator is not None:
            return self._amplitude_estimator.amplitude()
        return self._amplitude

    @property
    def phase_elapsed_s(self) -> float:
        return self._clock() - self._phase_start_s

    # -- transitions ---------------------------------------------------------

    def _enter(self, state: CalibrationState, now_s: float) -> None:
        LOGGER.info("Calibration %s -> %s", self.state.label, state.label)
        self.state = state
        self._phase_start_s = now_s

    def advance(self) -> CalibrationState:
        """Leave an externally gated state (instructions shown, user ready)."""
        nxt = GATED_TRANSITIONS.get(self.state)
        if nxt is None:
            raise CalibrationError(f"cannot advance calibration from state {self.state.label!r}")
        self._enter(nxt, self._clock())
        return self.state

    def update(self, x: float, y: float) -> CalibrationState:
        """Feed one raw sample; returns the state after processing it."""
        now_s = self._clock()
        elapsed_s = now_s - self._phase_start_s
        state = self.state

        if state is CalibrationState.start:
            self._rate_estimator = FrameRateEstimator(self._clock)
            self._enter(CalibrationState.estimate_sample_rate, now_s)

        elif state is CalibrationState.estimate_sample_rate:
            assert self._rate_estimator is not None
            self._rate_estimator.update(now_s)
            if elapsed_s > self.sample_rate_dwell_s:
                self._finish_sample_rate(now_s)

        elif state is CalibrationState.estimate_noise_prepare:
            self._phase_start_s = now_s

        elif state is CalibrationState.estimate_noise:
            if elapsed_s < self.noise_settle_s:
                return self.state
            assert self._noise_estimator is not None
            if self._noise_estimator.update(x, y):
                self._finish_noise(now_s)

        elif state is CalibrationState.estimate_amplitude:
            assert self._amplitude_estimator is not None
            self._amplitude_estimator.update(x, y)
            if self.amplitude_dwell_s is not None and elapsed_s > self.amplitude_dwell_s:
                self._enter(CalibrationState.estimate_parameters, now_s)

        elif state is CalibrationState.estimate_parameters:
            self._finish_parameters(now_s)

        return self.state

    def _finish_sample_rate(self, now_s: float) -> None:
        assert self._rate_estimator is not None
        self.sample_hz = self._rate_estimator.sample_hz()
        self._rate_estimator = None
        LOGGER.info("Sample rate: %d Hz", self.sample_hz)
        try:
            self._noise_estimator = NoiseEstimator(self.sample_hz, self.noise_threshold)
        except ValueError as exc:
            raise CalibrationError(str(exc)) from exc
        self._enter(CalibrationState.estimate_noise_prepare, now_s)

    def _finish_noise(self, now_s: float) -> None:
        assert self._noise_estimator is not None
        variance = self._noise_estimator.variance()
        self.noise_stddev = math.sqrt(max(0.0, variance))
        self._noise_estimator = None
        LOGGER.info("Noise stddev: %.4f (variance %.4f)", self.noise_stddev, variance)
        self._amplitude_estimator = AmplitudeEstimator(self.noise_stddev)
        self._enter(CalibrationState.estimate_amplitude_prepare, now_s)

    def _finish_parameters(self, now_s: float) -> None:
        assert self._amplitude_estimator is not None and self.noise_stddev is not None
        self._amplitude = self._amplitude_estimator.amplitude()
        self._amplitude_estimator = None
        LOGGER.info("Amplitude: %.4f", self._amplitude)
        tuned = self.lowpass_filter.tune(
            self.least_precision / PRECISION_SIGMAS,
            self.worst_lag_s,
            self.noise_stddev * self.noise_stddev,
            self._amplitude,
            self.sample_hz,
            self.handle_ringing,
        )
        self.result = CalibrationResult(
            sample_hz=self.sample_hz,
            noise_stddev=self.noise_stddev,
            amplitude=self._amplitude,
            tune=tuned,
        )
        self._enter(CalibrationState.tuned, now_s)
