"""Velocity-adaptive low-pass filter ("1€ filter") with an auto-tuner.

The filter smooths with an exponential moving average whose cutoff rises
with the (smoothed) signal velocity: slow motion gets heavy smoothing and
little jitter, fast motion gets a high cutoff and little lag.

:meth:`AdaptiveLowPassFilter.tune` searches ``(min_cutoff_hz, beta)`` for the
pair that keeps the expected jitter (from :class:`PrecisionGrid`) under a
precision target while settling on a step input within a lag budget.  The
search is expensive (hundreds of thousands of candidate evaluations) and is
meant to run once at the end of calibration, never per sample.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass

from ..constants import (
    BETA_ROUND_DIGITS,
    BETA_SWEEP_DIVISOR,
    BETA_SWEEP_SCALES,
    BETA_SWEEP_START,
    BETA_SWEEP_SUBSTEPS,
    DEFAULT_MAX_SETTLE_S,
    DERIVATIVE_CUTOFF_HZ,
    LAG_WARMUP_SAMPLES,
    MIN_CUTOFF_SWEEP_START_HZ,
    MIN_CUTOFF_SWEEP_STEP_HZ,
    MIN_CUTOFF_SWEEP_STOP_HZ,
    TARGET_RELAXATION_STEP,
)
from .precision_grid import PrecisionGrid

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FilterParameter:
    """Slider metadata for configuration UIs.  Not used by the algorithm."""

    name: str
    label: str
    min: float
    max: float
    default: float
    step: float
    log_scale: bool


FILTER_PARAMETERS: tuple[FilterParameter, ...] = (
    FilterParameter("min_cutoff_hz", "Error", 0.1, 15.0, 15.0, 0.01, True),
    FilterParameter("beta", "Speed", 0.00001, 0.1, 0.0, 0.0001, True),
    FilterParameter("noise", "Noise", 0.0, 16.0, 8.0, 1.0, False),
)


@dataclass(slots=True)
class FilterState:
    pos: float
    derivative: float
    timestamp_s: float
    alpha: float = 1.0


@dataclass(frozen=True, slots=True)
class TuneResult:
    min_cutoff_hz: float
    beta: float
    precision: float
    lag_s: float
    target_precision: float
    max_lag_s: float
    relaxations: int
    candidates: int

    @property
    def lag_feasible(self) -> bool:
        return self.lag_s < self.max_lag_s

    def to_dict(self) -> dict[str, float | int | bool]:
        return {
            "min_cutoff_hz": self.min_cutoff_hz,
            "beta": self.beta,
            "precision": self.precision,
            "lag_s": self.lag_s,
            "target_precision": self.target_precision,
            "max_lag_s": self.max_lag_s,
            "lag_feasible": self.lag_feasible,
            "relaxations": self.relaxations,
            "candidates": self.candidates,
        }


def smoothing_alpha(cutoff_hz: float, delta_s: float) -> float:
    """EMA weight of the newest sample for a given cutoff and time step."""
    return 1.0 - math.exp(-2.0 * math.pi * cutoff_hz * delta_s)


def min_cutoff_sweep() -> list[float]:
    count = int(
        math.ceil(
            (MIN_CUTOFF_SWEEP_STOP_HZ - MIN_CUTOFF_SWEEP_START_HZ) / MIN_CUTOFF_SWEEP_STEP_HZ - 1e-9
        )
    )
    return [
        round(MIN_CUTOFF_SWEEP_START_HZ + i * MIN_CUTOFF_SWEEP_STEP_HZ, 2) for i in range(count)
    ]


def beta_sweep() -> list[float]:
    """Coarse-to-fine beta candidates, from just below 1.0 towards 1e-5.

    Each decade is walked in quarter steps and rounded half-up to
    ``BETA_ROUND_DIGITS`` decimals.  Half-units are tracked as integers so the
    finest decade rounds the same way on every platform.
    """
    half_units = 2 * 10**BETA_ROUND_DIGITS
    beta_q = round(BETA_SWEEP_START * half_units)
    betas: list[float] = []
    for scale in range(1, BETA_SWEEP_SCALES + 1):
        step_q = half_units // (BETA_SWEEP_DIVISOR * 10**scale)
        for _ in range(BETA_SWEEP_SUBSTEPS):
            beta_q = (beta_q - step_q + 1) // 2 * 2
            betas.append(beta_q / half_units)
    return betas


class AdaptiveLowPassFilter:
    """One-dimensional velocity-adaptive exponential smoothing filter."""

    def __init__(
        self,
        min_cutoff_hz: float = 1.0,
        beta: float = 0.0,
        *,
        derivative_cutoff_hz: float = DERIVATIVE_CUTOFF_HZ,
        grid: PrecisionGrid | None = None,
        max_settle_s: float = DEFAULT_MAX_SETTLE_S,
    ) -> None:
        self.min_cutoff_hz = float(min_cutoff_hz)
        self.beta = float(beta)
        self.derivative_cutoff_hz = float(derivative_cutoff_hz)
        self.max_settle_s = float(max_settle_s)
        self._grid = grid
        self._state: FilterState | None = None

    @property
    def grid(self) -> PrecisionGrid:
        if self._grid is None:
            self._grid = PrecisionGrid()
        return self._grid

    @property
    def state(self) -> FilterState | None:
        return self._state

    @property
    def initialized(self) -> bool:
        return self._state is not None

    def reset(self) -> None:
        self._state = None

    def filter(self, pos: float, timestamp_s: float) -> float:
        """Filter one reading taken at *timestamp_s* and return the smoothed value."""
        state = self._state
        if state is None:
            self._state = FilterState(pos=pos, derivative=0.0, timestamp_s=timestamp_s)
            return pos

        delta_s = timestamp_s - state.timestamp_s
        if delta_s <= 0.0:
            return state.pos
        state.timestamp_s = timestamp_s

        alpha = smoothing_alpha(self.derivative_cutoff_hz, delta_s)
        derivative = (pos - state.pos) / delta_s
        state.derivative = alpha * derivative + (1.0 - alpha) * state.derivative

        cutoff_hz = self.min_cutoff_hz + self.beta * abs(state.derivative)
        alpha = smoothing_alpha(cutoff_hz, delta_s)
        state.alpha = alpha
        state.pos = alpha * pos + (1.0 - alpha) * state.pos
        return state.pos

    def lag_s(
        self,
        target_precision: float,
        noise_stddev: float,
        amplitude: float,
        sample_rate_hz: float,
        handle_ringing: bool = False,
        limit_s: float | None = None,
    ) -> float:
        """Measure the step response: seconds to settle within *target_precision*.

        The filter is reset, warmed up at zero, then fed *amplitude* until the
        output holds within the target.  Returns ``math.inf`` when the response
        has not settled after ``max_settle_s`` or once it exceeds *limit_s*.
        """
        if sample_rate_hz <= 0:
            raise ValueError(f"sample_rate_hz must be positive, got {sample_rate_hz!r}")
        self.reset()
        delta_s = 1.0 / sample_rate_hz
        timestamp_s = 0.0
        for _ in range(LAG_WARMUP_SAMPLES):
            self.filter(0.0, timestamp_s)
            timestamp_s += delta_s

        max_count = max(1, int(math.ceil(self.max_settle_s * sample_rate_hz)))
        for count in range(1, max_count + 1):
            pos = self.filter(amplitude, timestamp_s)
            error = abs(pos - amplitude)
            if handle_ringing and self._state is not None:
                error = max(error, self._state.alpha * noise_stddev)
            elapsed_s = count / sample_rate_hz
            if error < target_precision:
                return elapsed_s
            if limit_s is not None and elapsed_s > limit_s:
                return math.inf
            timestamp_s += delta_s
        return math.inf

    def tune(
        self,
        max_target_precision: float,
        max_lag_s: float,
        noise_variance: float,
        max_amplitude: float,
        sample_rate_hz: float,
        handle_ringing: bool = False,
    ) -> TuneResult:
        """Search ``(min_cutoff_hz, beta)`` and make the winner the live parameters.

        Lag feasibility is prioritised over precision: until some candidate
        settles within *max_lag_s*, faster candidates win; afterwards only
        candidates that also meet the lag budget with equal or better
        precision replace the best.  If nothing passes the precision target
        the target is relaxed by a third and the sweep repeats.
        """
        if sample_rate_hz <= 0:
            raise ValueError(f"sample_rate_hz must be positive, got {sample_rate_hz!r}")
        started = time.monotonic()
        grid = self.grid
        noise_stddev = math.sqrt(max(0.0, noise_variance))
        probe = AdaptiveLowPassFilter(
            derivative_cutoff_hz=self.derivative_cutoff_hz,
            grid=grid,
            max_settle_s=self.max_settle_s,
        )
        cutoffs = min_cutoff_sweep()
        betas = beta_sweep()

        target_precision = max_target_precision
        best_precision = math.inf
        best_lag_s = math.inf
        best_min_cutoff_hz: float | None = None
        best_beta = 0.0
        relaxations = 0
        candidates = 0

        while best_min_cutoff_hz is None:
            for min_hz in cutoffs:
                for beta in betas:
                    precision = grid.precision(noise_stddev, min_hz, beta)
                    if precision > target_precision:
                        continue

                    lag_feasible = best_lag_s <= max_lag_s
                    probe.min_cutoff_hz = min_hz
                    probe.beta = beta
                    lag_s = probe.lag_s(
                        target_precision,
                        noise_stddev,
                        max_amplitude,
                        sample_rate_hz,
                        handle_ringing,
                        limit_s=max_lag_s if lag_feasible else best_lag_s,
                    )
                    candidates += 1
                    if not math.isfinite(lag_s):
                        continue
                    if lag_feasible:
                        if lag_s >= max_lag_s or precision > best_precision:
                            continue
                    elif lag_s > best_lag_s:
                        continue

                    best_precision = precision
                    best_lag_s = lag_s
                    best_min_cutoff_hz = min_hz
                    best_beta = beta

            if best_min_cutoff_hz is None:
                LOGGER.debug(
                    "No candidate meets precision %.4f; relaxing by %.4f",
                    target_precision,
                    TARGET_RELAXATION_STEP,
                )
                target_precision += TARGET_RELAXATION_STEP
                relaxations += 1

        self.min_cutoff_hz = best_min_cutoff_hz
        self.beta = best_beta
        self.reset()

        result = TuneResult(
            min_cutoff_hz=best_min_cutoff_hz,
            beta=best_beta,
            precision=best_precision,
            lag_s=best_lag_s,
            target_precision=target_precision,
            max_lag_s=max_lag_s,
            relaxations=relaxations,
            candidates=candidates,
        )
        LOGGER.info(
            "Tuned filter: noise=%.4f amp=%.2f target=%.4f max_lag=%.3fs -> "
            "min_cutoff=%.2fHz beta=%.6f precision=%.4f lag=%.4fs (%d candidates, %.2fs)",
            noise_stddev,
            max_amplitude,
            max_target_precision,
            max_lag_s,
            result.min_cutoff_hz,
            result.beta,
            result.precision,
            result.lag_s,
            candidates,
            time.monotonic() - started,
        )
        return result


class PointSmoother:
    """Smooths (x, y) samples with two filters sharing one parameter set."""

    __slots__ = ("x", "y")

    def __init__(self, min_cutoff_hz: float = 1.0, beta: float = 0.0) -> None:
        self.x = AdaptiveLowPassFilter(min_cutoff_hz, beta)
        self.y = AdaptiveLowPassFilter(min_cutoff_hz, beta)

    @classmethod
    def from_result(cls, result: TuneResult) -> PointSmoother:
        return cls(result.min_cutoff_hz, result.beta)

    def set_parameters(self, min_cutoff_hz: float, beta: float) -> None:
        for axis in (self.x, self.y):
            axis.min_cutoff_hz = float(min_cutoff_hz)
            axis.beta = float(beta)

    def reset(self) -> None:
        self.x.reset()
        self.y.reset()

    def update(self, x: float, y: float, timestamp_s: float) -> tuple[float, float]:
        return self.x.filter(x, timestamp_s), self.y.filter(y, timestamp_s)
