"""White-noise variance estimation from sliding single-bin DFTs.

The user is asked to hold still while samples stream in.  Every integer
frequency between ``MIN_MONITOR_HZ`` and Nyquist is tracked with a sliding
DFT, Hanning-windowed in the frequency domain from the two neighbouring
bins.  For stationary white noise every such bin has the same expected
power, so the per-bin variance estimates of both axes are pooled into one
running mean whose confidence interval drives the convergence test.

Noise is assumed isotropic across X/Y and across bins.  This is a known
approximation for real devices and is kept as such.
"""

from __future__ import annotations

import cmath
import logging
import math

import numpy as np

from ..constants import MIN_MONITOR_HZ, NOISE_CONVERGENCE_THRESHOLD
from .buffers import CircularBuffer
from .statistics import RunningStatistics

LOGGER = logging.getLogger(__name__)


def even_sample_rate(sample_hz: float) -> int:
    """Round *sample_hz* to an integer and bump odd values up to even."""
    rate = int(round(sample_hz))
    return rate + rate % 2


def hanning_power(window_len: int) -> float:
    """Sum of squared symmetric Hanning coefficients over *window_len* samples."""
    if window_len < 2:
        return 0.0
    return float(np.sum(np.hanning(window_len) ** 2))


class FrequencyBinEstimator:
    """Power spectral density at one frequency, tracked sample by sample.

    ``offset_hz`` counts down from Nyquist: offset 0 monitors ``rate / 2``,
    offset 1 monitors ``rate / 2 - 1`` and so on.
    """

    __slots__ = (
        "sample_hz",
        "monitor_hz",
        "_samples",
        "_x_lo",
        "_x_mid",
        "_x_hi",
        "_w_lo",
        "_w_mid",
        "_w_hi",
        "_power",
        "_n",
        "window_power",
    )

    def __init__(
        self, offset_hz: int, sample_hz: float, window_power: float | None = None
    ) -> None:
        self.sample_hz = even_sample_rate(sample_hz)
        self.monitor_hz = self.sample_hz // 2 - int(offset_hz)

        self._samples: CircularBuffer[complex] = CircularBuffer(self.sample_hz)
        self._samples.fill(0j)

        self._x_lo = 0j
        self._x_mid = 0j
        self._x_hi = 0j
        step = -2.0j * math.pi / self.sample_hz
        self._w_lo = cmath.exp(step * (self.monitor_hz - 1.0))
        self._w_mid = cmath.exp(step * self.monitor_hz)
        self._w_hi = cmath.exp(step * (self.monitor_hz + 1.0))

        self._power = 0.0
        self._n = 0
        self.window_power = (
            window_power if window_power is not None else hanning_power(self.sample_hz)
        )

    @property
    def ready(self) -> bool:
        """True once a full one-second window has been observed."""
        return self._n >= self.sample_hz

    def update(self, sample: float) -> None:
        dropped = self._samples.get(0)
        change = complex(sample, 0.0) - dropped
        self._x_lo = self._w_lo * (self._x_lo + change)
        self._x_mid = self._w_mid * (self._x_mid + change)
        self._x_hi = self._w_hi * (self._x_hi + change)
        self._samples.add(complex(sample, 0.0))

        self._n += 1
        if self._n >= self.sample_hz:
            windowed = 0.5 * self._x_mid - 0.25 * self._x_lo - 0.25 * self._x_hi
            self._power += abs(windowed) ** 2

    def variance(self) -> float:
        """Current noise variance estimate; 0.0 until enough samples are in."""
        n = self._n - self.sample_hz
        if n <= 0 or self.window_power <= 0.0:
            return 0.0
        return self._power / (n * self.window_power)


class NoiseEstimator:
    """Pooled white-noise variance estimate over X and Y with convergence test."""

    def __init__(
        self,
        sample_hz: float,
        threshold: float = NOISE_CONVERGENCE_THRESHOLD,
    ) -> None:
        self.sample_hz = even_sample_rate(sample_hz)
        self.threshold = float(threshold)
        bin_count = math.ceil(self.sample_hz / 2.0 - MIN_MONITOR_HZ)
        if bin_count <= 0:
            raise ValueError(
                f"sample rate {sample_hz!r} Hz leaves no frequency above "
                f"{MIN_MONITOR_HZ:g} Hz to monitor"
            )
        self.window_power = hanning_power(self.sample_hz)
        self._bins_x = [
            FrequencyBinEstimator(ii, self.sample_hz, self.window_power) for ii in range(bin_count)
        ]
        self._bins_y = [
            FrequencyBinEstimator(ii, self.sample_hz, self.window_power) for ii in range(bin_count)
        ]
        self._stats = RunningStatistics()
        LOGGER.debug(
            "Noise estimator monitoring %d bins (%d-%d Hz) at %d Hz",
            bin_count,
            self._bins_x[-1].monitor_hz,
            self._bins_x[0].monitor_hz,
            self.sample_hz,
        )

    @property
    def monitored_hz(self) -> list[int]:
        return [b.monitor_hz for b in self._bins_x]

    @property
    def stats(self) -> RunningStatistics:
        return self._stats

    def update(self, x: float, y: float) -> bool:
        """Feed one sample on both axes; return True once the estimate has converged."""
        for bin_x, bin_y in zip(self._bins_x, self._bins_y):
            bin_x.update(x)
            bin_y.update(y)
            var_x = bin_x.variance()
            var_y = bin_y.variance()
            # Bins still filling their first window report exactly zero.
            if var_x == 0.0:
                continue
            self._stats.update(var_x)
            self._stats.update(var_y)
        return self.converged()

    def variance(self) -> float:
        """White-noise variance estimate: the mean of the pooled bin estimates."""
        return self._stats.mean

    def ratio(self) -> float | None:
        """Relative CI width ``2 * ci95 / mean``; None while the mean is zero."""
        if self._stats.mean <= 0.0:
            return None
        return (2.0 * self._stats.ci95) / self._stats.mean

    def converged(self) -> bool:
        ratio = self.ratio()
        return ratio is not None and self._stats.count > 1 and ratio < self.threshold

    def countdown(self) -> float | None:
        """Distance of the relative CI width from the threshold, for progress display."""
        ratio = self.ratio()
        if ratio is None:
            return None
        return ratio - self.threshold
