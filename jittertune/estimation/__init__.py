"""Online signal estimators.

- :mod:`~jittertune.estimation.buffers`: fixed-capacity ring buffer.
- :mod:`~jittertune.estimation.statistics`: Welford statistics, sample-rate
  and peak-velocity estimators.
- :mod:`~jittertune.estimation.noise`: sliding-DFT white-noise estimator.
"""

from .buffers import CircularBuffer
from .noise import FrequencyBinEstimator, NoiseEstimator
from .statistics import FrameRateEstimator, MaximumDistanceEstimator, RunningStatistics

__all__ = [
    "CircularBuffer",
    "FrameRateEstimator",
    "FrequencyBinEstimator",
    "MaximumDistanceEstimator",
    "NoiseEstimator",
    "RunningStatistics",
]
