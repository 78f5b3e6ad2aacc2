"""Adaptive low-pass filter, its precision lookup table and auto-tuner."""

from .adaptive_lowpass import (
    FILTER_PARAMETERS,
    AdaptiveLowPassFilter,
    FilterParameter,
    FilterState,
    PointSmoother,
    TuneResult,
    smoothing_alpha,
)
from .precision_grid import PrecisionGrid, PrecisionTable, default_table, simulate_precision_table

__all__ = [
    "FILTER_PARAMETERS",
    "AdaptiveLowPassFilter",
    "FilterParameter",
    "FilterState",
    "PointSmoother",
    "PrecisionGrid",
    "PrecisionTable",
    "TuneResult",
    "default_table",
    "simulate_precision_table",
    "smoothing_alpha",
]
