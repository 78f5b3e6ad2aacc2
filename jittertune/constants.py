"""Shared estimation and tuning constants, kept in one place.

Estimator thresholds, tuner sweep ranges and precision-table axes.  The
config defaults and the precision-table simulation read from here too.
"""

from __future__ import annotations

from typing import Final

# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------
CI95_Z: Final[float] = 1.96
"""Two-sided z-score of a 95% normal confidence interval."""

# ---------------------------------------------------------------------------
# Noise estimation
# ---------------------------------------------------------------------------
MIN_MONITOR_HZ: Final[float] = 10.0
"""Lowest monitored frequency.  Everything below is treated as slow idling
motion rather than sensor noise."""

NOISE_CONVERGENCE_THRESHOLD: Final[float] = 0.01
"""Convergence is declared once ``2 * ci95 / mean`` drops below this."""

# ---------------------------------------------------------------------------
# Peak-velocity estimation
# ---------------------------------------------------------------------------
MOVEMENT_POOL_SIZE: Final[int] = 5
"""Number of largest displacements retained; the smallest of them is reported."""

MOVEMENT_NOISE_GATE_SIGMAS: Final[float] = 3.0
"""Displacements must exceed this many noise standard deviations to count."""

# ---------------------------------------------------------------------------
# Adaptive low-pass filter
# ---------------------------------------------------------------------------
DERIVATIVE_CUTOFF_HZ: Final[float] = 1.0
"""Fixed cutoff used to smooth the velocity estimate."""

LAG_WARMUP_SAMPLES: Final[int] = 2
"""Zero-valued samples fed before a step-response measurement."""

DEFAULT_MAX_SETTLE_S: Final[float] = 30.0
"""Simulated seconds after which a step response counts as never settling."""

# ---------------------------------------------------------------------------
# Tuner sweep
# ---------------------------------------------------------------------------
TARGET_RELAXATION_STEP: Final[float] = 1.0 / 3.0
"""Added to the precision target after each pass that found no candidate."""

MIN_CUTOFF_SWEEP_START_HZ: Final[float] = 0.1
MIN_CUTOFF_SWEEP_STOP_HZ: Final[float] = 4.0
MIN_CUTOFF_SWEEP_STEP_HZ: Final[float] = 0.01

BETA_SWEEP_START: Final[float] = 1.0
BETA_SWEEP_SCALES: Final[int] = 5
"""Decades visited by the coarse-to-fine beta search (10^-1 … 10^-5)."""

BETA_SWEEP_SUBSTEPS: Final[int] = 36
BETA_SWEEP_DIVISOR: Final[int] = 4
BETA_ROUND_DIGITS: Final[int] = 6

# ---------------------------------------------------------------------------
# Precision grid axes
# ---------------------------------------------------------------------------
GRID_JITTER_STEP: Final[float] = 1.0 / 3.0
GRID_JITTER_LEVELS: Final[int] = 16

GRID_CUTOFF_STEP_HZ: Final[float] = 0.05
GRID_CUTOFF_LEVELS: Final[int] = 80

GRID_BETA_LEVELS: Final[int] = 47
GRID_BETA_STEPS_PER_DECADE: Final[int] = 9
GRID_BETA_DECADE_FACTOR: Final[float] = 10.00000001
"""Slightly above ten so that exact decade values land on their own index."""

GRID_SAMPLE_RATE_HZ: Final[int] = 60
"""Sample rate the embedded precision table is simulated at."""

# ---------------------------------------------------------------------------
# Calibration procedure
# ---------------------------------------------------------------------------
MINIMUM_TARGET_SIZE_PX: Final[float] = 14.0
"""Smallest on-screen target the tuned cursor must be able to hit."""

DEFAULT_LEAST_PRECISION_PX: Final[float] = float(int(MINIMUM_TARGET_SIZE_PX * 0.25))
"""Jitter below a quarter of the target size has negligible effect on misses."""

DEFAULT_WORST_LAG_S: Final[float] = 0.080
"""Lag is rarely noticed below roughly 80 ms."""

PRECISION_SIGMAS: Final[float] = 3.0
"""The least precision is split into this many standard deviations before tuning."""

SAMPLE_RATE_DWELL_S: Final[float] = 2.0
NOISE_SETTLE_S: Final[float] = 1.0
