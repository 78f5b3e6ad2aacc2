"""Expected filter precision lookup, indexed by noise, cutoff and beta.

The table holds the steady-state RMS positional error of the adaptive
low-pass filter when fed white noise, for 16 jitter levels × 80 minimum
cutoffs × 47 beta values.  Queries interpolate trilinearly between the
eight surrounding cells.

Axes
----
- jitter: ``(i + 1) / 3`` for ``i`` in 0..15
- min cutoff: ``0.05 * (i + 1)`` Hz for ``i`` in 0..79
- beta: index 0 is ``beta = 0`` (also used for anything below 1e-5), then nine
  steps per decade from 1e-5 up to 1.0 at index 46.

Tables are immutable once built.  The embedded table is simulated with a
fixed seed so tuning is reproducible; a reference table can be supplied as an
``.npz`` file instead.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

import numpy as np

from ..constants import (
    DERIVATIVE_CUTOFF_HZ,
    GRID_BETA_DECADE_FACTOR,
    GRID_BETA_LEVELS,
    GRID_BETA_STEPS_PER_DECADE,
    GRID_CUTOFF_LEVELS,
    GRID_CUTOFF_STEP_HZ,
    GRID_JITTER_LEVELS,
    GRID_JITTER_STEP,
    GRID_SAMPLE_RATE_HZ,
)

LOGGER = logging.getLogger(__name__)

TABLE_SHAPE: tuple[int, int, int] = (GRID_JITTER_LEVELS, GRID_CUTOFF_LEVELS, GRID_BETA_LEVELS)
SIMULATED_TABLE_VERSION = "sim-1"
_SIMULATION_SEED = 20190601


def jitter_levels() -> np.ndarray:
    return (np.arange(GRID_JITTER_LEVELS, dtype=np.float64) + 1.0) * GRID_JITTER_STEP


def cutoff_levels() -> np.ndarray:
    return (np.arange(GRID_CUTOFF_LEVELS, dtype=np.float64) + 1.0) * GRID_CUTOFF_STEP_HZ


def beta_levels() -> np.ndarray:
    """Beta value at each table index; index 0 stands for zero."""
    values = np.zeros(GRID_BETA_LEVELS, dtype=np.float64)
    top_decade = (GRID_BETA_LEVELS - 1) // GRID_BETA_STEPS_PER_DECADE
    for idx in range(1, GRID_BETA_LEVELS):
        digit = (idx - 1) % GRID_BETA_STEPS_PER_DECADE + 1
        decade = (idx - 1) // GRID_BETA_STEPS_PER_DECADE
        values[idx] = digit * 10.0 ** (decade - top_decade)
    return values


def beta_index(beta: float) -> tuple[float, int, int]:
    """Fractional beta position plus its low/high table indices.

    Beta is scaled by ten until it reaches 1.0, stepping nine indices down per
    decade.  Values below the smallest tabulated beta resolve to ``(0, 0, 0)``.
    """
    idx = GRID_BETA_LEVELS - 1
    while beta < 1.0 and idx > 0:
        beta *= GRID_BETA_DECADE_FACTOR
        idx -= GRID_BETA_STEPS_PER_DECADE
    if idx < 0:
        return 0.0, 0, 0
    idx = max(idx - 1, 0)
    pos = min(beta + idx, float(GRID_BETA_LEVELS - 1))
    return pos, math.floor(pos), math.ceil(pos)


@dataclass(frozen=True, slots=True, eq=False)
class PrecisionTable:
    """Versioned, read-only precision table."""

    values: np.ndarray
    sample_rate_hz: int = GRID_SAMPLE_RATE_HZ
    version: str = SIMULATED_TABLE_VERSION

    def __post_init__(self) -> None:
        values = np.array(self.values, dtype=np.float64)
        if values.shape != TABLE_SHAPE:
            raise ValueError(f"precision table must have shape {TABLE_SHAPE}, got {values.shape}")
        if not np.all(np.isfinite(values)):
            raise ValueError("precision table contains non-finite values")
        values.setflags(write=False)
        object.__setattr__(self, "values", values)

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("wb") as f:
            np.savez(
                f,
                values=self.values,
                sample_rate_hz=np.int64(self.sample_rate_hz),
                version=np.str_(self.version),
            )

    @classmethod
    def load(cls, path: Path) -> PrecisionTable:
        try:
            with np.load(path, allow_pickle=False) as data:
                values = np.array(data["values"], dtype=np.float64)
                sample_rate_hz = (
                    int(data["sample_rate_hz"])
                    if "sample_rate_hz" in data.files
                    else GRID_SAMPLE_RATE_HZ
                )
                version = str(data["version"]) if "version" in data.files else path.stem
        except KeyError:
            raise ValueError(f"{path} does not contain a 'values' array") from None
        LOGGER.info("Loaded precision table %s (version %s) from %s", values.shape, version, path)
        return cls(values=values, sample_rate_hz=sample_rate_hz, version=version)


def simulate_precision_table(
    sample_rate_hz: int = GRID_SAMPLE_RATE_HZ,
    duration_s: float = 30.0,
    warmup_s: float = 5.0,
    seed: int = _SIMULATION_SEED,
) -> PrecisionTable:
    """Simulate every table cell at once on the same seeded unit-noise sequence.

    Each cell runs the adaptive low-pass recurrence on ``jitter * noise`` with
    the true position at zero and records the RMS of the filtered output
    after the warm-up period.
    """
    dt = 1.0 / sample_rate_hz
    n_samples = int(round(duration_s * sample_rate_hz))
    n_warmup = int(round(warmup_s * sample_rate_hz))
    if n_samples <= n_warmup:
        raise ValueError("duration_s must be longer than warmup_s")

    rng = np.random.default_rng(seed)
    noise = rng.standard_normal(n_samples)

    jitter = jitter_levels()[:, None, None]
    min_cutoff = cutoff_levels()[None, :, None]
    beta = beta_levels()[None, None, :]

    pos = np.zeros(TABLE_SHAPE, dtype=np.float64)
    derivative = np.zeros(TABLE_SHAPE, dtype=np.float64)
    sq_sum = np.zeros(TABLE_SHAPE, dtype=np.float64)
    deriv_alpha = 1.0 - math.exp(-2.0 * math.pi * DERIVATIVE_CUTOFF_HZ * dt)

    for k in range(1, n_samples):
        sample = jitter * noise[k]
        raw = (sample - pos) / dt
        derivative = deriv_alpha * raw + (1.0 - deriv_alpha) * derivative
        cutoff = min_cutoff + beta * np.abs(derivative)
        alpha = 1.0 - np.exp(-2.0 * np.pi * cutoff * dt)
        pos = alpha * sample + (1.0 - alpha) * pos
        if k >= n_warmup:
            sq_sum += pos * pos

    values = np.sqrt(sq_sum / (n_samples - n_warmup))
    LOGGER.debug(
        "Simulated precision table at %d Hz over %d samples (min %.4f, max %.4f)",
        sample_rate_hz,
        n_samples,
        float(values.min()),
        float(values.max()),
    )
    return PrecisionTable(values=values, sample_rate_hz=sample_rate_hz)


@lru_cache(maxsize=1)
def default_table() -> PrecisionTable:
    return simulate_precision_table()


class PrecisionGrid:
    """Trilinear interpolation over a :class:`PrecisionTable`."""

    __slots__ = ("table", "_values")

    def __init__(self, table: PrecisionTable | None = None) -> None:
        self.table = table if table is not None else default_table()
        self._values = self.table.values.tolist()

    @classmethod
    def from_file(cls, path: Path) -> PrecisionGrid:
        return cls(PrecisionTable.load(path))

    def precision(self, jitter: float, cutoff_hz: float, beta: float) -> float:
        j_pos = min(max(jitter / GRID_JITTER_STEP - 1.0, 0.0), GRID_JITTER_LEVELS - 1.0)
        j_lo, j_hi = math.floor(j_pos), math.ceil(j_pos)

        c_pos = min(max(cutoff_hz / GRID_CUTOFF_STEP_HZ - 1.0, 0.0), GRID_CUTOFF_LEVELS - 1.0)
        c_lo, c_hi = math.floor(c_pos), math.ceil(c_pos)

        b_pos, b_lo, b_hi = beta_index(beta)

        table = self._values
        c000 = table[j_lo][c_lo][b_lo]
        c100 = table[j_hi][c_lo][b_lo]
        c010 = table[j_lo][c_hi][b_lo]
        c110 = table[j_hi][c_hi][b_lo]
        c001 = table[j_lo][c_lo][b_hi]
        c101 = table[j_hi][c_lo][b_hi]
        c011 = table[j_lo][c_hi][b_hi]
        c111 = table[j_hi][c_hi][b_hi]

        xd = (j_pos - j_lo) / (j_hi - j_lo) if j_hi != j_lo else 0.0
        yd = (c_pos - c_lo) / (c_hi - c_lo) if c_hi != c_lo else 0.0
        zd = (b_pos - b_lo) / (b_hi - b_lo) if b_hi != b_lo else 0.0

        c00 = c000 * (1.0 - xd) + c100 * xd
        c01 = c001 * (1.0 - xd) + c101 * xd
        c10 = c010 * (1.0 - xd) + c110 * xd
        c11 = c011 * (1.0 - xd) + c111 * xd

        c0 = c00 * (1.0 - yd) + c10 * yd
        c1 = c01 * (1.0 - yd) + c11 * yd

        return c0 * (1.0 - zd) + c1 * zd
