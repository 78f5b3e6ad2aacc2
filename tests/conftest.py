from __future__ import annotations

import numpy as np
import pytest

from jittertune.filters import PrecisionGrid, PrecisionTable
from jittertune.filters.precision_grid import TABLE_SHAPE
from jittertune.simulation import SimulatedClock


@pytest.fixture(scope="session")
def default_grid() -> PrecisionGrid:
    """Grid over the embedded simulated table (built once per test session)."""
    return PrecisionGrid()


@pytest.fixture
def constant_grid():
    """Factory for grids whose every cell holds the same precision."""

    def _make(value: float) -> PrecisionGrid:
        return PrecisionGrid(PrecisionTable(values=np.full(TABLE_SHAPE, value)))

    return _make


@pytest.fixture
def clock() -> SimulatedClock:
    return SimulatedClock()
