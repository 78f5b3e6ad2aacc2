"""Synthetic pointer device and a scripted calibration run.

Used by ``jittertune simulate`` and the end-to-end tests: a seeded numpy
generator produces a jittery (x, y) stream at a fixed rate, a
:class:`SimulatedClock` stands in for wall-clock time, and
:func:`run_calibration` plays the role of the host application, pressing
"continue" at every gated phase.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np

from .calibration import CalibrationSession, CalibrationState

LOGGER = logging.getLogger(__name__)

_PREPARE_STATES = (
    CalibrationState.estimate_noise_prepare,
    CalibrationState.estimate_amplitude_prepare,
)


@dataclass(frozen=True, slots=True)
class PointerProfile:
    name: str
    sample_hz: float
    noise_stddev: float
    drift_hz: float
    drift_px: float
    jump_px: float
    jump_interval_s: float


PROFILE_LIBRARY: dict[str, PointerProfile] = {
    "head_tracker": PointerProfile(
        name="head_tracker",
        sample_hz=60.0,
        noise_stddev=1.0,
        drift_hz=0.25,
        drift_px=2.0,
        jump_px=50.0,
        jump_interval_s=0.5,
    ),
    "gaze_tracker": PointerProfile(
        name="gaze_tracker",
        sample_hz=90.0,
        noise_stddev=3.0,
        drift_hz=0.4,
        drift_px=4.0,
        jump_px=120.0,
        jump_interval_s=0.4,
    ),
}


class SimulatedClock:
    """Monotonic clock advanced explicitly by the caller."""

    __slots__ = ("now_s",)

    def __init__(self, start_s: float = 0.0) -> None:
        self.now_s = start_s

    def __call__(self) -> float:
        return self.now_s

    def advance(self, delta_s: float) -> None:
        self.now_s += delta_s


class SyntheticPointer:
    """Jittery 2D pointer: Gaussian noise on top of a slow drift, plus optional jumps."""

    def __init__(self, profile: PointerProfile, seed: int | None = 0) -> None:
        self.profile = profile
        self._rng = np.random.default_rng(seed)
        self._t_s = 0.0
        self._offset = np.zeros(2, dtype=np.float64)
        self._next_jump_s = profile.jump_interval_s
        self.moving = False

    @property
    def delta_s(self) -> float:
        return 1.0 / self.profile.sample_hz

    def sample(self) -> tuple[float, float]:
        p = self.profile
        if self.moving and self._t_s >= self._next_jump_s:
            self._offset += self._rng.choice([-1.0, 1.0], size=2) * p.jump_px
            self._next_jump_s = self._t_s + p.jump_interval_s
        drift = p.drift_px * math.sin(2.0 * math.pi * p.drift_hz * self._t_s)
        noise = self._rng.normal(0.0, p.noise_stddev, size=2)
        self._t_s += self.delta_s
        return (
            float(self._offset[0] + drift + noise[0]),
            float(self._offset[1] + 0.5 * drift + noise[1]),
        )


def run_calibration(
    session: CalibrationSession,
    pointer: SyntheticPointer,
    clock: SimulatedClock,
    *,
    prepare_s: float = 0.5,
    amplitude_s: float = 4.0,
    max_duration_s: float = 600.0,
) -> CalibrationState:
    """Drive *session* with *pointer* until it is tuned or *max_duration_s* passes.

    Gated phases are advanced after *prepare_s*; the amplitude phase is left
    after *amplitude_s* of simulated movement.
    """
    if session.state is CalibrationState.wait_to_start:
        session.advance()

    last_state: CalibrationState | None = None
    entered_s = clock()
    while clock() < max_duration_s:
        x, y = pointer.sample()
        state = session.update(x, y)
        clock.advance(pointer.delta_s)
        if state is not last_state:
            last_state = state
            entered_s = clock()

        if state is CalibrationState.tuned:
            break
        pointer.moving = state is CalibrationState.estimate_amplitude
        in_state_s = clock() - entered_s
        if state in _PREPARE_STATES and in_state_s >= prepare_s:
            session.advance()
        elif (
            state is CalibrationState.estimate_amplitude
            and session.amplitude_dwell_s is None
            and in_state_s >= amplitude_s
        ):
            session.advance()
    else:
        LOGGER.warning("Simulated calibration stopped in state %s", session.state.label)

    return session.state
