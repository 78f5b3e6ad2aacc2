"""Calibration procedure states and their display labels."""

from __future__ import annotations

import enum


class CalibrationState(enum.StrEnum):
    wait_to_start = "wait_to_start"
    start = "start"
    estimate_sample_rate = "estimate_sample_rate"
    estimate_noise_prepare = "estimate_noise_prepare"
    estimate_noise = "estimate_noise"
    estimate_amplitude_prepare = "estimate_amplitude_prepare"
    estimate_amplitude = "estimate_amplitude"
    estimate_parameters = "estimate_parameters"
    tuned = "tuned"
    complete = "complete"

    @property
    def label(self) -> str:
        return STATE_LABELS[self]


STATE_LABELS: dict[CalibrationState, str] = {
    CalibrationState.wait_to_start: "wait to start",
    CalibrationState.start: "start",
    CalibrationState.estimate_sample_rate: "sample rate (fps)",
    CalibrationState.estimate_noise_prepare: "noise (prepare)",
    CalibrationState.estimate_noise: "noise",
    CalibrationState.estimate_amplitude_prepare: "amplitude (prepare)",
    CalibrationState.estimate_amplitude: "amplitude",
    CalibrationState.estimate_parameters: "parameters",
    CalibrationState.tuned: "tuned",
    CalibrationState.complete: "complete",
}

# States the host application leaves explicitly via ``advance()``.
GATED_TRANSITIONS: dict[CalibrationState, CalibrationState] = {
    CalibrationState.wait_to_start: CalibrationState.start,
    CalibrationState.estimate_noise_prepare: CalibrationState.estimate_noise,
    CalibrationState.estimate_amplitude_prepare: CalibrationState.estimate_amplitude,
    CalibrationState.estimate_amplitude: CalibrationState.estimate_parameters,
    CalibrationState.tuned: CalibrationState.complete,
}
