"""Calibration procedure: phase states and the session state machine."""

from .session import AmplitudeEstimator, CalibrationError, CalibrationResult, CalibrationSession
from .states import GATED_TRANSITIONS, STATE_LABELS, CalibrationState

__all__ = [
    "GATED_TRANSITIONS",
    "STATE_LABELS",
    "AmplitudeEstimator",
    "CalibrationError",
    "CalibrationResult",
    "CalibrationSession",
    "CalibrationState",
]
