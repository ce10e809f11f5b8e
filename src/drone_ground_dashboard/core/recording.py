"""Operator-controlled gate deciding whether position fixes are logged."""

from __future__ import annotations

import enum
import logging
from threading import Lock

from .models import TelemetryKind, TelemetrySample

logger = logging.getLogger(__name__)


class RecordingState(enum.Enum):
    STANDBY = "standby"
    RECORDING = "recording"


class RecordingGate:
    """Two-state switch consulted for every inbound position sample."""

    def __init__(self) -> None:
        self._state = RecordingState.STANDBY
        self._lock = Lock()

    @property
    def state(self) -> RecordingState:
        return self._state

    @property
    def is_recording(self) -> bool:
        return self._state is RecordingState.RECORDING

    def start(self) -> None:
        with self._lock:
            if self._state is RecordingState.RECORDING:
                return
            self._state = RecordingState.RECORDING
        logger.info("Position recording started")

    def stop(self) -> None:
        with self._lock:
            if self._state is RecordingState.STANDBY:
                return
            self._state = RecordingState.STANDBY
        logger.info("Position recording stopped")

    def reset(self) -> None:
        """Return to standby without logging a user-visible stop."""

        with self._lock:
            self._state = RecordingState.STANDBY

    def admit(self, sample: TelemetrySample) -> bool:
        """Whether *sample* should be appended to the position log."""

        return sample.kind is TelemetryKind.POSITION and self._state is RecordingState.RECORDING


__all__ = ["RecordingGate", "RecordingState"]
