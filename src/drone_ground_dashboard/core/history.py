"""Aggregated telemetry history for the active (or most recent) session."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import RLock
from typing import Optional

from .buffers import INERTIAL_HISTORY_CAPACITY, POSITION_LOG_CAPACITY, ChannelBuffer
from .models import (
    BatteryReading,
    InertialReading,
    MagneticReading,
    PositionFix,
    PositionLogEntry,
    TelemetryKind,
    TelemetrySample,
    TemperatureReading,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AggregateState:
    """Read-only composite of every buffer and scalar cell at one instant."""

    battery: Optional[BatteryReading]
    temperature: Optional[TemperatureReading]
    latest_inertial: Optional[InertialReading]
    latest_magnetic: Optional[MagneticReading]
    current_position: Optional[PositionFix]
    inertial_history: tuple[TelemetrySample, ...]
    magnetic_history: tuple[TelemetrySample, ...]
    battery_history: tuple[TelemetrySample, ...]
    temperature_history: tuple[TelemetrySample, ...]
    position_log: tuple[PositionLogEntry, ...]

    @property
    def battery_voltage(self) -> Optional[float]:
        return None if self.battery is None else self.battery.voltage

    @property
    def temperature_celsius(self) -> Optional[float]:
        return None if self.temperature is None else self.temperature.celsius


class HistoryAggregator:
    """Owns one :class:`ChannelBuffer` per telemetry kind plus latest-value cells.

    High-rate vector data (inertial, magnetic) is kept as chart history. Battery
    and temperature overwrite a scalar cell, with a short history alongside
    for charting. Position samples only move the "current position" cell;
    persisting them in the log is decided by the recording gate and done via
    :meth:`log_position`.
    """

    def __init__(
        self,
        *,
        history_capacity: int = INERTIAL_HISTORY_CAPACITY,
        position_capacity: int = POSITION_LOG_CAPACITY,
    ) -> None:
        self._inertial: ChannelBuffer[TelemetrySample] = ChannelBuffer(TelemetryKind.INERTIAL, history_capacity)
        self._magnetic: ChannelBuffer[TelemetrySample] = ChannelBuffer(TelemetryKind.MAGNETIC, history_capacity)
        self._battery: ChannelBuffer[TelemetrySample] = ChannelBuffer(TelemetryKind.BATTERY, history_capacity)
        self._temperature: ChannelBuffer[TelemetrySample] = ChannelBuffer(TelemetryKind.TEMPERATURE, history_capacity)
        self._positions: ChannelBuffer[PositionLogEntry] = ChannelBuffer(TelemetryKind.POSITION, position_capacity)
        self._buffers = {
            TelemetryKind.INERTIAL: self._inertial,
            TelemetryKind.MAGNETIC: self._magnetic,
            TelemetryKind.BATTERY: self._battery,
            TelemetryKind.TEMPERATURE: self._temperature,
        }

        self._lock = RLock()
        self._battery_cell: Optional[BatteryReading] = None
        self._temperature_cell: Optional[TemperatureReading] = None
        self._inertial_cell: Optional[InertialReading] = None
        self._magnetic_cell: Optional[MagneticReading] = None
        self._position_cell: Optional[PositionFix] = None
        self._next_position_id = 1

    @property
    def next_position_id(self) -> int:
        with self._lock:
            return self._next_position_id

    def record(self, *samples: TelemetrySample) -> None:
        """Ingest *samples*; several samples are applied as one atomic update."""

        with self._lock:
            for sample in samples:
                self._record_one(sample)

    def _record_one(self, sample: TelemetrySample) -> None:
        payload = sample.payload
        if sample.kind is TelemetryKind.POSITION:
            self._position_cell = payload  # type: ignore[assignment]
            return

        self._buffers[sample.kind].push(sample)
        if sample.kind is TelemetryKind.INERTIAL:
            self._inertial_cell = payload  # type: ignore[assignment]
        elif sample.kind is TelemetryKind.MAGNETIC:
            self._magnetic_cell = payload  # type: ignore[assignment]
        elif sample.kind is TelemetryKind.BATTERY:
            self._battery_cell = payload  # type: ignore[assignment]
        elif sample.kind is TelemetryKind.TEMPERATURE:
            self._temperature_cell = payload  # type: ignore[assignment]

    def log_position(self, sample: TelemetrySample) -> PositionLogEntry:
        """Append *sample* to the position log under a fresh sequential id."""

        with self._lock:
            entry = PositionLogEntry.from_sample(self._next_position_id, sample)
            self._next_position_id += 1
            self._positions.push(entry)
        logger.debug("Logged position #%d (%.6f, %.6f)", entry.id, entry.latitude, entry.longitude)
        return entry

    def position_log(self) -> tuple[PositionLogEntry, ...]:
        return self._positions.snapshot()

    def inertial_history(self) -> tuple[TelemetrySample, ...]:
        return self._inertial.snapshot()

    def magnetic_history(self) -> tuple[TelemetrySample, ...]:
        return self._magnetic.snapshot()

    def export_state(self) -> AggregateState:
        """Return every buffer and cell as read at a single instant."""

        with self._lock:
            return AggregateState(
                battery=self._battery_cell,
                temperature=self._temperature_cell,
                latest_inertial=self._inertial_cell,
                latest_magnetic=self._magnetic_cell,
                current_position=self._position_cell,
                inertial_history=self._inertial.snapshot(),
                magnetic_history=self._magnetic.snapshot(),
                battery_history=self._battery.snapshot(),
                temperature_history=self._temperature.snapshot(),
                position_log=self._positions.snapshot(),
            )

    def reset(self) -> None:
        """Drop all history and restart position ids at 1."""

        with self._lock:
            for buffer in self._buffers.values():
                buffer.clear()
            self._positions.clear()
            self._battery_cell = None
            self._temperature_cell = None
            self._inertial_cell = None
            self._magnetic_cell = None
            self._position_cell = None
            self._next_position_id = 1
        logger.debug("Telemetry history cleared")


__all__ = ["AggregateState", "HistoryAggregator"]
