"""Core telemetry data models for the drone ground dashboard."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Tuple, Union

Vector3 = Tuple[float, float, float]

BATTERY_EMPTY_VOLTAGE = 11.0
BATTERY_FULL_VOLTAGE = 12.6


class TelemetryKind(enum.Enum):
    """Categories of telemetry data received from the vehicle."""

    INERTIAL = "inertial"
    MAGNETIC = "magnetic"
    BATTERY = "battery"
    TEMPERATURE = "temperature"
    POSITION = "position"


class MotorTarget(enum.Enum):
    """Motors addressable by test commands; ``ALL`` drives every motor."""

    MOTOR_1 = "motor1"
    MOTOR_2 = "motor2"
    MOTOR_3 = "motor3"
    MOTOR_4 = "motor4"
    ALL = "all"

    @property
    def label(self) -> str:
        return _MOTOR_LABELS[self]


_MOTOR_LABELS = {
    MotorTarget.MOTOR_1: "Motor 1 (Front-Left)",
    MotorTarget.MOTOR_2: "Motor 2 (Front-Right)",
    MotorTarget.MOTOR_3: "Motor 3 (Back-Right)",
    MotorTarget.MOTOR_4: "Motor 4 (Back-Left)",
    MotorTarget.ALL: "All Motors",
}


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(tz=timezone.utc)


def to_utc_iso(timestamp: datetime) -> str:
    """Serialise *timestamp* as ISO-8601, assuming UTC for naive values."""

    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc).isoformat()


@dataclass(frozen=True, slots=True)
class InertialReading:
    """Accelerometer (m/s²) and gyroscope (°/s) vectors."""

    accel: Vector3 = (0.0, 0.0, 0.0)
    gyro: Vector3 = (0.0, 0.0, 0.0)


@dataclass(frozen=True, slots=True)
class MagneticReading:
    """Magnetometer vector in µT."""

    mag: Vector3 = (0.0, 0.0, 0.0)


@dataclass(frozen=True, slots=True)
class BatteryReading:
    """Pack voltage with a derived charge estimate."""

    voltage: float

    @property
    def percent(self) -> float:
        """Linear charge estimate between the empty and full pack voltages."""

        span = BATTERY_FULL_VOLTAGE - BATTERY_EMPTY_VOLTAGE
        ratio = (self.voltage - BATTERY_EMPTY_VOLTAGE) / span
        return max(0.0, min(100.0, ratio * 100.0))

    @property
    def level(self) -> str:
        percent = self.percent
        if percent >= 80.0:
            return "good"
        if percent >= 50.0:
            return "fair"
        if percent >= 20.0:
            return "low"
        return "critical"


@dataclass(frozen=True, slots=True)
class TemperatureReading:
    """Board temperature in degrees Celsius."""

    celsius: float

    @property
    def band(self) -> str:
        if self.celsius < 35.0:
            return "cold"
        if self.celsius < 50.0:
            return "normal"
        if self.celsius < 70.0:
            return "warm"
        return "hot"


@dataclass(frozen=True, slots=True)
class PositionFix:
    """GNSS position with its accuracy radius."""

    latitude: float
    longitude: float
    accuracy: float = 0.0


Payload = Union[InertialReading, MagneticReading, BatteryReading, TemperatureReading, PositionFix]

_PAYLOAD_TYPES: dict[TelemetryKind, type] = {
    TelemetryKind.INERTIAL: InertialReading,
    TelemetryKind.MAGNETIC: MagneticReading,
    TelemetryKind.BATTERY: BatteryReading,
    TelemetryKind.TEMPERATURE: TemperatureReading,
    TelemetryKind.POSITION: PositionFix,
}


@dataclass(frozen=True, slots=True)
class TelemetrySample:
    """A timestamped value of one telemetry kind."""

    kind: TelemetryKind
    payload: Payload
    captured_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        expected = _PAYLOAD_TYPES[self.kind]
        if not isinstance(self.payload, expected):
            raise TypeError(
                f"{self.kind.name} samples carry {expected.__name__}, "
                f"got {type(self.payload).__name__}"
            )


@dataclass(frozen=True, slots=True)
class PositionLogEntry:
    """A recorded position fix with its sequential log id."""

    id: int
    captured_at: datetime
    latitude: float
    longitude: float
    accuracy: float

    @classmethod
    def from_sample(cls, entry_id: int, sample: TelemetrySample) -> "PositionLogEntry":
        fix = sample.payload
        if not isinstance(fix, PositionFix):
            raise TypeError(f"Position log entries require a position sample, got {sample.kind.name}")
        return cls(
            id=entry_id,
            captured_at=sample.captured_at,
            latitude=fix.latitude,
            longitude=fix.longitude,
            accuracy=fix.accuracy,
        )

    @property
    def formatted_time(self) -> str:
        """Capture time rendered as ``HH:MM:SS`` in UTC."""

        timestamp = self.captured_at
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return timestamp.astimezone(timezone.utc).strftime("%H:%M:%S")

    def to_dict(self) -> dict[str, Any]:
        """Serialise the entry into JSON-friendly primitives."""

        return {
            "id": self.id,
            "timestamp": to_utc_iso(self.captured_at),
            "latitude": self.latitude,
            "longitude": self.longitude,
            "accuracy": self.accuracy,
        }


__all__ = [
    "BATTERY_EMPTY_VOLTAGE",
    "BATTERY_FULL_VOLTAGE",
    "BatteryReading",
    "InertialReading",
    "MagneticReading",
    "MotorTarget",
    "Payload",
    "PositionFix",
    "PositionLogEntry",
    "TelemetryKind",
    "TelemetrySample",
    "TemperatureReading",
    "Vector3",
    "to_utc_iso",
    "utc_now",
]
