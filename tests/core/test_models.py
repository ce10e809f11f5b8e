"""Tests for telemetry value objects."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from drone_ground_dashboard.core import (
    BatteryReading,
    MotorTarget,
    PositionFix,
    PositionLogEntry,
    TelemetryKind,
    TelemetrySample,
    TemperatureReading,
)


@pytest.mark.parametrize(
    ("voltage", "percent", "level"),
    [(12.6, 100.0, "good"), (13.0, 100.0, "good"), (11.8, 50.0, "fair"), (11.4, 25.0, "low"), (10.2, 0.0, "critical")],
)
def test_battery_reading_percent_and_level(voltage: float, percent: float, level: str) -> None:
    reading = BatteryReading(voltage=voltage)

    assert reading.percent == pytest.approx(percent)
    assert reading.level == level


@pytest.mark.parametrize(("celsius", "band"), [(20.0, "cold"), (35.0, "normal"), (55.0, "warm"), (71.0, "hot")])
def test_temperature_band(celsius: float, band: str) -> None:
    assert TemperatureReading(celsius=celsius).band == band


def test_position_log_entry_formats_utc_time() -> None:
    local = timezone(timedelta(hours=8))
    sample = TelemetrySample(
        TelemetryKind.POSITION,
        PositionFix(latitude=24.4798, longitude=118.0894, accuracy=3.0),
        datetime(2025, 5, 4, 17, 5, 9, tzinfo=local),
    )

    entry = PositionLogEntry.from_sample(12, sample)

    assert entry.id == 12
    assert entry.formatted_time == "09:05:09"
    assert entry.to_dict()["timestamp"] == "2025-05-04T09:05:09+00:00"


def test_motor_target_labels() -> None:
    assert MotorTarget.MOTOR_1.label == "Motor 1 (Front-Left)"
    assert MotorTarget.ALL.label == "All Motors"
    assert MotorTarget("motor3") is MotorTarget.MOTOR_3
