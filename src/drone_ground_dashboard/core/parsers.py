"""Decoders turning raw event payloads into :class:`TelemetrySample` objects."""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Optional

from .base import EventChannel
from .models import (
    BatteryReading,
    InertialReading,
    MagneticReading,
    PositionFix,
    TelemetryKind,
    TelemetrySample,
    TemperatureReading,
    Vector3,
    utc_now,
)

_MISSING = object()


def parse_imu_event(payload: Any, *, captured_at: Optional[datetime] = None) -> tuple[TelemetrySample, TelemetrySample]:
    """Split an ``imu-data`` payload into inertial and magnetic samples."""

    timestamp = captured_at or utc_now()
    accel = _vector(payload, "accel")
    gyro = _vector(payload, "gyro")
    mag = _vector(payload, "mag")
    inertial = TelemetrySample(TelemetryKind.INERTIAL, InertialReading(accel=accel, gyro=gyro), timestamp)
    magnetic = TelemetrySample(TelemetryKind.MAGNETIC, MagneticReading(mag=mag), timestamp)
    return inertial, magnetic


def parse_battery_event(payload: Any, *, captured_at: Optional[datetime] = None) -> TelemetrySample:
    """Decode a ``battery-data`` payload: either a bare voltage or ``{"voltage": v}``."""

    raw = payload if _is_number(payload) else _field(payload, "voltage", "voltage_v")
    voltage = _require_float(raw, "voltage")
    if voltage < 0.0:
        raise ValueError(f"电池电压不能为负数: {voltage}")
    return TelemetrySample(TelemetryKind.BATTERY, BatteryReading(voltage=voltage), captured_at or utc_now())


def parse_temperature_event(payload: Any, *, captured_at: Optional[datetime] = None) -> TelemetrySample:
    """Decode a ``temperature-data`` payload; a missing value reads as 0 °C."""

    raw = payload if _is_number(payload) else _field(payload, "temperature", default=0.0)
    celsius = _require_float(raw, "temperature")
    return TelemetrySample(TelemetryKind.TEMPERATURE, TemperatureReading(celsius=celsius), captured_at or utc_now())


def parse_position_event(payload: Any, *, captured_at: Optional[datetime] = None) -> TelemetrySample:
    """Decode a ``gps-data`` payload.

    The accuracy radius is read from ``accuracyRadius``/``accuracy``; older
    firmware only sends the satellite count (``sats``), which is used in its
    place.
    """

    latitude = _require_float(_field(payload, "lat", "latitude"), "latitude")
    longitude = _require_float(_field(payload, "lon", "longitude"), "longitude")
    if not -90.0 <= latitude <= 90.0:
        raise ValueError(f"纬度超出范围: {latitude}")
    if not -180.0 <= longitude <= 180.0:
        raise ValueError(f"经度超出范围: {longitude}")
    accuracy = _require_float(
        _field(payload, "accuracyRadius", "accuracy", "sats", default=0.0),
        "accuracy",
    )
    fix = PositionFix(latitude=latitude, longitude=longitude, accuracy=accuracy)
    return TelemetrySample(TelemetryKind.POSITION, fix, captured_at or utc_now())


def decode_event(channel: EventChannel, payload: Any) -> tuple[TelemetrySample, ...]:
    """Decode *payload* received on *channel* into one or more samples.

    Raises:
        TypeError: If the payload lacks a required field.
        ValueError: If a field holds an unusable value.
    """

    if channel is EventChannel.INERTIAL_MAGNETIC:
        return parse_imu_event(payload)
    if channel is EventChannel.BATTERY:
        return (parse_battery_event(payload),)
    if channel is EventChannel.TEMPERATURE:
        return (parse_temperature_event(payload),)
    if channel is EventChannel.POSITION:
        return (parse_position_event(payload),)
    raise ValueError(f"Unknown event channel: {channel!r}")


def _field(payload: Any, *names: str, default: Any = _MISSING) -> Any:
    for name in names:
        if isinstance(payload, Mapping):
            if name in payload and payload[name] is not None:
                return payload[name]
        else:
            value = getattr(payload, name, None)
            if value is not None:
                return value
    if default is _MISSING:
        raise TypeError(
            f"消息缺少字段 {'/'.join(names)}，收到类型: {type(payload).__name__}"
        )
    return default


def _vector(payload: Any, prefix: str) -> Vector3:
    """Read ``<prefix>X/Y/Z`` fields, or a nested ``<prefix>`` sequence."""

    nested = _field(payload, prefix, default=None)
    if nested is not None and not _is_number(nested):
        values = list(nested)
        if len(values) < 3:
            raise TypeError(f"{prefix} 向量长度不足 3")
        return (
            _require_float(values[0], f"{prefix}[0]"),
            _require_float(values[1], f"{prefix}[1]"),
            _require_float(values[2], f"{prefix}[2]"),
        )

    components = []
    for axis in ("X", "Y", "Z"):
        raw = _field(payload, f"{prefix}{axis}", default=0.0)
        components.append(_require_float(raw, f"{prefix}{axis}"))
    return (components[0], components[1], components[2])


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _require_float(value: Any, name: str) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"字段 {name} 无法解析为浮点数: {value!r}") from exc
    if math.isnan(result) or math.isinf(result):
        raise ValueError(f"字段 {name} 不是有限数值: {value!r}")
    return result


__all__ = [
    "decode_event",
    "parse_battery_event",
    "parse_imu_event",
    "parse_position_event",
    "parse_temperature_event",
]
