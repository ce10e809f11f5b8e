"""Shared fixtures for the drone ground dashboard tests."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Optional

import pytest

from drone_ground_dashboard.core import (
    EventChannel,
    RemoteCommandError,
    SessionSettings,
    SimCommandInterface,
    SubscriptionHandle,
    TelemetrySessionManager,
)


class FlakyCommandInterface(SimCommandInterface):
    """Simulated link with switches for injecting remote failures."""

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("ports", ("COM3", "/dev/ttyUSB0"))
        kwargs.setdefault("latency", 0.0)
        kwargs.setdefault("stream_interval", None)
        super().__init__(**kwargs)
        self.connect_gate: Optional[asyncio.Event] = None
        self.motor_ack_gate: Optional[asyncio.Event] = None
        self.fail_subscribe: set[EventChannel] = set()
        self.fail_release: set[EventChannel] = set()
        self.fail_stream = False
        self.fail_disconnect = False
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.stream_requests = 0

    async def connect(self, port: str, baud_rate: int) -> str:
        self.connect_calls += 1
        if self.connect_gate is not None:
            await self.connect_gate.wait()
        return await super().connect(port, baud_rate)

    async def disconnect(self) -> str:
        self.disconnect_calls += 1
        if self.fail_disconnect:
            raise RemoteCommandError("link dropped")
        return await super().disconnect()

    async def start_telemetry_stream(self) -> str:
        self.stream_requests += 1
        if self.fail_stream:
            raise RemoteCommandError("stream refused")
        return await super().start_telemetry_stream()

    async def start_motor_test(self, target: Any, throttle: float, duration: float) -> None:
        await super().start_motor_test(target, throttle, duration)
        if self.motor_ack_gate is not None:
            await self.motor_ack_gate.wait()

    async def subscribe(self, channel: EventChannel, handler: Any) -> SubscriptionHandle:
        if channel in self.fail_subscribe:
            raise RemoteCommandError(f"cannot listen on {channel.value}")
        handle = await super().subscribe(channel, handler)
        if channel not in self.fail_release:
            return handle

        def _broken_unsubscribe() -> None:
            raise RemoteCommandError(f"cannot unlisten {channel.value}")

        return SubscriptionHandle(channel, _broken_unsubscribe)


@pytest.fixture
def make_interface() -> type[FlakyCommandInterface]:
    return FlakyCommandInterface


@pytest.fixture
def interface() -> FlakyCommandInterface:
    return FlakyCommandInterface()


@pytest.fixture
def settings(tmp_path: Path) -> SessionSettings:
    return SessionSettings(connect_timeout=1.0, disconnect_timeout=1.0, export_dir=tmp_path)


@pytest.fixture
def session(interface: FlakyCommandInterface, settings: SessionSettings) -> TelemetrySessionManager:
    return TelemetrySessionManager(interface, settings)


def position_payload(index: int) -> dict[str, float]:
    return {"lat": 37.0 + index * 0.001, "lon": -122.0 - index * 0.001, "accuracyRadius": 1.5}


def imu_payload(index: int) -> dict[str, float]:
    return {
        "accelX": float(index),
        "accelY": 0.0,
        "accelZ": 9.8,
        "gyroX": 0.1,
        "gyroY": 0.2,
        "gyroZ": 0.3,
        "magX": 20.0,
        "magY": 5.0,
        "magZ": -40.0,
    }


@pytest.fixture
def position_event():
    return position_payload


@pytest.fixture
def imu_event():
    return imu_payload
