"""Abstract command interface consumed by the telemetry session manager."""

from __future__ import annotations

import abc
import enum
from threading import Lock
from typing import Any, Callable, Optional, Sequence

from .models import MotorTarget

EventHandler = Callable[[Any], None]
Unsubscribe = Callable[[], None]


class EventChannel(enum.Enum):
    """Named telemetry event streams pushed by the vehicle link."""

    INERTIAL_MAGNETIC = "imu-data"
    BATTERY = "battery-data"
    POSITION = "gps-data"
    TEMPERATURE = "temperature-data"


class SubscriptionHandle:
    """Owns one event-channel registration and releases it at most once."""

    def __init__(self, channel: EventChannel, unsubscribe: Unsubscribe) -> None:
        self._channel = channel
        self._unsubscribe: Optional[Unsubscribe] = unsubscribe
        self._lock = Lock()

    @property
    def channel(self) -> EventChannel:
        return self._channel

    @property
    def released(self) -> bool:
        return self._unsubscribe is None

    def release(self) -> None:
        """Invoke the unsubscribe function; later calls do nothing."""

        with self._lock:
            unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is None:
            return
        unsubscribe()

    def __repr__(self) -> str:
        state = "released" if self.released else "active"
        return f"SubscriptionHandle({self._channel.value}, {state})"


class CommandInterface(abc.ABC):
    """Remote vehicle command service reached over the serial link.

    Rejections are reported by raising; the ack text returned on success is
    only used for logging.
    """

    @abc.abstractmethod
    async def list_ports(self) -> Sequence[str]:
        """Enumerate the serial ports currently available."""

    @abc.abstractmethod
    async def connect(self, port: str, baud_rate: int) -> str:
        """Open the vehicle link on *port*."""

    @abc.abstractmethod
    async def disconnect(self) -> str:
        """Close the vehicle link."""

    @abc.abstractmethod
    async def start_telemetry_stream(self) -> str:
        """Ask the vehicle to start pushing telemetry events."""

    @abc.abstractmethod
    async def subscribe(self, channel: EventChannel, handler: EventHandler) -> SubscriptionHandle:
        """Register *handler* for every event published on *channel*."""

    @abc.abstractmethod
    async def start_motor_test(self, target: MotorTarget, throttle: float, duration: float) -> None:
        """Spin *target* at *throttle* percent for *duration* seconds."""

    @abc.abstractmethod
    async def stop_motor_test(self, target: MotorTarget) -> None:
        """Stop a running motor test."""

    @abc.abstractmethod
    async def set_throttle(self, percent: float) -> None:
        """Set the manual throttle percentage."""


__all__ = ["CommandInterface", "EventChannel", "EventHandler", "SubscriptionHandle", "Unsubscribe"]
