"""Simulated vehicle command interface for the drone ground dashboard."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Iterable, Optional, Sequence

from .base import CommandInterface, EventChannel, EventHandler, SubscriptionHandle
from .errors import RemoteCommandError
from .models import MotorTarget

logger = logging.getLogger(__name__)

DEFAULT_SIM_PORTS: tuple[str, ...] = ("COM3", "/dev/ttyUSB0", "/dev/ttyACM0")


class SimCommandInterface(CommandInterface):
    """Generates pseudo-random telemetry events for demonstration purposes.

    Events are published from an asyncio task started by
    :meth:`start_telemetry_stream`; with ``stream_interval=None`` no task is
    started and events are only produced through :meth:`publish`.
    """

    def __init__(
        self,
        *,
        ports: Iterable[str] = DEFAULT_SIM_PORTS,
        rejected_ports: Iterable[str] = (),
        latency: float = 0.2,
        stream_interval: Optional[float] = 0.5,
        position_origin: tuple[float, float] = (37.7749, -122.4194),
        position_delta: float = 0.00005,
        imu_delta: float = 0.2,
        battery_drain: float = 0.002,
        min_voltage: float = 10.5,
        seed: Optional[int] = None,
    ) -> None:
        self._ports = tuple(ports)
        self._rejected_ports = frozenset(rejected_ports)
        self._latency = latency
        self._stream_interval = stream_interval
        self._position_delta = position_delta
        self._imu_delta = imu_delta
        self._battery_drain = battery_drain
        self._min_voltage = min_voltage
        self._rng = random.Random(seed)

        self._handlers: dict[EventChannel, list[EventHandler]] = {channel: [] for channel in EventChannel}
        self._connected_port: Optional[str] = None
        self._stream_task: Optional[asyncio.Task[None]] = None
        self._throttle = 0.0
        self._motor_tests: set[MotorTarget] = set()

        self._latitude, self._longitude = position_origin
        self._voltage = 12.6
        self._temperature = 25.3
        self._accel = [0.0, 0.0, 9.8]
        self._gyro = [0.0, 0.0, 0.0]
        self._mag = [22.0, 5.0, -40.0]

    @property
    def connected_port(self) -> Optional[str]:
        return self._connected_port

    @property
    def throttle(self) -> float:
        return self._throttle

    @property
    def running_motor_tests(self) -> frozenset[MotorTarget]:
        return frozenset(self._motor_tests)

    def listener_count(self, channel: Optional[EventChannel] = None) -> int:
        """Number of registered handlers, for one channel or in total."""

        if channel is not None:
            return len(self._handlers[channel])
        return sum(len(handlers) for handlers in self._handlers.values())

    async def list_ports(self) -> Sequence[str]:
        return self._ports

    async def connect(self, port: str, baud_rate: int) -> str:
        await self._delay()
        if port not in self._ports or port in self._rejected_ports:
            raise RemoteCommandError(f"Mavlink Connect Error: cannot open serial:{port}:{baud_rate}")
        if self._connected_port is not None:
            logger.debug("Sim link replacing previous connection on %s", self._connected_port)
            self._stop_stream()
        self._connected_port = port
        logger.debug("Sim link connected to %s @ %d", port, baud_rate)
        return f"Connected to {port}"

    async def disconnect(self) -> str:
        await self._delay()
        self._stop_stream()
        self._motor_tests.clear()
        if self._connected_port is None:
            raise RemoteCommandError("No connection is active to disconnect.")
        self._connected_port = None
        return "Disconnected successfully"

    async def start_telemetry_stream(self) -> str:
        self._require_link()
        if self._stream_interval is not None and (self._stream_task is None or self._stream_task.done()):
            self._stream_task = asyncio.create_task(self._stream(self._stream_interval), name="sim-telemetry-stream")
        return "Telemetry stream started"

    async def subscribe(self, channel: EventChannel, handler: EventHandler) -> SubscriptionHandle:
        handlers = self._handlers[channel]
        handlers.append(handler)

        def _unsubscribe() -> None:
            handlers.remove(handler)

        return SubscriptionHandle(channel, _unsubscribe)

    async def start_motor_test(self, target: MotorTarget, throttle: float, duration: float) -> None:
        self._require_link()
        self._motor_tests.add(target)
        logger.debug("Sim motor test: %s at %.0f%% for %.0fs", target.value, throttle, duration)

    async def stop_motor_test(self, target: MotorTarget) -> None:
        self._motor_tests.discard(target)

    async def set_throttle(self, percent: float) -> None:
        self._require_link()
        self._throttle = percent

    def publish(self, channel: EventChannel, payload: Any) -> int:
        """Deliver *payload* to every handler on *channel*; returns the handler count."""

        handlers = list(self._handlers[channel])
        for handler in handlers:
            handler(payload)
        return len(handlers)

    def _require_link(self) -> None:
        if self._connected_port is None:
            raise RemoteCommandError("Vehicle link is not open")

    async def _delay(self) -> None:
        if self._latency > 0:
            await asyncio.sleep(self._latency)

    def _stop_stream(self) -> None:
        task, self._stream_task = self._stream_task, None
        if task is not None and not task.done():
            task.cancel()

    async def _stream(self, interval: float) -> None:
        logger.debug("Sim telemetry stream running every %.2fs", interval)
        tick = 0
        while True:
            self.publish(EventChannel.INERTIAL_MAGNETIC, self._next_imu())
            if tick % 2 == 0:
                self.publish(EventChannel.POSITION, self._next_position())
            if tick % 4 == 0:
                self.publish(EventChannel.BATTERY, self._next_voltage())
                self.publish(EventChannel.TEMPERATURE, {"temperature": self._next_temperature()})
            tick += 1
            await asyncio.sleep(interval)

    def _next_imu(self) -> dict[str, float]:
        spin = 1.0 + self._throttle / 25.0
        self._accel = [value + self._rng.uniform(-self._imu_delta, self._imu_delta) * spin for value in self._accel]
        self._accel[2] = 9.8 + (self._accel[2] - 9.8) * 0.8
        self._gyro = [value * 0.7 + self._rng.uniform(-1.0, 1.0) * spin for value in self._gyro]
        self._mag = [value + self._rng.uniform(-0.5, 0.5) for value in self._mag]
        return {
            "accelX": self._accel[0],
            "accelY": self._accel[1],
            "accelZ": self._accel[2],
            "gyroX": self._gyro[0],
            "gyroY": self._gyro[1],
            "gyroZ": self._gyro[2],
            "magX": self._mag[0],
            "magY": self._mag[1],
            "magZ": self._mag[2],
        }

    def _next_position(self) -> dict[str, float]:
        self._latitude += self._rng.uniform(-self._position_delta, self._position_delta)
        self._longitude += self._rng.uniform(-self._position_delta, self._position_delta)
        return {
            "lat": self._latitude,
            "lon": self._longitude,
            "accuracyRadius": round(self._rng.uniform(0.8, 4.0), 2),
        }

    def _next_voltage(self) -> float:
        load = self._battery_drain * (1.0 + self._throttle / 50.0)
        self._voltage = max(self._min_voltage, self._voltage - self._rng.uniform(0, load))
        return round(self._voltage, 3)

    def _next_temperature(self) -> float:
        target = 25.0 + self._throttle * 0.4
        self._temperature += (target - self._temperature) * 0.05 + self._rng.uniform(-0.1, 0.1)
        return round(self._temperature, 2)


__all__ = ["DEFAULT_SIM_PORTS", "SimCommandInterface"]
