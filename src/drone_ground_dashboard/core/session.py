"""Connection lifecycle and session context for the drone ground dashboard."""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional

from .base import CommandInterface
from .buffers import INERTIAL_HISTORY_CAPACITY, POSITION_LOG_CAPACITY
from .errors import (
    ConnectError,
    InvalidBaudError,
    InvalidPortError,
    MotorTestActiveError,
    NotConnectedError,
    SessionBusyError,
    SubscriptionError,
)
from .history import HistoryAggregator
from .models import MotorTarget
from .motors import MotorTest, MotorTestScheduler, validate_throttle
from .multiplexer import EventMultiplexer
from .recording import RecordingGate, RecordingState
from .snapshots import SnapshotExporter

logger = logging.getLogger(__name__)

SUPPORTED_BAUD_RATES: tuple[int, ...] = (9600, 19200, 38400, 57600, 115200, 230400, 460800, 921600)
DEFAULT_BAUD_RATE = 115200
DEFAULT_CONNECT_TIMEOUT = 5.0
DEFAULT_DISCONNECT_TIMEOUT = 2.0

StateListener = Callable[["SessionState"], None]


class SessionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"


@dataclass
class SessionSettings:
    """Tunables for a :class:`TelemetrySessionManager`."""

    connect_timeout: Optional[float] = DEFAULT_CONNECT_TIMEOUT
    disconnect_timeout: Optional[float] = DEFAULT_DISCONNECT_TIMEOUT
    clear_on_connect: bool = True
    history_capacity: int = INERTIAL_HISTORY_CAPACITY
    position_capacity: int = POSITION_LOG_CAPACITY
    export_dir: Optional[Path] = None

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "SessionSettings":
        """Construct settings from a generic mapping (e.g. a parsed TOML table)."""

        settings = cls()
        if "connect_timeout" in mapping:
            settings.connect_timeout = _optional_timeout(mapping["connect_timeout"], "connect_timeout")
        if "disconnect_timeout" in mapping:
            settings.disconnect_timeout = _optional_timeout(mapping["disconnect_timeout"], "disconnect_timeout")
        if "clear_on_connect" in mapping:
            settings.clear_on_connect = bool(mapping["clear_on_connect"])
        if "history_capacity" in mapping:
            settings.history_capacity = int(mapping["history_capacity"])
        if "position_capacity" in mapping:
            settings.position_capacity = int(mapping["position_capacity"])
        if mapping.get("export_dir"):
            settings.export_dir = Path(str(mapping["export_dir"])).expanduser()
        return settings


def _optional_timeout(value: Any, name: str) -> Optional[float]:
    if value is None:
        return None
    timeout = float(value)
    if timeout <= 0:
        raise ValueError(f"{name} must be positive, got {timeout}")
    return timeout


class TelemetrySessionManager:
    """Owns the single vehicle session and everything scoped to it.

    One instance is created per process and handed to whoever drives it (the
    UI, the CLI, tests). Operator requests are expected on one event loop;
    state checks run before the first ``await`` so overlapping requests are
    rejected rather than interleaved.
    """

    def __init__(self, interface: CommandInterface, settings: Optional[SessionSettings] = None) -> None:
        self._interface = interface
        self._settings = settings or SessionSettings()
        self._state = SessionState.DISCONNECTED
        self._port: Optional[str] = None
        self._baud_rate: Optional[int] = None
        self._available_ports: tuple[str, ...] = ()
        self._listeners: List[StateListener] = []
        self._throttle = 0.0
        self._teardown: Optional[asyncio.Future[None]] = None

        self._history = HistoryAggregator(
            history_capacity=self._settings.history_capacity,
            position_capacity=self._settings.position_capacity,
        )
        self._gate = RecordingGate()
        self._multiplexer = EventMultiplexer(interface, self._history, self._gate)
        self._motors = MotorTestScheduler(interface)
        self._exporter = SnapshotExporter(self._history, export_dir=self._settings.export_dir)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is SessionState.CONNECTED

    @property
    def port(self) -> Optional[str]:
        return self._port

    @property
    def baud_rate(self) -> Optional[int]:
        return self._baud_rate

    @property
    def available_ports(self) -> tuple[str, ...]:
        return self._available_ports

    @property
    def settings(self) -> SessionSettings:
        return self._settings

    @property
    def history(self) -> HistoryAggregator:
        return self._history

    @property
    def multiplexer(self) -> EventMultiplexer:
        return self._multiplexer

    @property
    def motors(self) -> MotorTestScheduler:
        return self._motors

    @property
    def exporter(self) -> SnapshotExporter:
        return self._exporter

    @property
    def recording_state(self) -> RecordingState:
        return self._gate.state

    def add_state_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def _set_state(self, new_state: SessionState) -> None:
        if new_state is self._state:
            return
        old_state, self._state = self._state, new_state
        logger.info("Session state: %s -> %s", old_state.value, new_state.value)
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:  # noqa: BLE001
                logger.exception("Session state listener failed")

    async def refresh_ports(self) -> tuple[str, ...]:
        """Enumerate available ports; the result gates the next :meth:`connect`."""

        ports = tuple(await self._interface.list_ports())
        self._available_ports = ports
        logger.debug("Available ports: %s", ", ".join(ports) or "none")
        return ports

    async def connect(self, port: str, baud_rate: int = DEFAULT_BAUD_RATE) -> None:
        """Open a session on *port* and attach telemetry listeners.

        Raises:
            SessionBusyError: If a session exists or a transition is pending.
            InvalidPortError: If *port* was not in the latest enumeration.
            InvalidBaudError: If *baud_rate* is not supported.
            ConnectError: If the remote side rejects or never acknowledges.
            SubscriptionError: If listeners cannot be attached.
        """

        if self._state is not SessionState.DISCONNECTED:
            raise SessionBusyError(f"Cannot connect while {self._state.value}")
        if port not in self._available_ports:
            raise InvalidPortError(port, self._available_ports)
        if baud_rate not in SUPPORTED_BAUD_RATES:
            raise InvalidBaudError(baud_rate)

        self._set_state(SessionState.CONNECTING)
        try:
            ack = await asyncio.wait_for(
                self._interface.connect(port, baud_rate),
                timeout=self._settings.connect_timeout,
            )
        except asyncio.TimeoutError as exc:
            self._set_state(SessionState.DISCONNECTED)
            raise ConnectError(
                f"No acknowledgement from {port} within {self._settings.connect_timeout}s"
            ) from exc
        except asyncio.CancelledError:
            self._set_state(SessionState.DISCONNECTED)
            raise
        except Exception as exc:
            self._set_state(SessionState.DISCONNECTED)
            raise ConnectError(f"Connection to {port} rejected: {exc}") from exc

        logger.info("Vehicle link acknowledged on %s @ %d: %s", port, baud_rate, ack)
        self._gate.reset()

        try:
            await self._multiplexer.attach()
        except (SubscriptionError, asyncio.CancelledError):
            self._multiplexer.detach()
            await self._send_remote_disconnect()
            self._set_state(SessionState.DISCONNECTED)
            raise

        # The previous session stays exportable until the new one is attached.
        if self._settings.clear_on_connect:
            self._history.reset()
        self._port = port
        self._baud_rate = baud_rate
        self._set_state(SessionState.CONNECTED)

    async def disconnect(self) -> None:
        """Tear the session down; a no-op when already disconnected.

        Local cleanup always completes. A failing remote disconnect command is
        logged and suppressed. A call made while another disconnect is running
        waits for that teardown and returns.

        Raises:
            SessionBusyError: If a connect is still pending.
        """

        if self._state is SessionState.DISCONNECTED:
            logger.debug("Disconnect requested with no active session")
            return
        if self._state is SessionState.DISCONNECTING and self._teardown is not None:
            logger.debug("Disconnect already in progress; waiting for it")
            await asyncio.shield(self._teardown)
            return
        if self._state is not SessionState.CONNECTED:
            raise SessionBusyError(f"Cannot disconnect while {self._state.value}")

        self._set_state(SessionState.DISCONNECTING)
        teardown = self._teardown = asyncio.get_running_loop().create_future()
        try:
            self._motors.cancel()
            failed = self._multiplexer.detach()
            if failed:
                logger.warning("Some listeners failed to release: %s", ", ".join(c.value for c in failed))
            self._gate.reset()
            await self._send_remote_disconnect()
        finally:
            self._port = None
            self._baud_rate = None
            self._teardown = None
            self._set_state(SessionState.DISCONNECTED)
            teardown.set_result(None)

    async def shutdown(self) -> None:
        """Close any open session; used when the application exits."""

        if self._state in (SessionState.CONNECTED, SessionState.DISCONNECTING):
            await self.disconnect()
        else:
            self._motors.cancel()
            self._multiplexer.detach()

    async def _send_remote_disconnect(self) -> None:
        try:
            ack = await asyncio.wait_for(
                self._interface.disconnect(),
                timeout=self._settings.disconnect_timeout,
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.warning("Remote disconnect failed, continuing local teardown: %r", exc)
        else:
            logger.info("Vehicle link closed: %s", ack)

    def start_recording(self) -> None:
        self._gate.start()

    def stop_recording(self) -> None:
        self._gate.stop()

    def _require_connected(self, action: str) -> None:
        if self._state is not SessionState.CONNECTED:
            raise NotConnectedError(f"Cannot {action} while {self._state.value}")

    async def test_motor(self, target: MotorTarget, duration: int, throttle: Optional[float] = None) -> MotorTest:
        """Run a timed test on *target*; *throttle* defaults to the last set value."""

        self._require_connected("test motors")
        return await self._motors.start(target, duration, self._throttle if throttle is None else throttle)

    async def set_throttle(self, percent: float) -> None:
        self._require_connected("set throttle")
        value = validate_throttle(percent)
        if self._motors.is_running:
            raise MotorTestActiveError("Throttle is locked while a motor test runs")
        await self._interface.set_throttle(value)
        self._throttle = value
        logger.info("Throttle set to %.0f%%", value)

    @property
    def throttle(self) -> float:
        return self._throttle


__all__ = [
    "DEFAULT_BAUD_RATE",
    "SUPPORTED_BAUD_RATES",
    "SessionSettings",
    "SessionState",
    "TelemetrySessionManager",
]
