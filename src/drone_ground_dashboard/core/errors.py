"""Exception hierarchy shared by the telemetry session components."""

from __future__ import annotations


class DashboardError(Exception):
    """Base class for every error raised by the dashboard core."""


class SessionError(DashboardError):
    """Raised when a connection lifecycle request cannot be honoured."""


class InvalidPortError(SessionError, ValueError):
    """The requested port is not part of the latest port enumeration."""

    def __init__(self, port: str, available: tuple[str, ...] = ()) -> None:
        self.port = port
        self.available = available
        listing = ", ".join(available) if available else "none"
        super().__init__(f"Port '{port}' is not available (known ports: {listing})")


class InvalidBaudError(SessionError, ValueError):
    """The requested baud rate is not one of the supported rates."""

    def __init__(self, baud_rate: int) -> None:
        self.baud_rate = baud_rate
        super().__init__(f"Unsupported baud rate: {baud_rate}")


class ConnectError(SessionError):
    """The remote side rejected the connection or never acknowledged it."""


class SubscriptionError(SessionError):
    """Attaching the telemetry event listeners failed."""


class SessionBusyError(SessionError):
    """Another lifecycle transition is pending or a session is already open."""


class NotConnectedError(SessionError):
    """A vehicle command was issued while no session is connected."""


class CommandError(DashboardError):
    """Base class for motor/throttle command failures."""


class InvalidCommandError(CommandError, ValueError):
    """Command arguments fall outside the accepted ranges."""


class MotorTestActiveError(CommandError):
    """A motor test is already running."""


class MotorTestCancelledError(CommandError):
    """The motor test was cancelled before its start was acknowledged."""


class ExportIOError(DashboardError, OSError):
    """Writing a telemetry export to disk failed."""


class RemoteCommandError(DashboardError):
    """The remote command interface reported a failure."""


__all__ = [
    "CommandError",
    "ConnectError",
    "DashboardError",
    "ExportIOError",
    "InvalidBaudError",
    "InvalidCommandError",
    "InvalidPortError",
    "MotorTestActiveError",
    "MotorTestCancelledError",
    "NotConnectedError",
    "RemoteCommandError",
    "SessionBusyError",
    "SessionError",
    "SubscriptionError",
]
