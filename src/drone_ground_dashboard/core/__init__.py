"""Telemetry session core for the drone ground dashboard."""

from .base import CommandInterface, EventChannel, SubscriptionHandle
from .buffers import ChannelBuffer
from .errors import (
    CommandError,
    ConnectError,
    DashboardError,
    ExportIOError,
    InvalidBaudError,
    InvalidCommandError,
    InvalidPortError,
    MotorTestActiveError,
    MotorTestCancelledError,
    NotConnectedError,
    RemoteCommandError,
    SessionBusyError,
    SessionError,
    SubscriptionError,
)
from .history import AggregateState, HistoryAggregator
from .models import (
    BatteryReading,
    InertialReading,
    MagneticReading,
    MotorTarget,
    PositionFix,
    PositionLogEntry,
    TelemetryKind,
    TelemetrySample,
    TemperatureReading,
    Vector3,
)
from .motors import TEST_DURATIONS, MotorTest, MotorTestScheduler
from .multiplexer import EventMultiplexer
from .parsers import decode_event
from .recording import RecordingGate, RecordingState
from .session import (
    SUPPORTED_BAUD_RATES,
    SessionSettings,
    SessionState,
    TelemetrySessionManager,
)
from .sim import SimCommandInterface
from .snapshots import SnapshotExporter, TelemetryDocument

__all__ = [
    "AggregateState",
    "BatteryReading",
    "ChannelBuffer",
    "CommandError",
    "CommandInterface",
    "ConnectError",
    "DashboardError",
    "EventChannel",
    "EventMultiplexer",
    "ExportIOError",
    "HistoryAggregator",
    "InertialReading",
    "InvalidBaudError",
    "InvalidCommandError",
    "InvalidPortError",
    "MagneticReading",
    "MotorTarget",
    "MotorTest",
    "MotorTestActiveError",
    "MotorTestCancelledError",
    "MotorTestScheduler",
    "NotConnectedError",
    "PositionFix",
    "PositionLogEntry",
    "RecordingGate",
    "RecordingState",
    "RemoteCommandError",
    "SUPPORTED_BAUD_RATES",
    "SessionBusyError",
    "SessionError",
    "SessionSettings",
    "SessionState",
    "SimCommandInterface",
    "SnapshotExporter",
    "SubscriptionError",
    "SubscriptionHandle",
    "TEST_DURATIONS",
    "TelemetryDocument",
    "TelemetryKind",
    "TelemetrySample",
    "TelemetrySessionManager",
    "TemperatureReading",
    "Vector3",
    "decode_event",
]
