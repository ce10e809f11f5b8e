"""Primary package for the drone ground dashboard."""

from __future__ import annotations

from importlib import metadata

from .core import (
    CommandInterface,
    SessionSettings,
    SessionState,
    SimCommandInterface,
    TelemetrySessionManager,
)
from .ui import DroneDashboardApp

try:
    __version__ = metadata.version("drone-ground-dashboard")
except metadata.PackageNotFoundError:  # pragma: no cover - local dev fallback
    __version__ = "0.0.0"

__all__ = [
    "CommandInterface",
    "DroneDashboardApp",
    "SessionSettings",
    "SessionState",
    "SimCommandInterface",
    "TelemetrySessionManager",
    "__version__",
]
