"""Logging configuration helpers for the drone ground dashboard.

Three rotating files live in the platform log directory: the runtime log, an
errors-only log, and (when telemetry tracing is on) a trace log that takes the
per-event debug records of the event path. Those records are kept out of the
runtime log and the console so a live telemetry stream does not drown them.
"""

from __future__ import annotations

import json
import logging
import logging.config
import logging.handlers
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from platformdirs import user_log_dir

import tomli as tomllib  # type: ignore[no-redef]

LOGGER = logging.getLogger(__name__)

APP_NAME = "drone-ground-dashboard"
APP_AUTHOR = "DroneGCS"

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
CONSOLE_FORMAT = "%(levelname)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_MAX_BYTES = 5 * 1024 * 1024
DEFAULT_BACKUP_COUNT = 5

DEFAULT_FILES: Dict[str, str] = {
    "runtime": "drone-dashboard.log",
    "errors": "drone-dashboard-errors.log",
    "telemetry": "drone-telemetry.log",
}

# Loggers whose DEBUG output is emitted once per telemetry event.
TRAFFIC_LOGGERS: tuple[str, ...] = (
    "drone_ground_dashboard.core.multiplexer",
    "drone_ground_dashboard.core.history",
)


class ChannelTrafficFilter(logging.Filter):
    """Select (or, with ``exclude``, reject) per-event debug records."""

    def __init__(self, exclude: bool = False) -> None:
        super().__init__()
        self.exclude = exclude

    @staticmethod
    def is_traffic(record: logging.LogRecord) -> bool:
        if record.levelno > logging.DEBUG:
            return False
        return any(record.name == name or record.name.startswith(name + ".") for name in TRAFFIC_LOGGERS)

    def filter(self, record: logging.LogRecord) -> bool:
        return self.is_traffic(record) != self.exclude


@dataclass
class LoggingSettings:
    """Logging options read from the ``[logging]`` table and CLI flags.

    ``files`` renames the ``runtime``, ``errors`` and ``telemetry`` log files.
    ``loggers`` maps logger names to levels. With ``trace_telemetry`` on, the
    event-path loggers default to DEBUG unless ``loggers`` names them.
    """

    level: str = "INFO"
    console: bool = True
    directory: Optional[Path] = None
    trace_telemetry: bool = False
    max_bytes: int = DEFAULT_MAX_BYTES
    backup_count: int = DEFAULT_BACKUP_COUNT
    files: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_FILES))
    loggers: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "LoggingSettings":
        """Construct settings from a ``[logging]`` table or a standalone file."""
        settings = cls()

        if "level" in mapping:
            settings.level = str(mapping["level"]).upper()
        if "console" in mapping:
            settings.console = bool(mapping["console"])
        if "no_console" in mapping:
            settings.console = not bool(mapping["no_console"])
        directory = mapping.get("directory") or mapping.get("dir")
        if directory:
            settings.directory = Path(str(directory)).expanduser()
        if "trace_telemetry" in mapping:
            settings.trace_telemetry = bool(mapping["trace_telemetry"])
        if "max_bytes" in mapping:
            settings.max_bytes = int(mapping["max_bytes"])
        if "backup_count" in mapping:
            settings.backup_count = int(mapping["backup_count"])

        files = mapping.get("files")
        if files is not None:
            if not isinstance(files, Mapping):
                raise ValueError("'files' must map log names to file names")
            for name, filename in files.items():
                if name not in DEFAULT_FILES:
                    raise ValueError(f"Unknown log file '{name}' (expected one of {', '.join(DEFAULT_FILES)})")
                settings.files[name] = str(filename)

        loggers_mapping = mapping.get("loggers")
        if loggers_mapping is not None:
            if not isinstance(loggers_mapping, Mapping):
                raise ValueError("'loggers' must map logger names to levels")
            settings.loggers = {str(name): str(level).upper() for name, level in loggers_mapping.items()}
        return settings

    def merge_overrides(
        self,
        *,
        level: Optional[str] = None,
        console: Optional[bool] = None,
        directory: Optional[Path] = None,
        trace_telemetry: Optional[bool] = None,
    ) -> None:
        """Override specific fields if corresponding CLI arguments are provided."""
        if level is not None:
            self.level = level.upper()
        if console is not None:
            self.console = console
        if directory is not None:
            self.directory = directory
        if trace_telemetry is not None:
            self.trace_telemetry = trace_telemetry

    def active_files(self) -> Dict[str, str]:
        names = ("runtime", "errors", "telemetry") if self.trace_telemetry else ("runtime", "errors")
        return {name: self.files[name] for name in names}


@dataclass(frozen=True)
class LoggingSetupResult:
    """Result information returned after configuring logging."""

    directory: Path
    handler_files: Dict[str, Path]


def _load_mapping_from_file(path: Path) -> Mapping[str, Any]:
    suffix = path.suffix.lower()
    if suffix in {".toml", ".tml"}:
        with path.open("rb") as stream:
            data: Mapping[str, Any] = tomllib.load(stream)
    elif suffix == ".json":
        with path.open("r", encoding="utf-8") as stream:
            data = json.load(stream)
    else:
        raise ValueError(f"Unsupported log config format: {path.suffix}")
    nested = data.get("logging")
    return nested if isinstance(nested, Mapping) else data


def _ensure_directory(directory: Optional[Path]) -> Path:
    base_dir = directory or Path(user_log_dir(APP_NAME, APP_AUTHOR))
    base_dir.mkdir(parents=True, exist_ok=True)
    return base_dir


def _rotating_file(path: Path, level: str, settings: LoggingSettings) -> Dict[str, Any]:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "formatter": "detailed",
        "filename": str(path),
        "maxBytes": settings.max_bytes,
        "backupCount": settings.backup_count,
        "encoding": "utf-8",
    }


def _build_dict_config(settings: LoggingSettings, files: Mapping[str, Path]) -> Dict[str, Any]:
    tracing = settings.trace_telemetry
    quiet_traffic = ["no_traffic"] if tracing else []

    loggers = {name: {"level": level} for name, level in settings.loggers.items()}
    if tracing:
        for name in TRAFFIC_LOGGERS:
            loggers.setdefault(name, {"level": "DEBUG"})

    config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "detailed": {"format": LOG_FORMAT, "datefmt": DATE_FORMAT},
            "console": {"format": CONSOLE_FORMAT},
        },
        "filters": {
            "traffic_only": {"()": ChannelTrafficFilter},
            "no_traffic": {"()": ChannelTrafficFilter, "exclude": True},
        },
        "handlers": {
            "runtime": {**_rotating_file(files["runtime"], "DEBUG", settings), "filters": quiet_traffic},
            "errors": _rotating_file(files["errors"], "ERROR", settings),
        },
        "loggers": loggers,
        "root": {"level": settings.level, "handlers": ["runtime", "errors"]},
    }

    if tracing:
        config["handlers"]["telemetry"] = {
            **_rotating_file(files["telemetry"], "DEBUG", settings),
            "filters": ["traffic_only"],
        }
        config["root"]["handlers"].append("telemetry")

    if settings.console:
        config["handlers"]["console"] = {
            "class": "logging.StreamHandler",
            "level": settings.level,
            "formatter": "console",
            "filters": quiet_traffic,
            "stream": "ext://sys.stderr",
        }
        config["root"]["handlers"].append("console")

    return config


def configure_logging(
    *,
    level: Optional[str] = None,
    console: Optional[bool] = None,
    log_dir: Optional[Path] = None,
    config_path: Optional[Path] = None,
    trace_telemetry: Optional[bool] = None,
) -> LoggingSetupResult:
    """Initialise Python logging based on defaults, config file, and CLI overrides."""

    settings = LoggingSettings()
    if config_path is not None:
        settings = LoggingSettings.from_mapping(_load_mapping_from_file(config_path))

    settings.merge_overrides(
        level=level,
        console=console,
        directory=log_dir,
        trace_telemetry=trace_telemetry,
    )

    target_directory = _ensure_directory(settings.directory)
    handler_files = {name: target_directory / filename for name, filename in settings.active_files().items()}

    logging.config.dictConfig(_build_dict_config(settings, handler_files))

    LOGGER.debug("Logging configured: directory=%s handlers=%s", target_directory, handler_files)

    return LoggingSetupResult(directory=target_directory, handler_files=handler_files)


__all__ = [
    "ChannelTrafficFilter",
    "LoggingSettings",
    "LoggingSetupResult",
    "TRAFFIC_LOGGERS",
    "configure_logging",
]
