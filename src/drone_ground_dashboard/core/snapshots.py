"""Point-in-time export of the telemetry history."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from .errors import ExportIOError
from .history import AggregateState, HistoryAggregator
from .models import to_utc_iso, utc_now

logger = logging.getLogger(__name__)

EXPORT_FILENAME_FORMAT = "drone-log-%Y%m%d-%H%M%S-%f.json"


@dataclass(frozen=True, slots=True)
class TelemetryDocument:
    """Immutable export of the aggregate telemetry state."""

    exported_at: datetime
    state: AggregateState

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-serialisable export document."""

        state = self.state
        inertial: Optional[dict[str, Any]] = None
        if state.latest_inertial is not None or state.latest_magnetic is not None:
            inertial = {
                "accelXYZ": list(state.latest_inertial.accel) if state.latest_inertial else None,
                "gyroXYZ": list(state.latest_inertial.gyro) if state.latest_inertial else None,
                "magXYZ": list(state.latest_magnetic.mag) if state.latest_magnetic else None,
            }

        return {
            "exportedAt": to_utc_iso(self.exported_at),
            "batteryVoltage": state.battery_voltage,
            "temperature": state.temperature_celsius,
            "inertial": inertial,
            "positionLog": [entry.to_dict() for entry in state.position_log],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2)


class SnapshotExporter:
    """Builds export documents from a single atomic read of the history."""

    def __init__(self, history: HistoryAggregator, *, export_dir: Optional[Path] = None) -> None:
        self._history = history
        self._export_dir = export_dir

    @property
    def export_dir(self) -> Optional[Path]:
        return self._export_dir

    def export(self, exported_at: Optional[datetime] = None) -> TelemetryDocument:
        """Capture the current aggregate state as a :class:`TelemetryDocument`."""

        state = self._history.export_state()
        return TelemetryDocument(exported_at=exported_at or utc_now(), state=state)

    def write(self, destination: Path | str | None = None, *, document: Optional[TelemetryDocument] = None) -> Path:
        """Export the current state (or *document*) to a JSON file.

        Args:
            destination: Either a concrete file path, a directory in which the
                export will be written (with an auto-generated name), or
                ``None`` to use the configured export directory (falling back
                to the current working directory).
            document: A previously captured document to write instead of a
                fresh export.

        Returns:
            Path to the written file.

        Raises:
            ExportIOError: If the file cannot be written.
        """

        document = document or self.export()

        if destination is None:
            output = (self._export_dir or Path.cwd()) / self._filename(document)
        else:
            destination_path = Path(destination)
            if destination_path.is_dir():
                output = destination_path / self._filename(document)
            else:
                output = destination_path

        try:
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_text(document.to_json(), encoding="utf-8")
        except OSError as exc:
            logger.error("Writing telemetry export to %s failed: %s", output, exc)
            raise ExportIOError(f"Could not write export to {output}: {exc}") from exc

        logger.info("Exported %d position entries to %s", len(document.state.position_log), output)
        return output

    @staticmethod
    def _filename(document: TelemetryDocument) -> str:
        timestamp = document.exported_at
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return timestamp.astimezone(timezone.utc).strftime(EXPORT_FILENAME_FORMAT)


__all__ = ["EXPORT_FILENAME_FORMAT", "SnapshotExporter", "TelemetryDocument"]
