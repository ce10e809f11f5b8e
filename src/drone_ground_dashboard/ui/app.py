"""Textual UI shell for the drone ground dashboard."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Awaitable, Optional

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.timer import Timer
from textual.widgets import Button, DataTable, Footer, Header, Input, Select, Static

from ..core import (
    SUPPORTED_BAUD_RATES,
    TEST_DURATIONS,
    DashboardError,
    MotorTarget,
    RecordingState,
    SessionState,
    TelemetrySessionManager,
)
from ..core.history import AggregateState
from ..core.models import PositionLogEntry, Vector3
from ..core.motors import DEFAULT_TEST_DURATION

logger = logging.getLogger(__name__)

STATE_STYLES = {
    SessionState.DISCONNECTED: "bold red",
    SessionState.CONNECTING: "bold yellow",
    SessionState.CONNECTED: "bold green",
    SessionState.DISCONNECTING: "bold yellow",
}

BATTERY_STYLES = {"good": "bold green", "fair": "bold yellow", "low": "bold dark_orange", "critical": "bold red"}
TEMPERATURE_STYLES = {"cold": "bold blue", "normal": "bold green", "warm": "bold yellow", "hot": "bold red"}


class DroneDashboardApp(App):
    """Textual application rendering the telemetry session."""

    CSS_PATH = Path(__file__).with_name("dashboard.css")
    TITLE = "Drone Testing Control"
    FIELD_COLUMN_KEY = "field"
    VALUE_COLUMN_KEY = "value"

    BINDINGS = [
        ("r", "toggle_recording", "Record"),
        ("e", "export", "Export"),
        ("q", "quit", "Quit"),
    ]

    def __init__(
        self,
        session: TelemetrySessionManager,
        *,
        refresh_interval: float = 0.5,
        default_port: Optional[str] = None,
        default_baud: int = 115200,
        auto_connect: bool = False,
    ) -> None:
        super().__init__()
        self._session = session
        self._refresh_interval = refresh_interval
        self._default_port = default_port
        self._default_baud = default_baud
        self._auto_connect = auto_connect
        self._refresh_timer: Optional[Timer] = None
        self._last_log: tuple[PositionLogEntry, ...] = ()
        self._closing = False

    def compose(self) -> ComposeResult:
        controls = Vertical(
            Static("Serial Connection", classes="panel-title"),
            Select([], prompt="Port", id="port_select"),
            Select(
                [(f"{baud} bps", baud) for baud in SUPPORTED_BAUD_RATES],
                value=self._default_baud,
                allow_blank=False,
                id="baud_select",
            ),
            Horizontal(
                Button("Connect", id="connect", variant="success"),
                Button("Disconnect", id="disconnect", variant="error"),
                Button("↻", id="refresh_ports"),
                classes="button-row",
            ),
            Static("Motor Control", classes="panel-title"),
            Select(
                [(target.label, target) for target in MotorTarget if target is not MotorTarget.ALL],
                value=MotorTarget.MOTOR_1,
                allow_blank=False,
                id="motor_select",
            ),
            Select(
                [(f"{duration}s", duration) for duration in TEST_DURATIONS],
                value=DEFAULT_TEST_DURATION,
                allow_blank=False,
                id="duration_select",
            ),
            Horizontal(
                Input(placeholder="Throttle %", id="throttle_input"),
                Button("Set", id="set_throttle"),
                classes="button-row",
            ),
            Horizontal(
                Button("Test Selected", id="test_motor", variant="primary"),
                Button("Test All", id="test_all", variant="warning"),
                classes="button-row",
            ),
            Static("Data Logging", classes="panel-title"),
            Horizontal(
                Button("Record", id="record_start", variant="success"),
                Button("Stop", id="record_stop", variant="warning"),
                Button("Export", id="export", variant="primary"),
                classes="button-row",
            ),
            id="controls",
        )
        telemetry = Vertical(
            DataTable(id="status_table"),
            Static("GPS Log", classes="panel-title"),
            DataTable(id="position_table"),
            id="telemetry",
        )

        yield Header(show_clock=True)
        yield Horizontal(controls, telemetry, id="content_area")
        yield Footer()

    async def on_mount(self) -> None:
        status_table = self.query_one("#status_table", DataTable)
        status_table.add_column("Field", key=self.FIELD_COLUMN_KEY)
        status_table.add_column("Value", key=self.VALUE_COLUMN_KEY)
        self._add_rows(status_table)

        position_table = self.query_one("#position_table", DataTable)
        position_table.add_columns("#", "Time", "Latitude", "Longitude", "Accuracy")

        self._session.add_state_listener(lambda _state: self._refresh_view())
        await self._refresh_ports()
        self._refresh_timer = self.set_interval(self._refresh_interval, self._refresh_view, name="telemetry_refresh")
        self._refresh_view()
        if self._auto_connect and self._default_port:
            self._run(self._session.connect(self._default_port, self._default_baud), "connect")

    async def on_unmount(self) -> None:
        if self._refresh_timer is not None:
            self._refresh_timer.stop()
        self._closing = True
        try:
            await self._session.shutdown()
        except DashboardError:
            logger.exception("Closing the session on exit failed")

    def _add_rows(self, table: DataTable) -> None:
        table.add_row("Link", Text("—", style="dim"), key="link")
        table.add_row("Recording", Text("—", style="dim"), key="recording")
        table.add_row("Battery", Text("—", style="dim"), key="battery")
        table.add_row("Temperature", Text("—", style="dim"), key="temperature")
        table.add_row("Accel (m/s²)", self._vector_text(None), key="accel")
        table.add_row("Gyro (°/s)", self._vector_text(None), key="gyro")
        table.add_row("Mag (µT)", self._vector_text(None), key="mag")
        table.add_row("Position", Text("—", style="dim"), key="position")
        table.add_row("Motor Test", Text("idle", style="dim"), key="motor_test")

    async def _refresh_ports(self) -> None:
        try:
            ports = await self._session.refresh_ports()
        except Exception:  # noqa: BLE001
            logger.exception("Port enumeration failed")
            self.notify("Failed to enumerate serial ports.", severity="error")
            return
        select = self.query_one("#port_select", Select)
        select.set_options([(port, port) for port in ports])
        if self._default_port in ports:
            select.value = self._default_port

    def _refresh_view(self) -> None:
        if self._closing:
            return
        state = self._session.history.export_state()
        self._update_status(state)
        self._update_position_log(state)

    def _update_status(self, state: AggregateState) -> None:
        table = self.query_one("#status_table", DataTable)
        session = self._session

        link = session.state.value.upper()
        if session.is_connected:
            link = f"{link} · {session.port} @ {session.baud_rate}"
        table.update_cell("link", self.VALUE_COLUMN_KEY, Text(link, style=STATE_STYLES[session.state]))

        recording = session.recording_state is RecordingState.RECORDING
        table.update_cell(
            "recording",
            self.VALUE_COLUMN_KEY,
            Text("● REC" if recording else "STANDBY", style="bold red" if recording else "dim"),
        )

        if state.battery is not None:
            battery = state.battery
            table.update_cell(
                "battery",
                self.VALUE_COLUMN_KEY,
                Text(f"{battery.voltage:.2f}V · {battery.percent:.0f}%", style=BATTERY_STYLES[battery.level]),
            )
        if state.temperature is not None:
            temperature = state.temperature
            table.update_cell(
                "temperature",
                self.VALUE_COLUMN_KEY,
                Text(f"{temperature.celsius:.1f}°C", style=TEMPERATURE_STYLES[temperature.band]),
            )
        if state.latest_inertial is not None:
            table.update_cell("accel", self.VALUE_COLUMN_KEY, self._vector_text(state.latest_inertial.accel))
            table.update_cell("gyro", self.VALUE_COLUMN_KEY, self._vector_text(state.latest_inertial.gyro))
        if state.latest_magnetic is not None:
            table.update_cell("mag", self.VALUE_COLUMN_KEY, self._vector_text(state.latest_magnetic.mag))
        if state.current_position is not None:
            fix = state.current_position
            table.update_cell(
                "position",
                self.VALUE_COLUMN_KEY,
                Text(f"{fix.latitude:.6f}, {fix.longitude:.6f} ±{fix.accuracy:.1f}", style="cyan"),
            )

        test = session.motors.active_test
        if test is None:
            table.update_cell("motor_test", self.VALUE_COLUMN_KEY, Text("idle", style="dim"))
        else:
            table.update_cell(
                "motor_test",
                self.VALUE_COLUMN_KEY,
                Text(f"{test.target.label} · {test.throttle:.0f}% · {test.duration}s", style="bold magenta"),
            )

    def _update_position_log(self, state: AggregateState) -> None:
        entries = state.position_log
        if entries == self._last_log:
            return
        table = self.query_one("#position_table", DataTable)
        table.clear()
        for entry in reversed(entries):
            table.add_row(
                str(entry.id),
                entry.formatted_time,
                f"{entry.latitude:.6f}",
                f"{entry.longitude:.6f}",
                f"{entry.accuracy:.1f}",
            )
        self._last_log = entries

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        button_id = event.button.id
        if button_id == "connect":
            port = self.query_one("#port_select", Select).value
            baud = self.query_one("#baud_select", Select).value
            if not isinstance(port, str):
                self.notify("Select a port first.", severity="warning")
                return
            self._run(self._session.connect(port, int(baud)), "connect")  # type: ignore[arg-type]
        elif button_id == "disconnect":
            self._run(self._session.disconnect(), "disconnect")
        elif button_id == "refresh_ports":
            await self._refresh_ports()
        elif button_id in {"test_motor", "test_all"}:
            target = MotorTarget.ALL if button_id == "test_all" else self.query_one("#motor_select", Select).value
            duration = self.query_one("#duration_select", Select).value
            self._run(self._session.test_motor(target, int(duration)), "motor test")  # type: ignore[arg-type]
        elif button_id == "set_throttle":
            raw = self.query_one("#throttle_input", Input).value.strip()
            try:
                percent = float(raw)
            except ValueError:
                self.notify(f"Invalid throttle value: {raw!r}", severity="warning")
                return
            self._run(self._session.set_throttle(percent), "throttle")
        elif button_id == "record_start":
            self.action_toggle_recording(start=True)
        elif button_id == "record_stop":
            self.action_toggle_recording(start=False)
        elif button_id == "export":
            self.action_export()

    def action_toggle_recording(self, start: Optional[bool] = None) -> None:
        if start is None:
            start = self._session.recording_state is RecordingState.STANDBY
        if start:
            self._session.start_recording()
        else:
            self._session.stop_recording()
        self._refresh_view()

    def action_export(self) -> None:
        exporter = self._session.exporter
        document = exporter.export()
        try:
            path = exporter.write(document=document)
        except DashboardError as exc:
            self.notify(str(exc), severity="error")
        else:
            count = len(document.state.position_log)
            self.notify(f"Exported {count} GPS entries → {path}", severity="information")

    def _run(self, operation: Awaitable[Any], label: str) -> None:
        async def _guarded() -> None:
            try:
                await operation
            except DashboardError as exc:
                logger.warning("%s failed: %s", label.capitalize(), exc)
                self.notify(str(exc), title=label.capitalize(), severity="error")
            self._refresh_view()

        self.run_worker(_guarded(), name=label, group="session", exit_on_error=False)

    @staticmethod
    def _vector_text(vector: Optional[Vector3]) -> Text:
        if vector is None:
            return Text("—", style="dim")
        return Text("  ".join(f"{axis}={value:+7.2f}" for axis, value in zip("xyz", vector)), style="bold")


__all__ = ["DroneDashboardApp"]
