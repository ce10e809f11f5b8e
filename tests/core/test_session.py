"""Tests for the telemetry session lifecycle."""

from __future__ import annotations

import asyncio
import json

import pytest

from drone_ground_dashboard.core import (
    ConnectError,
    EventChannel,
    InvalidBaudError,
    InvalidCommandError,
    InvalidPortError,
    MotorTarget,
    MotorTestActiveError,
    MotorTestCancelledError,
    NotConnectedError,
    RecordingState,
    SessionBusyError,
    SessionSettings,
    SessionState,
    SubscriptionError,
    TelemetrySessionManager,
)


async def _open(session: TelemetrySessionManager, port: str = "COM3", baud: int = 115200) -> None:
    await session.refresh_ports()
    await session.connect(port, baud)


def test_connect_attaches_listeners_and_records_link(session, interface) -> None:
    asyncio.run(_open(session))

    assert session.state is SessionState.CONNECTED
    assert session.port == "COM3"
    assert session.baud_rate == 115200
    assert interface.connected_port == "COM3"
    assert interface.listener_count() == 4
    assert interface.stream_requests == 1


def test_recording_window_controls_exported_positions(session, interface, position_event, tmp_path) -> None:
    async def scenario() -> None:
        await _open(session)
        session.start_recording()
        for index in range(5):
            interface.publish(EventChannel.POSITION, position_event(index))
        session.stop_recording()
        for index in range(5, 8):
            interface.publish(EventChannel.POSITION, position_event(index))

    asyncio.run(scenario())

    assert session.recording_state is RecordingState.STANDBY
    document = session.exporter.export().to_dict()
    assert [entry["id"] for entry in document["positionLog"]] == [1, 2, 3, 4, 5]

    path = session.exporter.write()
    assert path.parent == tmp_path
    assert len(json.loads(path.read_text(encoding="utf-8"))["positionLog"]) == 5


def test_connect_requires_enumerated_port(session, interface) -> None:
    with pytest.raises(InvalidPortError):
        asyncio.run(session.connect("COM3", 115200))

    asyncio.run(session.refresh_ports())
    with pytest.raises(InvalidPortError) as excinfo:
        asyncio.run(session.connect("COM9", 115200))

    assert excinfo.value.available == ("COM3", "/dev/ttyUSB0")
    assert session.state is SessionState.DISCONNECTED
    assert interface.connect_calls == 0


def test_connect_rejects_unsupported_baud(session, interface) -> None:
    asyncio.run(session.refresh_ports())

    with pytest.raises(InvalidBaudError):
        asyncio.run(session.connect("COM3", 12345))

    assert session.state is SessionState.DISCONNECTED
    assert interface.connect_calls == 0


def test_remote_rejection_returns_to_disconnected(make_interface, settings) -> None:
    interface = make_interface(rejected_ports=("/dev/ttyUSB0",))
    session = TelemetrySessionManager(interface, settings)

    with pytest.raises(ConnectError):
        asyncio.run(_open(session, "/dev/ttyUSB0"))

    assert session.state is SessionState.DISCONNECTED
    assert session.port is None
    assert interface.listener_count() == 0


def test_connect_times_out_without_acknowledgement(interface, tmp_path) -> None:
    session = TelemetrySessionManager(interface, SessionSettings(connect_timeout=0.05, export_dir=tmp_path))

    async def scenario() -> None:
        interface.connect_gate = asyncio.Event()
        await _open(session)

    with pytest.raises(ConnectError):
        asyncio.run(scenario())

    assert session.state is SessionState.DISCONNECTED
    assert interface.listener_count() == 0


def test_overlapping_requests_are_rejected_while_connecting(session, interface) -> None:
    observed: list[SessionState] = []

    async def scenario() -> None:
        await session.refresh_ports()
        interface.connect_gate = asyncio.Event()
        pending = asyncio.create_task(session.connect("COM3", 115200))
        await asyncio.sleep(0)
        observed.append(session.state)

        with pytest.raises(SessionBusyError):
            await session.connect("COM3", 115200)
        with pytest.raises(SessionBusyError):
            await session.connect("/dev/ttyUSB0", 115200)
        with pytest.raises(SessionBusyError):
            await session.disconnect()

        interface.connect_gate.set()
        await pending

    asyncio.run(scenario())

    assert observed == [SessionState.CONNECTING]
    assert session.state is SessionState.CONNECTED
    assert interface.connect_calls == 1
    assert interface.listener_count() == 4


def test_connect_while_connected_is_busy(session, interface) -> None:
    asyncio.run(_open(session))

    with pytest.raises(SessionBusyError):
        asyncio.run(session.connect("/dev/ttyUSB0", 115200))

    assert session.port == "COM3"
    assert interface.listener_count() == 4


def test_subscription_failure_rolls_back_connection(session, interface) -> None:
    interface.fail_subscribe = {EventChannel.POSITION}

    with pytest.raises(SubscriptionError):
        asyncio.run(_open(session))

    assert session.state is SessionState.DISCONNECTED
    assert interface.listener_count() == 0
    assert interface.connected_port is None
    assert interface.disconnect_calls == 1


def test_disconnect_releases_listeners(session, interface) -> None:
    asyncio.run(_open(session))

    asyncio.run(session.disconnect())

    assert session.state is SessionState.DISCONNECTED
    assert session.port is None
    assert interface.listener_count() == 0
    assert interface.connected_port is None
    assert session.multiplexer.active_channels == ()


def test_disconnect_is_noop_when_disconnected(session, interface) -> None:
    asyncio.run(session.disconnect())

    assert session.state is SessionState.DISCONNECTED
    assert interface.disconnect_calls == 0


def test_remote_disconnect_failure_still_tears_down(session, interface, position_event) -> None:
    asyncio.run(_open(session))
    interface.fail_disconnect = True

    asyncio.run(session.disconnect())

    assert session.state is SessionState.DISCONNECTED
    assert interface.listener_count() == 0
    assert interface.publish(EventChannel.POSITION, position_event(1)) == 0


def test_failed_listener_release_does_not_block_teardown(session, interface) -> None:
    interface.fail_release = {EventChannel.TEMPERATURE}
    asyncio.run(_open(session))

    asyncio.run(session.disconnect())

    assert session.state is SessionState.DISCONNECTED
    assert interface.connected_port is None
    assert session.multiplexer.active_channels == ()
    interface.publish(EventChannel.TEMPERATURE, {"temperature": 80.0})
    assert session.history.export_state().temperature is None


def test_disconnect_resets_recording(session) -> None:
    asyncio.run(_open(session))
    session.start_recording()

    asyncio.run(session.disconnect())

    assert session.recording_state is RecordingState.STANDBY


def test_history_survives_disconnect_for_export(session, interface, position_event) -> None:
    async def scenario() -> None:
        await _open(session)
        session.start_recording()
        interface.publish(EventChannel.POSITION, position_event(1))
        interface.publish(EventChannel.BATTERY, 11.8)
        await session.disconnect()

    asyncio.run(scenario())

    document = session.exporter.export().to_dict()
    assert document["batteryVoltage"] == pytest.approx(11.8)
    assert len(document["positionLog"]) == 1


def test_reconnect_clears_history_by_default(session, interface, position_event) -> None:
    async def scenario() -> None:
        await _open(session)
        session.start_recording()
        interface.publish(EventChannel.POSITION, position_event(1))
        await session.disconnect()
        await _open(session)
        session.start_recording()
        interface.publish(EventChannel.POSITION, position_event(2))

    asyncio.run(scenario())

    assert [entry.id for entry in session.history.position_log()] == [1]


def test_reconnect_can_keep_history(interface, tmp_path, position_event) -> None:
    session = TelemetrySessionManager(interface, SessionSettings(clear_on_connect=False, export_dir=tmp_path))

    async def scenario() -> None:
        await _open(session)
        session.start_recording()
        interface.publish(EventChannel.POSITION, position_event(1))
        interface.publish(EventChannel.POSITION, position_event(2))
        await session.disconnect()
        await _open(session)
        session.start_recording()
        interface.publish(EventChannel.POSITION, position_event(3))

    asyncio.run(scenario())

    assert [entry.id for entry in session.history.position_log()] == [1, 2, 3]


def test_state_listeners_observe_transitions(session) -> None:
    transitions: list[SessionState] = []

    def broken(_state: SessionState) -> None:
        raise RuntimeError("listener bug")

    session.add_state_listener(broken)
    session.add_state_listener(transitions.append)

    async def scenario() -> None:
        await _open(session)
        await session.disconnect()

    asyncio.run(scenario())

    assert transitions == [
        SessionState.CONNECTING,
        SessionState.CONNECTED,
        SessionState.DISCONNECTING,
        SessionState.DISCONNECTED,
    ]


def test_commands_require_connection(session, interface) -> None:
    with pytest.raises(NotConnectedError):
        asyncio.run(session.test_motor(MotorTarget.MOTOR_1, 5, throttle=20))
    with pytest.raises(NotConnectedError):
        asyncio.run(session.set_throttle(30))

    assert interface.running_motor_tests == frozenset()
    assert interface.throttle == 0.0


def test_set_throttle_validates_and_forwards(session, interface) -> None:
    asyncio.run(_open(session))

    with pytest.raises(InvalidCommandError):
        asyncio.run(session.set_throttle(120))

    asyncio.run(session.set_throttle(35))
    assert session.throttle == 35.0
    assert interface.throttle == 35.0


def test_disconnect_cancels_running_motor_test(session, interface) -> None:
    async def scenario() -> None:
        await _open(session)
        await session.test_motor(MotorTarget.MOTOR_2, 10, throttle=40)
        assert interface.running_motor_tests == {MotorTarget.MOTOR_2}
        with pytest.raises(MotorTestActiveError):
            await session.test_motor(MotorTarget.MOTOR_3, 5, throttle=40)
        with pytest.raises(MotorTestActiveError):
            await session.set_throttle(10)
        await session.disconnect()

    asyncio.run(scenario())

    assert session.motors.active_test is None
    assert interface.running_motor_tests == frozenset()


def test_shutdown_closes_open_session(session, interface) -> None:
    asyncio.run(_open(session))

    asyncio.run(session.shutdown())

    assert session.state is SessionState.DISCONNECTED
    assert interface.listener_count() == 0


def test_disconnect_during_motor_start_leaves_no_completion_task(session, interface) -> None:
    async def scenario() -> None:
        await _open(session)
        interface.motor_ack_gate = asyncio.Event()
        starting = asyncio.create_task(session.test_motor(MotorTarget.MOTOR_1, 1, throttle=50))
        await asyncio.sleep(0)
        assert session.motors.is_running

        await session.disconnect()
        interface.motor_ack_gate.set()
        with pytest.raises(MotorTestCancelledError):
            await starting

        assert session.motors.active_test is None
        pending = [task for task in asyncio.all_tasks() if task.get_name().startswith("motor-test")]
        assert pending == []

        interface.motor_ack_gate = None
        await _open(session)
        await session.test_motor(MotorTarget.MOTOR_2, 1, throttle=20)
        assert session.motors.active_test.target is MotorTarget.MOTOR_2
        await session.disconnect()

    asyncio.run(scenario())


def test_second_disconnect_waits_for_teardown_in_progress(make_interface, settings) -> None:
    interface = make_interface(latency=0.05)
    session = TelemetrySessionManager(interface, settings)
    states: list[SessionState] = []
    session.add_state_listener(states.append)

    async def scenario() -> None:
        await _open(session)
        first = asyncio.create_task(session.disconnect())
        await asyncio.sleep(0)
        assert session.state is SessionState.DISCONNECTING

        await session.disconnect()
        assert session.state is SessionState.DISCONNECTED
        await first

    asyncio.run(scenario())

    assert interface.disconnect_calls == 1
    assert states.count(SessionState.DISCONNECTED) == 1


def test_failed_reconnect_keeps_previous_history(session, interface, position_event) -> None:
    async def scenario() -> None:
        await _open(session)
        session.start_recording()
        interface.publish(EventChannel.POSITION, position_event(1))
        interface.publish(EventChannel.BATTERY, 12.1)
        await session.disconnect()

        interface.fail_subscribe = {EventChannel.POSITION}
        with pytest.raises(SubscriptionError):
            await _open(session)

    asyncio.run(scenario())

    assert session.state is SessionState.DISCONNECTED
    assert [entry.id for entry in session.history.position_log()] == [1]
    assert session.exporter.export().to_dict()["batteryVoltage"] == pytest.approx(12.1)
