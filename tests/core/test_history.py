"""Tests for the telemetry history aggregator and recording gate."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from drone_ground_dashboard.core import (
    BatteryReading,
    HistoryAggregator,
    InertialReading,
    MagneticReading,
    PositionFix,
    RecordingGate,
    RecordingState,
    TelemetryKind,
    TelemetrySample,
    TemperatureReading,
)

BASE_TIME = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def _position(index: int) -> TelemetrySample:
    return TelemetrySample(
        TelemetryKind.POSITION,
        PositionFix(latitude=37.0 + index * 0.001, longitude=-122.0, accuracy=2.0),
        BASE_TIME + timedelta(seconds=index),
    )


def _inertial(index: int) -> TelemetrySample:
    return TelemetrySample(TelemetryKind.INERTIAL, InertialReading(accel=(float(index), 0.0, 9.8)))


def test_sample_rejects_mismatched_payload() -> None:
    with pytest.raises(TypeError):
        TelemetrySample(TelemetryKind.BATTERY, TemperatureReading(celsius=30.0))


def test_record_routes_samples_to_their_own_history() -> None:
    history = HistoryAggregator()

    history.record(
        _inertial(1),
        TelemetrySample(TelemetryKind.MAGNETIC, MagneticReading(mag=(1.0, 2.0, 3.0))),
        TelemetrySample(TelemetryKind.BATTERY, BatteryReading(voltage=12.1)),
        TelemetrySample(TelemetryKind.TEMPERATURE, TemperatureReading(celsius=41.5)),
    )

    state = history.export_state()
    assert len(state.inertial_history) == 1
    assert len(state.magnetic_history) == 1
    assert len(state.battery_history) == 1
    assert len(state.temperature_history) == 1
    assert state.battery_voltage == pytest.approx(12.1)
    assert state.temperature_celsius == pytest.approx(41.5)
    assert state.latest_magnetic == MagneticReading(mag=(1.0, 2.0, 3.0))
    assert state.position_log == ()


def test_scalar_cells_hold_the_latest_value() -> None:
    history = HistoryAggregator()

    for voltage in (12.6, 12.4, 12.2):
        history.record(TelemetrySample(TelemetryKind.BATTERY, BatteryReading(voltage=voltage)))

    state = history.export_state()
    assert state.battery_voltage == pytest.approx(12.2)
    assert [sample.payload.voltage for sample in state.battery_history] == pytest.approx([12.6, 12.4, 12.2])


def test_position_samples_only_move_the_current_position() -> None:
    history = HistoryAggregator()

    history.record(_position(1))
    history.record(_position(2))

    state = history.export_state()
    assert state.current_position == _position(2).payload
    assert state.position_log == ()


def test_inertial_history_is_bounded() -> None:
    history = HistoryAggregator()

    for index in range(1, 151):
        history.record(_inertial(index))

    accel_x = [sample.payload.accel[0] for sample in history.inertial_history()]
    assert accel_x == [float(index) for index in range(121, 151)]


def test_log_position_assigns_sequential_ids_and_caps_the_log() -> None:
    history = HistoryAggregator(position_capacity=100)

    entries = [history.log_position(_position(index)) for index in range(130)]

    assert [entry.id for entry in entries[:3]] == [1, 2, 3]
    log = history.position_log()
    assert len(log) == 100
    assert log[0].id == 31
    assert log[-1].id == 130
    assert history.next_position_id == 131


def test_log_position_rejects_non_position_samples() -> None:
    history = HistoryAggregator()

    with pytest.raises(TypeError):
        history.log_position(_inertial(1))
    assert history.next_position_id == 1


def test_reset_clears_everything_and_restarts_ids() -> None:
    history = HistoryAggregator()
    history.record(_inertial(1), TelemetrySample(TelemetryKind.BATTERY, BatteryReading(voltage=11.9)))
    history.log_position(_position(1))

    history.reset()

    state = history.export_state()
    assert state.battery is None
    assert state.latest_inertial is None
    assert state.inertial_history == ()
    assert state.position_log == ()
    assert history.log_position(_position(2)).id == 1


def test_export_state_is_immutable_copy() -> None:
    history = HistoryAggregator()
    history.log_position(_position(1))

    state = history.export_state()
    history.log_position(_position(2))

    assert len(state.position_log) == 1
    assert len(history.export_state().position_log) == 2


def test_recording_gate_admits_only_positions_while_recording() -> None:
    gate = RecordingGate()

    assert gate.state is RecordingState.STANDBY
    assert gate.admit(_position(1)) is False

    gate.start()
    assert gate.is_recording
    assert gate.admit(_position(1)) is True
    assert gate.admit(_inertial(1)) is False

    gate.stop()
    assert gate.admit(_position(1)) is False


def test_recording_gate_start_and_stop_are_idempotent() -> None:
    gate = RecordingGate()

    gate.start()
    gate.start()
    assert gate.state is RecordingState.RECORDING

    gate.stop()
    gate.stop()
    assert gate.state is RecordingState.STANDBY

    gate.start()
    gate.reset()
    assert gate.state is RecordingState.STANDBY
