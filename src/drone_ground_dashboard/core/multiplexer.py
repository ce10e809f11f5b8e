"""Subscription management routing vehicle events into the telemetry history."""

from __future__ import annotations

import functools
import logging
from threading import Lock
from typing import Any

from .base import CommandInterface, EventChannel, SubscriptionHandle
from .errors import SubscriptionError
from .history import HistoryAggregator
from .models import TelemetryKind
from .parsers import decode_event
from .recording import RecordingGate

logger = logging.getLogger(__name__)

CHANNELS: tuple[EventChannel, ...] = (
    EventChannel.INERTIAL_MAGNETIC,
    EventChannel.BATTERY,
    EventChannel.POSITION,
    EventChannel.TEMPERATURE,
)


class EventMultiplexer:
    """Attaches one listener per event channel and fans events into history.

    Handles are kept in a dict keyed by the fixed channel set so teardown
    walks them deterministically. Routing and the "accepting" flag share one
    lock: once :meth:`detach` has flipped the flag, no further event reaches
    the aggregator.
    """

    def __init__(
        self,
        interface: CommandInterface,
        history: HistoryAggregator,
        gate: RecordingGate,
    ) -> None:
        self._interface = interface
        self._history = history
        self._gate = gate
        self._handles: dict[EventChannel, SubscriptionHandle] = {}
        self._route_lock = Lock()
        self._accepting = False
        self._dropped_events = 0

    @property
    def is_attached(self) -> bool:
        return bool(self._handles)

    @property
    def active_channels(self) -> tuple[EventChannel, ...]:
        return tuple(channel for channel, handle in self._handles.items() if not handle.released)

    @property
    def dropped_events(self) -> int:
        return self._dropped_events

    async def attach(self) -> None:
        """Subscribe to every channel once and start the telemetry stream.

        Raises:
            SubscriptionError: If any subscription or the stream request fails.
                Handles taken before the failure are released first.
        """

        if self._handles:
            logger.debug("Multiplexer already attached; ignoring attach request")
            return

        with self._route_lock:
            self._accepting = True

        for channel in CHANNELS:
            handler = functools.partial(self._route, channel)
            try:
                handle = await self._interface.subscribe(channel, handler)
            except Exception as exc:
                logger.error("Subscribing to %s failed: %s", channel.value, exc)
                self.detach()
                raise SubscriptionError(f"Failed to subscribe to '{channel.value}'") from exc
            self._handles[channel] = handle
            logger.debug("Subscribed to %s", channel.value)

        try:
            ack = await self._interface.start_telemetry_stream()
        except Exception as exc:
            logger.error("Starting telemetry stream failed: %s", exc)
            self.detach()
            raise SubscriptionError("Failed to start the telemetry stream") from exc

        logger.info("Telemetry listeners attached (%s): %s", len(self._handles), ack)

    def detach(self) -> tuple[EventChannel, ...]:
        """Release every subscription, continuing past individual failures.

        Returns the channels whose release raised. Safe to call repeatedly.
        """

        with self._route_lock:
            self._accepting = False

        failed: list[EventChannel] = []
        handles, self._handles = self._handles, {}
        for channel, handle in handles.items():
            try:
                handle.release()
            except Exception:  # noqa: BLE001
                logger.exception("Releasing %s listener failed", channel.value)
                failed.append(channel)
            else:
                logger.debug("Unsubscribed from %s", channel.value)

        if handles:
            logger.info("Telemetry listeners detached (%d released, %d failed)", len(handles) - len(failed), len(failed))
        return tuple(failed)

    def _route(self, channel: EventChannel, payload: Any) -> None:
        with self._route_lock:
            if not self._accepting:
                self._dropped_events += 1
                logger.debug("Dropping late %s event after detach", channel.value)
                return

            try:
                samples = decode_event(channel, payload)
            except (TypeError, ValueError) as exc:
                self._dropped_events += 1
                logger.warning("Discarding malformed %s event: %s", channel.value, exc)
                return

            logger.debug("Routed %s event (%d samples)", channel.value, len(samples))
            self._history.record(*samples)
            for sample in samples:
                if sample.kind is TelemetryKind.POSITION and self._gate.admit(sample):
                    self._history.log_position(sample)


__all__ = ["CHANNELS", "EventMultiplexer"]
