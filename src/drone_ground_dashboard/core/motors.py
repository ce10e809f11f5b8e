"""Timed motor test commands with cancellable completion."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .base import CommandInterface
from .errors import InvalidCommandError, MotorTestActiveError, MotorTestCancelledError
from .models import MotorTarget, utc_now

logger = logging.getLogger(__name__)

TEST_DURATIONS: tuple[int, ...] = (1, 2, 3, 5, 10)
DEFAULT_TEST_DURATION = 5


@dataclass(frozen=True, slots=True)
class MotorTest:
    """A running motor test."""

    target: MotorTarget
    duration: int
    throttle: float
    started_at: datetime


def validate_throttle(percent: float) -> float:
    """Return *percent* as a float, rejecting values outside [0, 100]."""

    try:
        value = float(percent)
    except (TypeError, ValueError) as exc:
        raise InvalidCommandError(f"Throttle must be numeric, got {percent!r}") from exc
    if not 0.0 <= value <= 100.0:
        raise InvalidCommandError(f"Throttle must be within 0-100%, got {value}")
    return value


class MotorTestScheduler:
    """Runs at most one timed motor test and tracks its completion task."""

    def __init__(self, interface: CommandInterface) -> None:
        self._interface = interface
        self._active: Optional[MotorTest] = None
        self._completion: Optional[asyncio.Task[None]] = None
        self._generation = 0

    @property
    def active_test(self) -> Optional[MotorTest]:
        return self._active

    @property
    def is_running(self) -> bool:
        return self._active is not None

    async def start(self, target: MotorTarget, duration: int, throttle: float) -> MotorTest:
        """Start a test on *target* and schedule its completion after *duration* seconds.

        Raises:
            MotorTestActiveError: If another test is still running.
            InvalidCommandError: If *duration* or *throttle* is out of range.
            MotorTestCancelledError: If :meth:`cancel` ran while the remote
                start was pending; no completion is scheduled.
        """

        if self._active is not None:
            raise MotorTestActiveError(f"{self._active.target.label} test is still running")
        if duration not in TEST_DURATIONS:
            raise InvalidCommandError(f"Test duration must be one of {TEST_DURATIONS}, got {duration!r}")
        throttle_value = validate_throttle(throttle)

        test = MotorTest(target=target, duration=duration, throttle=throttle_value, started_at=utc_now())
        self._active = test
        generation = self._generation
        try:
            await self._interface.start_motor_test(target, throttle_value, float(duration))
        except BaseException:
            if self._active is test:
                self._active = None
            raise

        if generation != self._generation:
            logger.info("Motor test for %s cancelled while starting", target.label)
            raise MotorTestCancelledError(f"{target.label} test was cancelled before it started")

        self._completion = asyncio.create_task(self._complete_after(test), name=f"motor-test-{target.value}")
        logger.info("Motor test started: %s at %.0f%% for %ss", target.label, throttle_value, duration)
        return test

    async def _complete_after(self, test: MotorTest) -> None:
        try:
            await asyncio.sleep(test.duration)
        except asyncio.CancelledError:
            logger.debug("Motor test completion for %s cancelled", test.target.label)
            raise

        try:
            await self._interface.stop_motor_test(test.target)
        except Exception:  # noqa: BLE001
            logger.exception("Stopping motor test for %s failed", test.target.label)
        finally:
            if self._active is test:
                self._active = None
                self._completion = None
        logger.info("Motor test finished: %s", test.target.label)

    def cancel(self) -> bool:
        """Cancel the pending completion and clear the active test.

        Returns ``True`` when a test was running.
        """

        self._generation += 1
        task, self._completion = self._completion, None
        test, self._active = self._active, None
        if task is not None and not task.done():
            task.cancel()
        if test is not None:
            logger.info("Motor test cancelled: %s", test.target.label)
            return True
        return False

    async def wait(self) -> None:
        """Wait until the running test (if any) completes or is cancelled."""

        task = self._completion
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise


__all__ = [
    "DEFAULT_TEST_DURATION",
    "MotorTest",
    "MotorTestScheduler",
    "TEST_DURATIONS",
    "validate_throttle",
]
