"""Bounded history storage for a single telemetry stream."""

from __future__ import annotations

from collections import deque
from threading import Lock
from typing import Generic, Optional, TypeVar

from .models import TelemetryKind

T = TypeVar("T")

INERTIAL_HISTORY_CAPACITY = 30
POSITION_LOG_CAPACITY = 100


class ChannelBuffer(Generic[T]):
    """Thread-safe FIFO ring that keeps the most recent items of one stream.

    Appends evict the oldest entry once ``capacity`` is reached. Readers only
    ever receive tuple copies, so a concurrent :meth:`push` cannot tear the
    sequence they are looking at.
    """

    def __init__(self, kind: TelemetryKind, capacity: int) -> None:
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity <= 0:
            raise ValueError(f"Buffer capacity must be a positive integer, got {capacity!r}")
        self._kind = kind
        self._capacity = capacity
        self._items: deque[T] = deque(maxlen=capacity)
        self._lock = Lock()

    @property
    def kind(self) -> TelemetryKind:
        return self._kind

    @property
    def capacity(self) -> int:
        return self._capacity

    def push(self, item: T) -> None:
        """Append *item*, discarding the oldest entry when full."""

        with self._lock:
            self._items.append(item)

    def snapshot(self) -> tuple[T, ...]:
        """Return an immutable, ordered copy of the current contents."""

        with self._lock:
            return tuple(self._items)

    def latest(self) -> Optional[T]:
        """Return the most recent item, or ``None`` when the buffer is empty."""

        with self._lock:
            if not self._items:
                return None
            return self._items[-1]

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __repr__(self) -> str:
        return f"ChannelBuffer(kind={self._kind.name}, size={len(self)}/{self._capacity})"


__all__ = ["ChannelBuffer", "INERTIAL_HISTORY_CAPACITY", "POSITION_LOG_CAPACITY"]
