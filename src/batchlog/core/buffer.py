"""
Event buffer between producer threads and the batch publisher.

Multi-producer/single-consumer FIFO. ``try_enqueue`` never blocks beyond a
short-held lock and never raises; when the buffer is bounded and full the
event is discarded and counted. ``drain`` removes a contiguous slice from the
front in one critical section, so a batch is always a prefix of what was
enqueued.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Generic, TypeVar

from . import diagnostics

T = TypeVar("T")


class EventBuffer(Generic[T]):
    """Thread-safe FIFO with optional capacity and drop accounting."""

    __slots__ = ("_items", "_capacity", "_lock", "_dropped")

    def __init__(self, capacity: int | None = None) -> None:
        if capacity is not None and capacity <= 0:
            raise ValueError("capacity must be > 0 or None")
        self._items: deque[T] = deque()
        self._capacity = capacity
        self._lock = threading.Lock()
        self._dropped = 0

    @property
    def capacity(self) -> int | None:
        return self._capacity

    @property
    def dropped(self) -> int:
        return self._dropped

    def qsize(self) -> int:
        return len(self._items)

    def is_empty(self) -> bool:
        return not self._items

    def try_enqueue(self, item: T) -> bool:
        """Append ``item``; returns False (and drops it) when full."""
        with self._lock:
            if self._capacity is not None and len(self._items) >= self._capacity:
                self._dropped += 1
                full = True
            else:
                self._items.append(item)
                full = False
        if full:
            diagnostics.warn(
                "buffer",
                "event buffer full, dropping event",
                capacity=self._capacity,
                dropped_total=self._dropped,
                _rate_limit_key="buffer-full",
            )
            return False
        return True

    def drain(self, max_count: int) -> list[T]:
        """Remove and return up to ``max_count`` events from the front."""
        if max_count <= 0:
            return []
        with self._lock:
            count = min(max_count, len(self._items))
            popleft = self._items.popleft
            return [popleft() for _ in range(count)]


__all__ = ["EventBuffer"]
