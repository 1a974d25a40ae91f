"""Bounded, closable event streams.

An EventStream is a thread-safe FIFO with a fixed capacity and an explicit
end-of-stream. A listener publishes into four of them; consumers read with
get() or simply iterate:

    for device in listener.devices:
        print(device.identity)

Iteration ends once the stream is closed and every buffered item has been
delivered.
"""

from __future__ import annotations

import queue
import threading
import time
from collections import deque
from collections.abc import Iterator
from typing import Generic, TypeVar

T = TypeVar("T")


class StreamClosed(Exception):
    """Raised by EventStream.get() once the stream is closed and drained."""


class EventStream(Generic[T]):
    """A bounded FIFO that producers can close.

    Args:
        maxsize: Maximum number of buffered items (must be >= 1).
        name: Label used in repr().
    """

    def __init__(self, maxsize: int, name: str = "") -> None:
        if maxsize < 1:
            raise ValueError(f"maxsize must be >= 1, got {maxsize}")
        self.maxsize = maxsize
        self.name = name
        self._items: deque[T] = deque()
        self._closed = False
        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._not_full = threading.Condition(self._lock)

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<EventStream {self.name!r} {len(self._items)}/{self.maxsize} {state}>"

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    @property
    def closed(self) -> bool:
        return self._closed

    def put(self, item: T, timeout: float | None = None) -> bool:
        """Append an item, waiting while the stream is full.

        Returns:
            True if the item was queued, False if the stream is (or
            became) closed or the timeout expired.
        """
        with self._not_full:
            deadline = None if timeout is None else time.monotonic() + timeout
            while len(self._items) >= self.maxsize and not self._closed:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._not_full.wait(remaining)
            if self._closed:
                return False
            self._items.append(item)
            self._not_empty.notify()
            return True

    def get(self, timeout: float | None = None) -> T:
        """Remove and return the oldest item.

        Raises:
            StreamClosed: If the stream is closed and empty.
            queue.Empty: If the timeout expired with nothing to read.
        """
        with self._not_empty:
            deadline = None if timeout is None else time.monotonic() + timeout
            while not self._items:
                if self._closed:
                    raise StreamClosed(self.name)
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    raise queue.Empty
                self._not_empty.wait(remaining)
            item = self._items.popleft()
            self._not_full.notify()
            return item

    def close(self) -> bool:
        """Mark end-of-stream and wake every waiting producer and consumer.

        Returns:
            True on the first call, False if already closed.
        """
        with self._lock:
            if self._closed:
                return False
            self._closed = True
            self._not_empty.notify_all()
            self._not_full.notify_all()
            return True

    def __iter__(self) -> Iterator[T]:
        while True:
            try:
                yield self.get()
            except StreamClosed:
                return
