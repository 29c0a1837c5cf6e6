"""Channels, cancellation and the `Stream` handle stages read and write through.

This module is intentionally payload-agnostic and must not import `ycat.*`.
"""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Callable, Iterator
from typing import Any, Protocol


class CancelToken:
    """One-shot cancellation signal shared by every stage of a pipeline."""

    def __init__(self, parent: "CancelToken | None" = None) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []
        self.reason: str | None = None
        if parent is not None:
            parent.on_cancel(self.cancel)

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str | None = None) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self.reason = reason
            self._event.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()
        for callback in callbacks:
            callback()

    def on_cancel(self, callback: Callable[[], None]) -> None:
        """Run `callback` once on cancellation (immediately if already cancelled)."""

        if not callable(callback):
            raise TypeError(f"on_cancel callback must be callable (type={type(callback).__name__})")
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)

    def child(self) -> "CancelToken":
        return CancelToken(parent=self)


class Channel:
    """Bounded FIFO conduit between two concurrent units.

    `capacity == 0` is a rendezvous: `put` returns only once a reader took the
    item. Blocking calls return early (`False`) when the bound token is
    cancelled. Sending after `close()` is refused, never raised.
    """

    def __init__(self, capacity: int = 0, cancel: CancelToken | None = None) -> None:
        if isinstance(capacity, bool) or not isinstance(capacity, int):
            raise TypeError(f"Channel capacity must be an int (type={type(capacity).__name__})")
        if capacity < 0:
            raise ValueError(f"Channel capacity must be >= 0 (got {capacity})")
        self.capacity = capacity
        self._items: deque[Any] = deque()
        self._closed = False
        self._puts = 0
        self._gets = 0
        self._cond = threading.Condition()
        self._cancel = cancel
        if cancel is not None:
            cancel.on_cancel(self._wake)

    @classmethod
    def closed_channel(cls) -> "Channel":
        channel = cls()
        channel.close()
        return channel

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)

    def _wake(self) -> None:
        with self._cond:
            self._cond.notify_all()

    def _cancelled(self) -> bool:
        return self._cancel is not None and self._cancel.cancelled

    def put(self, item: Any) -> bool:
        with self._cond:
            while True:
                if self._cancelled() or self._closed:
                    return False
                if len(self._items) < max(self.capacity, 1):
                    break
                self._cond.wait()

            self._items.append(item)
            self._puts += 1
            ticket = self._puts
            self._cond.notify_all()
            if self.capacity > 0:
                return True

            while self._gets < ticket:
                if self._cancelled():
                    # Only one item can be pending on a rendezvous channel.
                    self._items.pop()
                    self._puts -= 1
                    return False
                self._cond.wait()
            return True

    def get(self) -> tuple[Any, bool]:
        with self._cond:
            while True:
                if self._cancelled():
                    return None, False
                if self._items:
                    item = self._items.popleft()
                    self._gets += 1
                    self._cond.notify_all()
                    return item, True
                if self._closed:
                    return None, False
                self._cond.wait()

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def __iter__(self) -> Iterator[Any]:
        while True:
            item, ok = self.get()
            if not ok:
                return
            yield item


class ReadStream(Protocol):
    def next(self) -> tuple[Any, bool]:
        ...


class WriteStream(Protocol):
    def push(self, value: Any) -> bool:
        ...


class Stream:
    """Bidirectional handle: pull from upstream, push downstream."""

    def __init__(self, src: Channel, out: Channel, cancel: CancelToken) -> None:
        self._src = src
        self._out = out
        self._cancel = cancel
        self.pulled = 0
        self.pushed = 0

    @property
    def cancelled(self) -> bool:
        return self._cancel.cancelled

    def next(self) -> tuple[Any, bool]:
        if self._cancel.cancelled:
            return None, False
        value, ok = self._src.get()
        if ok:
            self.pulled += 1
        return value, ok

    def push(self, value: Any) -> bool:
        if self._cancel.cancelled:
            return False
        accepted = self._out.put(value)
        if accepted:
            self.pushed += 1
        return accepted

    def __iter__(self) -> Iterator[Any]:
        while True:
            value, ok = self.next()
            if not ok:
                return
            yield value


def drain(stream: Stream) -> bool:
    """Forward every remaining upstream value unchanged.

    Returns True when upstream was exhausted, False when downstream stopped
    accepting values first.
    """

    while True:
        value, ok = stream.next()
        if not ok:
            return True
        if not stream.push(value):
            return False
