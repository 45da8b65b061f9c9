"""Schedulers used to defer work (debounced queue drains, loader callbacks).

The runtime code never touches timers directly; it asks a ``Scheduler`` so the
deferral can be swapped for immediate or manually-stepped execution in tests.
"""

import asyncio
from typing import Callable, Optional, Protocol


class Handle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Runs a callback after a delay (seconds)."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> Handle: ...


class _DoneHandle:
    """Handle for a callback that already ran."""

    def cancel(self) -> None:
        pass


class ImmediateScheduler:
    """Runs callbacks synchronously, ignoring the delay."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> Handle:
        callback()
        return _DoneHandle()


class _ManualHandle:
    def __init__(self, callback: Callable[[], None]):
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Queues callbacks until ``run_pending()`` is called.

    Useful in tests to observe state before and after a debounce tick.
    """

    def __init__(self):
        self._queue: list[_ManualHandle] = []
        self.delays: list[float] = []

    @property
    def pending(self) -> int:
        return sum(1 for h in self._queue if not h.cancelled)

    def call_later(self, delay: float, callback: Callable[[], None]) -> Handle:
        handle = _ManualHandle(callback)
        self._queue.append(handle)
        self.delays.append(delay)
        return handle

    def run_pending(self) -> int:
        """Run every queued callback in scheduling order.

        Callbacks scheduled while running are left for the next call.

        Returns:
            Number of callbacks executed
        """
        queue, self._queue = self._queue, []
        ran = 0
        for handle in queue:
            if handle.cancelled:
                continue
            handle.callback()
            ran += 1
        return ran


class AsyncioScheduler:
    """Schedules callbacks on an asyncio event loop.

    Without an explicit loop the running loop is used. When called outside of
    any running loop the callback runs immediately.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> Handle:
        loop = self.loop
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                callback()
                return _DoneHandle()
        return loop.call_later(delay, callback)
