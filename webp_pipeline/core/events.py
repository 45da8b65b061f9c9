"""Structured pipeline events.

The cache, the fallback ladder and the lazy-load controller report what they
do through an ``EventEmitter``. A development overlay subscribes to it (or
reads an ``EventLog``) instead of scraping log output.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

logger = logging.getLogger(__name__)

# Event actions
CONVERT = "convert"
LOAD = "load"
FALLBACK = "fallback"
ERROR = "error"


@dataclass(frozen=True)
class PipelineEvent:
    """One observable step of the pipeline."""

    action: str
    original: str
    optimized: Optional[str] = None
    detail: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "action": self.action,
            "original": self.original,
            "optimized": self.optimized,
            "detail": self.detail,
            "timestamp": self.timestamp.isoformat(),
        }


Listener = Callable[[PipelineEvent], None]


class EventEmitter:
    """Fan-out of pipeline events to subscribed listeners."""

    def __init__(self):
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener.

        Returns:
            A function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: PipelineEvent) -> None:
        # A failing listener must not break image loading.
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener failed for %s event", event.action)

    def __len__(self) -> int:
        return len(self._listeners)


class EventLog:
    """Bounded, newest-first record of pipeline events."""

    def __init__(self, emitter: Optional[EventEmitter] = None, max_entries: int = 50):
        self._entries: deque[PipelineEvent] = deque(maxlen=max_entries)
        self._unsubscribe: Optional[Callable[[], None]] = None
        if emitter is not None:
            self.attach(emitter)

    def attach(self, emitter: EventEmitter) -> None:
        self.detach()
        self._unsubscribe = emitter.subscribe(self.record)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def record(self, event: PipelineEvent) -> None:
        self._entries.appendleft(event)

    @property
    def entries(self) -> list[PipelineEvent]:
        return list(self._entries)

    def by_action(self, action: str) -> list[PipelineEvent]:
        return [e for e in self._entries if e.action == action]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
