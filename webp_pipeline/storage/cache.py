"""In-memory memoization of WebP path rewrites."""

import logging
import threading
from typing import Callable, Optional

from ..core.events import CONVERT, EventEmitter, PipelineEvent
from ..core.models import CacheStats
from ..core.naming import is_webp, to_webp_path
from ..core.scheduling import AsyncioScheduler, Handle, Scheduler

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE = 0.1  # seconds


class ConversionCache:
    """Maps original paths to their rewritten paths for the process lifetime.

    Entries never expire; ``clear()`` empties everything at once. Newly
    computed paths are also put on a pending queue that is drained on a short
    debounce, purely to batch debug output and events.
    """

    def __init__(
        self,
        transform: Callable[[str], str] = to_webp_path,
        scheduler: Optional[Scheduler] = None,
        emitter: Optional[EventEmitter] = None,
        debounce: float = DEFAULT_DEBOUNCE,
    ):
        """Initialize the cache.

        Args:
            transform: Path rewrite applied on a cache miss
            scheduler: Scheduler for the debounced queue drain
                (defaults to the running asyncio loop)
            emitter: Optional emitter receiving one ``convert`` event per
                drained path
            debounce: Delay in seconds before the queue is drained
        """
        self.transform = transform
        self.scheduler = scheduler or AsyncioScheduler()
        self.emitter = emitter
        self.debounce = debounce
        self._processed: dict[str, str] = {}
        self._queue: set[str] = set()
        self._drain_handle: Optional[Handle] = None
        self._drain_scheduled = False
        self._lock = threading.Lock()

    def get_or_compute(self, path: str) -> str:
        """Return the rewritten path, computing it on first request."""
        if not path or is_webp(path):
            return path

        with self._lock:
            cached = self._processed.get(path)
            if cached is not None:
                return cached
            result = self.transform(path)
            self._processed[path] = result
            self._queue.add(path)
            schedule = not self._drain_scheduled
            self._drain_scheduled = True

        if schedule:
            handle = self.scheduler.call_later(self.debounce, self.drain)
            with self._lock:
                # An immediate scheduler has already drained by now.
                if self._drain_scheduled:
                    self._drain_handle = handle
        return result

    def drain(self) -> list[tuple[str, str]]:
        """Empty the pending queue and report what was converted.

        Returns:
            List of (original, rewritten) pairs that were pending
        """
        with self._lock:
            self._drain_scheduled = False
            self._drain_handle = None
            pending = sorted(self._queue)
            self._queue.clear()
            pairs = [(p, self._processed.get(p, p)) for p in pending]

        if not pairs:
            return []

        logger.debug("WebP auto-converter: processing %d image(s)", len(pairs))
        for original, rewritten in pairs:
            logger.debug("%s -> %s", original, rewritten)
            if self.emitter is not None:
                self.emitter.emit(PipelineEvent(CONVERT, original, rewritten))
        return pairs

    def clear(self) -> None:
        """Drop every cached rewrite and the pending queue."""
        with self._lock:
            self._processed.clear()
            self._queue.clear()
            self._drain_scheduled = False
            handle, self._drain_handle = self._drain_handle, None
        if handle is not None:
            handle.cancel()

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                processed_count=len(self._processed),
                queued_count=len(self._queue),
            )

    def __contains__(self, path: str) -> bool:
        return path in self._processed

    def __len__(self) -> int:
        return len(self._processed)
