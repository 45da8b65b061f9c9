"""Application-owned composition of the runtime image pipeline."""

import logging
from typing import Any, Callable, Optional

from ..api.loader import ImageLoader
from ..api.schemas import DisplayRequest
from ..storage.cache import DEFAULT_DEBOUNCE, ConversionCache
from ..storage.ledger import ConversionLedger
from .batch import DEFAULT_DELAY, BatchOptimizer
from .capability import CapabilityProbe, PillowCapabilityProbe
from .events import EventEmitter, EventLog
from .fallback import DEFAULT_PLACEHOLDER
from .lazy import DEFAULT_MARGIN, LazyImage, VisibilityTracker
from .scheduling import Scheduler

logger = logging.getLogger(__name__)


class ImagePipeline:
    """Owns the shared cache, probe and event stream, and creates image units.

    Create one at startup and call ``shutdown()`` (or use it as a context
    manager) when the application stops. Tests create isolated instances.
    """

    def __init__(
        self,
        loader: ImageLoader,
        tracker: Optional[VisibilityTracker] = None,
        probe: Optional[CapabilityProbe] = None,
        scheduler: Optional[Scheduler] = None,
        placeholder: Optional[str] = DEFAULT_PLACEHOLDER,
        enable_webp: bool = True,
        margin: int = DEFAULT_MARGIN,
        debounce: float = DEFAULT_DEBOUNCE,
        max_events: int = 50,
    ):
        """Initialize the pipeline.

        Args:
            loader: Loader attempting each image source
            tracker: Visibility tracker for lazy units (None loads eagerly)
            probe: WebP capability probe (defaults to probing Pillow)
            scheduler: Scheduler for the cache's debounced queue drain
            placeholder: Last-resort source for every unit
            enable_webp: Set to False to serve original formats only
            margin: Proximity margin in pixels for lazy units
            debounce: Delay before the cache's pending queue is drained
            max_events: Size of the in-memory event log
        """
        self.loader = loader
        self.tracker = tracker
        self.probe = probe or PillowCapabilityProbe()
        self.placeholder = placeholder
        self.enable_webp = enable_webp
        self.margin = margin
        self.emitter = EventEmitter()
        self.events = EventLog(self.emitter, max_entries=max_events)
        self.cache = ConversionCache(scheduler=scheduler, emitter=self.emitter, debounce=debounce)
        # Live units only; finished ones are dropped and counted.
        self.units: list[LazyImage] = []
        self.loaded_count = 0
        self.errored_count = 0

    def image(
        self,
        request: DisplayRequest | str,
        element: Any = None,
        on_loaded: Optional[Callable[[str], None]] = None,
        on_errored: Optional[Callable[[str], None]] = None,
    ) -> LazyImage:
        """Create and start the unit for one displayed image.

        The pipeline tracks the unit until it has loaded or errored.
        """
        if isinstance(request, str):
            request = DisplayRequest(original_path=request)

        def loaded(source: str) -> None:
            self.loaded_count += 1
            self._discard(unit)
            if on_loaded is not None:
                on_loaded(source)

        def errored(reason: str) -> None:
            self.errored_count += 1
            self._discard(unit)
            if on_errored is not None:
                on_errored(reason)

        unit = LazyImage(
            request.original_path,
            self.loader,
            element=element,
            priority=request.priority,
            rewrite=self.cache.get_or_compute,
            probe=self.probe,
            tracker=self.tracker,
            placeholder=self.placeholder,
            enable_webp=self.enable_webp,
            margin=self.margin,
            quality_hint=request.quality_hint,
            on_loaded=loaded,
            on_errored=errored,
            emitter=self.emitter,
        )
        self.units.append(unit)
        unit.start()
        return unit

    def _discard(self, unit: LazyImage) -> None:
        if unit in self.units:
            self.units.remove(unit)

    def release(self, unit: LazyImage) -> None:
        """Tear down one unit (its element left the page)."""
        unit.teardown()
        self._discard(unit)

    def optimizer(self, delay: float = DEFAULT_DELAY) -> BatchOptimizer:
        """Batch optimizer sharing this pipeline's cache."""
        return BatchOptimizer(self.cache.get_or_compute, delay=delay)

    def metrics(self, ledger: Optional[ConversionLedger] = None) -> dict:
        """Counters for a development overlay.

        Savings are only reported from measured byte counts in a ledger;
        without one they are None.
        """
        stats = self.cache.stats()
        metrics = {
            "processed": stats.processed_count,
            "queued": stats.queued_count,
            "units": len(self.units),
            "loaded": self.loaded_count,
            "errored": self.errored_count,
            "webp_supported": self.probe.supports_format(),
            "original_bytes": None,
            "webp_bytes": None,
            "saved_bytes": None,
            "reduction": None,
        }
        if ledger is not None:
            original, webp = ledger.totals()
            metrics["original_bytes"] = original
            metrics["webp_bytes"] = webp
            metrics["saved_bytes"] = original - webp
            metrics["reduction"] = (1 - webp / original) * 100 if original else 0.0
        return metrics

    def shutdown(self) -> None:
        """Release every live unit and empty the cache."""
        for unit in self.units:
            unit.teardown()
        logger.debug("Pipeline shut down, released %d unit(s)", len(self.units))
        self.units.clear()
        self.cache.clear()
        self.events.detach()

    def __enter__(self) -> "ImagePipeline":
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()
