"""Viewport-driven lazy loading of a single image."""

import logging
from typing import Any, Callable, Optional, Protocol

from ..api.loader import ImageLoader, ImageLoadError
from ..api.schemas import DisplayState
from .capability import CapabilityProbe, HeadlessCapabilityProbe
from .events import EventEmitter
from .fallback import DEFAULT_PLACEHOLDER, FallbackLadder
from .models import LoadState, QualityHint
from .naming import to_webp_path

logger = logging.getLogger(__name__)

# Load slightly before the element scrolls into view.
DEFAULT_MARGIN = 50  # px

VisibilityCallback = Callable[[bool], None]


class VisibilityTracker(Protocol):
    """Tracks element visibility and calls back on changes."""

    def observe(self, element: Any, callback: VisibilityCallback, margin: int) -> None: ...

    def unobserve(self, element: Any) -> None: ...


class ManualVisibilityTracker:
    """Visibility tracker driven by hand, for tests and headless rendering."""

    def __init__(self):
        self._observed: dict[int, tuple[Any, VisibilityCallback, int]] = {}
        self.observe_calls = 0
        self.unobserve_calls = 0

    def observe(self, element: Any, callback: VisibilityCallback, margin: int) -> None:
        self.observe_calls += 1
        self._observed[id(element)] = (element, callback, margin)

    def unobserve(self, element: Any) -> None:
        self.unobserve_calls += 1
        self._observed.pop(id(element), None)

    def is_observed(self, element: Any) -> bool:
        return id(element) in self._observed

    def margin_for(self, element: Any) -> Optional[int]:
        entry = self._observed.get(id(element))
        return entry[2] if entry else None

    def set_visible(self, element: Any, visible: bool = True) -> bool:
        """Fire a visibility change. Returns False if the element is not observed."""
        entry = self._observed.get(id(element))
        if entry is None:
            return False
        entry[1](visible)
        return True

    def reveal_all(self) -> int:
        """Mark every observed element visible. Returns how many were fired."""
        fired = 0
        for element, callback, _ in list(self._observed.values()):
            if id(element) in self._observed:
                callback(True)
                fired += 1
        return fired

    def __len__(self) -> int:
        return len(self._observed)


class LazyImage:
    """One displayed image: decides when to load and walks the fallback ladder.

    States: IDLE -> OBSERVING -> RESOLVED -> LOADED | ERRORED. Priority images
    skip straight to RESOLVED on ``start()``. A unit subscribes to visibility
    at most once and unsubscribes on the first visible signal.
    """

    def __init__(
        self,
        original_path: str,
        loader: ImageLoader,
        *,
        element: Any = None,
        priority: bool = False,
        rewrite: Callable[[str], str] = to_webp_path,
        probe: Optional[CapabilityProbe] = None,
        tracker: Optional[VisibilityTracker] = None,
        placeholder: Optional[str] = DEFAULT_PLACEHOLDER,
        enable_webp: bool = True,
        margin: int = DEFAULT_MARGIN,
        quality_hint: Optional[QualityHint] = None,
        on_loaded: Optional[Callable[[str], None]] = None,
        on_errored: Optional[Callable[[str], None]] = None,
        emitter: Optional[EventEmitter] = None,
    ):
        """Initialize the unit.

        Args:
            original_path: Source path as given by the UI
            loader: Loader that attempts each candidate source
            element: Display container to observe (defaults to the unit itself)
            priority: Resolve immediately instead of waiting for visibility
            rewrite: Path rewrite, usually a ``ConversionCache.get_or_compute``
            probe: Capability probe deciding whether to try WebP at all
            tracker: Visibility tracker; without one the unit loads eagerly
            placeholder: Last-resort source of the fallback ladder
            enable_webp: Set to False to always load the original format
            margin: Proximity margin in pixels passed to the tracker
            quality_hint: Quality requested by the UI, reported in ``snapshot()``
            on_loaded: Called once with the source that finally loaded
            on_errored: Called once with a reason when every source failed
            emitter: Optional emitter for pipeline events
        """
        self.original_path = original_path
        self.loader = loader
        self.element = element if element is not None else self
        self.priority = priority
        self.rewrite = rewrite
        self.probe = probe or HeadlessCapabilityProbe()
        self.tracker = tracker
        self.placeholder = placeholder
        self.enable_webp = enable_webp
        self.margin = margin
        self.quality_hint = quality_hint
        self.on_loaded = on_loaded
        self.on_errored = on_errored
        self.emitter = emitter

        self.state = LoadState.IDLE
        self.resolved_source = ""
        self.error: Optional[str] = None
        self.ladder: Optional[FallbackLadder] = None
        self.attempts: list[str] = []
        self._subscribed = False
        self._torn_down = False

    @property
    def is_loaded(self) -> bool:
        return self.state is LoadState.LOADED

    @property
    def has_errored(self) -> bool:
        return self.state is LoadState.ERRORED

    @property
    def is_subscribed(self) -> bool:
        return self._subscribed

    def start(self) -> None:
        """Begin the lifecycle. Calling it again has no effect."""
        if self.state is not LoadState.IDLE or self._torn_down:
            return

        if self.priority or self.tracker is None:
            self.resolve()
            return

        self.state = LoadState.OBSERVING
        self._subscribed = True
        self.tracker.observe(self.element, self._on_visibility, self.margin)

    def _on_visibility(self, visible: bool) -> None:
        if not visible or self.state is not LoadState.OBSERVING:
            return
        self._release()
        self.resolve()

    def _release(self) -> None:
        if self._subscribed and self.tracker is not None:
            self._subscribed = False
            self.tracker.unobserve(self.element)

    def resolve(self) -> None:
        """Pick the target source and attempt the first load."""
        if self.state not in (LoadState.IDLE, LoadState.OBSERVING):
            return

        target = self.original_path
        if self.enable_webp and self.probe.supports_format():
            target = self.rewrite(self.original_path)

        self.ladder = FallbackLadder(
            self.original_path,
            target,
            self.placeholder,
            on_loaded=self._handle_loaded,
            on_errored=self._handle_errored,
            emitter=self.emitter,
        )
        self.state = LoadState.RESOLVED
        self.resolved_source = self.ladder.current
        self._attempt(self.resolved_source)

    def _attempt(self, source: str) -> None:
        self.attempts.append(source)
        self.loader.load(
            source,
            lambda: self._on_load(source),
            lambda error: self._on_error(source, error),
        )

    def _is_stale(self, source: str) -> bool:
        return (
            self._torn_down
            or self.state is not LoadState.RESOLVED
            or source != self.resolved_source
        )

    def _on_load(self, source: str) -> None:
        if self._is_stale(source):
            return
        self.ladder.on_load_success()

    def _on_error(self, source: str, error: ImageLoadError) -> None:
        if self._is_stale(source):
            return
        logger.debug("Load failed for %s: %s", source, error)
        following = self.ladder.on_load_failure()
        if following is None:
            return
        self.resolved_source = following
        self._attempt(following)

    def _handle_loaded(self, source: str) -> None:
        self.state = LoadState.LOADED
        if self.on_loaded is not None:
            self.on_loaded(source)

    def _handle_errored(self, reason: str) -> None:
        self.state = LoadState.ERRORED
        self.error = reason
        if self.on_errored is not None:
            self.on_errored(reason)

    def teardown(self) -> None:
        """Release the visibility subscription and ignore late load results.

        Whatever was already resolved stays as it is. Safe to call repeatedly.
        """
        self._release()
        self._torn_down = True

    def snapshot(self) -> DisplayState:
        return DisplayState(
            resolved_source=self.resolved_source,
            is_loaded=self.is_loaded,
            has_errored=self.has_errored,
            state=self.state,
            quality_hint=self.quality_hint,
            quality=self.quality_hint.quality if self.quality_hint else None,
        )
