from __future__ import annotations

from webp_pipeline.api.loader import MockImageLoader
from webp_pipeline.core.capability import StaticCapabilityProbe
from webp_pipeline.core.events import ERROR, FALLBACK, LOAD, EventEmitter, EventLog
from webp_pipeline.core.fallback import DEFAULT_PLACEHOLDER
from webp_pipeline.core.lazy import DEFAULT_MARGIN, LazyImage, ManualVisibilityTracker
from webp_pipeline.core.models import LoadState, QualityHint


class Element:
    """Stands in for a display container."""


def test_priority_image_falls_back_to_placeholder() -> None:
    emitter = EventEmitter()
    log = EventLog(emitter)
    loader = MockImageLoader(failing={"/photo.webp", "/photo.jpg"})
    loaded = []

    unit = LazyImage("/photo.jpg", loader, priority=True, emitter=emitter, on_loaded=loaded.append)
    unit.start()

    assert unit.resolved_source == DEFAULT_PLACEHOLDER
    assert unit.is_loaded
    assert loaded == [DEFAULT_PLACEHOLDER]
    assert loader.attempts == ["/photo.webp", "/photo.jpg", DEFAULT_PLACEHOLDER]
    assert len(log.by_action(FALLBACK)) == 2
    assert len(log.by_action(LOAD)) == 1
    assert log.by_action(ERROR) == []


def test_non_priority_unit_waits_for_visibility(tracker: ManualVisibilityTracker, loader: MockImageLoader) -> None:
    element = Element()
    unit = LazyImage("/a.png", loader, element=element, tracker=tracker)
    unit.start()

    assert unit.state is LoadState.OBSERVING
    assert tracker.is_observed(element)
    assert tracker.margin_for(element) == DEFAULT_MARGIN
    assert loader.attempts == []

    tracker.set_visible(element, False)
    assert unit.state is LoadState.OBSERVING

    tracker.set_visible(element)
    assert unit.is_loaded
    assert unit.resolved_source == "/a.webp"
    assert not tracker.is_observed(element)
    assert not unit.is_subscribed


def test_subscription_is_single_shot(tracker: ManualVisibilityTracker, loader: MockImageLoader) -> None:
    element = Element()
    unit = LazyImage("/a.png", loader, element=element, tracker=tracker)
    unit.start()
    unit.start()

    tracker.set_visible(element, False)
    tracker.set_visible(element, False)
    tracker.set_visible(element)
    tracker.set_visible(element)
    unit.start()

    assert tracker.observe_calls == 1
    assert tracker.unobserve_calls == 1
    assert loader.attempts == ["/a.webp"]


def test_teardown_releases_subscription(tracker: ManualVisibilityTracker, loader: MockImageLoader) -> None:
    element = Element()
    unit = LazyImage("/a.png", loader, element=element, tracker=tracker)
    unit.start()

    unit.teardown()
    unit.teardown()

    assert len(tracker) == 0
    assert tracker.unobserve_calls == 1
    assert tracker.set_visible(element) is False
    assert loader.attempts == []


def test_teardown_without_subscription_is_a_no_op(tracker: ManualVisibilityTracker, loader: MockImageLoader) -> None:
    unit = LazyImage("/a.png", loader, priority=True, tracker=tracker)
    unit.start()
    unit.teardown()

    assert tracker.observe_calls == 0
    assert tracker.unobserve_calls == 0
    assert unit.is_loaded


def test_unsupported_capability_skips_webp(loader: MockImageLoader) -> None:
    probe = StaticCapabilityProbe(supported=False)
    unit = LazyImage("/a.png", loader, priority=True, probe=probe)
    unit.start()

    assert loader.attempts == ["/a.png"]
    assert unit.resolved_source == "/a.png"


def test_disabled_webp_serves_original(loader: MockImageLoader) -> None:
    unit = LazyImage("/a.png", loader, priority=True, enable_webp=False)
    unit.start()
    assert loader.attempts == ["/a.png"]


def test_all_sources_failing_reports_error() -> None:
    loader = MockImageLoader(failing={"/a.webp", "/a.png", DEFAULT_PLACEHOLDER})
    errors = []
    unit = LazyImage("/a.png", loader, priority=True, on_errored=errors.append)
    unit.start()

    assert unit.has_errored
    assert unit.error == "All image sources failed for /a.png"
    assert errors == [unit.error]
    assert len(loader.attempts) == 3


def test_loads_are_attempted_one_at_a_time() -> None:
    loader = MockImageLoader(failing={"/a.webp"}, deferred=True)
    unit = LazyImage("/a.png", loader, priority=True)
    unit.start()

    assert loader.attempts == ["/a.webp"]
    assert unit.state is LoadState.RESOLVED

    loader.complete_next()
    assert loader.attempts == ["/a.webp", "/a.png"]

    loader.complete_next()
    assert unit.is_loaded
    assert unit.resolved_source == "/a.png"


def test_late_results_after_teardown_are_ignored() -> None:
    loader = MockImageLoader(deferred=True)
    unit = LazyImage("/a.png", loader, priority=True)
    unit.start()
    unit.teardown()

    loader.complete_next()

    assert unit.state is LoadState.RESOLVED
    assert unit.resolved_source == "/a.webp"


def test_snapshot_reflects_state(loader: MockImageLoader) -> None:
    unit = LazyImage("/a.png", loader, priority=True)
    assert unit.snapshot().state is LoadState.IDLE

    unit.start()
    state = unit.snapshot()

    assert state.resolved_source == "/a.webp"
    assert state.is_loaded is True
    assert state.has_errored is False
    assert state.state is LoadState.LOADED


def test_units_observe_independently(tracker: ManualVisibilityTracker, loader: MockImageLoader) -> None:
    first, second = Element(), Element()
    a = LazyImage("/a.png", loader, element=first, tracker=tracker)
    b = LazyImage("/b.jpg", loader, element=second, tracker=tracker)
    a.start()
    b.start()

    tracker.set_visible(second)

    assert b.is_loaded
    assert a.state is LoadState.OBSERVING
    assert tracker.reveal_all() == 1
    assert a.is_loaded


def test_snapshot_reports_quality_hint(loader: MockImageLoader) -> None:
    unit = LazyImage("/a.png", loader, priority=True, quality_hint=QualityHint.MEDIUM)
    unit.start()

    state = unit.snapshot()
    assert state.quality_hint is QualityHint.MEDIUM
    assert state.quality == 70
    assert LazyImage("/b.png", loader).snapshot().quality is None
