from __future__ import annotations

import asyncio

from webp_pipeline.api.loader import MockImageLoader
from webp_pipeline.api.schemas import DisplayRequest
from webp_pipeline.core.capability import StaticCapabilityProbe
from webp_pipeline.core.events import CONVERT, ERROR
from webp_pipeline.core.fallback import DEFAULT_PLACEHOLDER
from webp_pipeline.core.lazy import ManualVisibilityTracker
from webp_pipeline.core.models import ConversionRecord
from webp_pipeline.core.pipeline import ImagePipeline
from webp_pipeline.core.scheduling import ManualScheduler
from webp_pipeline.storage.ledger import ConversionLedger


class Element:
    pass


def make_pipeline(loader=None, tracker=None, probe=None) -> tuple[ImagePipeline, ManualScheduler]:
    scheduler = ManualScheduler()
    pipeline = ImagePipeline(
        loader or MockImageLoader(),
        tracker=tracker,
        probe=probe or StaticCapabilityProbe(),
        scheduler=scheduler,
    )
    return pipeline, scheduler


def test_units_share_the_cache() -> None:
    pipeline, scheduler = make_pipeline()

    first = pipeline.image("/a.png")
    second = pipeline.image(DisplayRequest(original_path="/a.png", priority=True))

    assert first.resolved_source == second.resolved_source == "/a.webp"
    assert pipeline.cache.stats().processed_count == 1

    scheduler.run_pending()
    assert [e.original for e in pipeline.events.by_action(CONVERT)] == ["/a.png"]


def test_probe_is_shared_between_units() -> None:
    probe = StaticCapabilityProbe(supported=False)
    loader = MockImageLoader()
    pipeline, _ = make_pipeline(loader=loader, probe=probe)

    pipeline.image("/a.png")
    pipeline.image("/b.png")

    assert loader.attempts == ["/a.png", "/b.png"]
    assert pipeline.cache.stats().processed_count == 0


def test_lazy_units_through_pipeline() -> None:
    tracker = ManualVisibilityTracker()
    pipeline, _ = make_pipeline(tracker=tracker)
    element = Element()

    unit = pipeline.image("/a.png", element=element)
    eager = pipeline.image(DisplayRequest(original_path="/b.jpg", priority=True))

    assert tracker.is_observed(element)
    assert eager.is_loaded

    tracker.set_visible(element)
    assert unit.is_loaded


def test_metrics_without_ledger() -> None:
    loader = MockImageLoader(failing={"/b.webp", "/b.png", DEFAULT_PLACEHOLDER})
    pipeline, _ = make_pipeline(loader=loader)
    pipeline.image("/a.png")
    pipeline.image("/b.png")

    metrics = pipeline.metrics()

    assert metrics["processed"] == 2
    assert metrics["units"] == 0
    assert metrics["loaded"] == 1
    assert metrics["errored"] == 1
    assert metrics["webp_supported"] is True
    assert metrics["reduction"] is None
    assert len(pipeline.events.by_action(ERROR)) == 1


def test_metrics_from_ledger(tmp_path) -> None:
    ledger = ConversionLedger(tmp_path / "conversions.db")
    ledger.add_record(ConversionRecord("public/a.png", "public/webp/a.webp", 1000, 250, 85))
    pipeline, _ = make_pipeline()

    metrics = pipeline.metrics(ledger)

    assert metrics["original_bytes"] == 1000
    assert metrics["webp_bytes"] == 250
    assert metrics["saved_bytes"] == 750
    assert metrics["reduction"] == 75.0


def test_optimizer_uses_pipeline_cache() -> None:
    pipeline, _ = make_pipeline()
    batch = asyncio.run(pipeline.optimizer(delay=0).optimize_all(["/a.png", "/b.webp"]))

    assert batch.results == ["/a.webp", "/b.webp"]
    assert "/a.png" in pipeline.cache


def test_release_and_shutdown() -> None:
    tracker = ManualVisibilityTracker()
    with make_pipeline(tracker=tracker)[0] as pipeline:
        first = pipeline.image("/a.png", element=Element())
        pipeline.image("/b.png", element=Element())
        pipeline.release(first)
        assert len(pipeline.units) == 1
        assert len(tracker) == 1

    assert len(tracker) == 0
    assert pipeline.units == []
    assert len(pipeline.cache) == 0
    assert len(pipeline.emitter) == 0


def test_finished_units_are_dropped_but_counted() -> None:
    pipeline, _ = make_pipeline()
    for i in range(1000):
        pipeline.image(DisplayRequest(original_path=f"/img{i}.png", priority=True))

    assert len(pipeline.units) == 0
    metrics = pipeline.metrics()
    assert metrics["loaded"] == 1000
    assert metrics["units"] == 0


def test_units_stay_tracked_until_they_finish() -> None:
    loader = MockImageLoader(failing={"/a.webp", "/a.png", DEFAULT_PLACEHOLDER}, deferred=True)
    pipeline, _ = make_pipeline(loader=loader)
    errors = []
    unit = pipeline.image("/a.png", on_errored=errors.append)

    assert pipeline.units == [unit]
    while loader.complete_next():
        pass

    assert pipeline.units == []
    assert pipeline.metrics()["errored"] == 1
    assert errors == ["All image sources failed for /a.png"]
