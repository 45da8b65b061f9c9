from __future__ import annotations

import pytest
from pydantic import ValidationError

from webp_pipeline.api.schemas import DisplayRequest, DisplayState
from webp_pipeline.core.models import LoadState, QualityHint


def test_display_request_defaults() -> None:
    request = DisplayRequest(original_path="/a.png")
    assert request.priority is False
    assert request.quality_hint is None


def test_display_request_parses_quality_hint() -> None:
    request = DisplayRequest(original_path="/a.png", priority=True, quality_hint="medium")
    assert request.quality_hint is QualityHint.MEDIUM
    assert request.quality_hint.quality == 70


def test_display_request_rejects_unknown_hint() -> None:
    with pytest.raises(ValidationError):
        DisplayRequest(original_path="/a.png", quality_hint="ultra")


def test_display_state_serializes() -> None:
    state = DisplayState(resolved_source="/a.webp", is_loaded=True, state=LoadState.LOADED)
    data = state.model_dump(mode="json")
    assert data == {
        "resolved_source": "/a.webp",
        "is_loaded": True,
        "has_errored": False,
        "state": "loaded",
        "quality_hint": None,
        "quality": None,
    }


def test_display_state_carries_quality() -> None:
    state = DisplayState(quality_hint="low", quality=QualityHint.LOW.quality)
    assert state.model_dump(mode="json")["quality_hint"] == "low"
    assert state.quality == 55
