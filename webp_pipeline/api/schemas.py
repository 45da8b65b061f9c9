"""Pydantic schemas for the contract with the UI layer."""
from typing import Optional

from pydantic import BaseModel

from ..core.models import LoadState, QualityHint


class DisplayRequest(BaseModel):
    """What an image-bearing UI unit asks for."""
    original_path: str
    priority: bool = False
    quality_hint: Optional[QualityHint] = None


class DisplayState(BaseModel):
    """What the UI unit gets back and renders."""
    resolved_source: str = ""
    is_loaded: bool = False
    has_errored: bool = False
    state: LoadState = LoadState.IDLE
    quality_hint: Optional[QualityHint] = None
    quality: Optional[int] = None  # WebP quality matching the hint
