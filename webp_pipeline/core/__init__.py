"""Core runtime logic - path rewriting, lazy loading and fallbacks."""

from .models import (
    BatchProgress,
    BatchResult,
    CacheStats,
    ImageReference,
    LadderState,
    LoadState,
    QualityHint,
)
from .naming import CONVERTIBLE_EXTENSIONS, TARGET_EXTENSION, is_webp, output_name, to_webp_path
from .scheduling import AsyncioScheduler, ImmediateScheduler, ManualScheduler
from .events import EventEmitter, EventLog, PipelineEvent
from .capability import HeadlessCapabilityProbe, PillowCapabilityProbe, StaticCapabilityProbe
from .fallback import DEFAULT_PLACEHOLDER, FallbackLadder
from .batch import BatchOptimizer
from .lazy import LazyImage, ManualVisibilityTracker
from .pipeline import ImagePipeline

__all__ = [
    "BatchProgress",
    "BatchResult",
    "CacheStats",
    "ImageReference",
    "LadderState",
    "LoadState",
    "QualityHint",
    "CONVERTIBLE_EXTENSIONS",
    "TARGET_EXTENSION",
    "is_webp",
    "output_name",
    "to_webp_path",
    "AsyncioScheduler",
    "ImmediateScheduler",
    "ManualScheduler",
    "EventEmitter",
    "EventLog",
    "PipelineEvent",
    "HeadlessCapabilityProbe",
    "PillowCapabilityProbe",
    "StaticCapabilityProbe",
    "DEFAULT_PLACEHOLDER",
    "FallbackLadder",
    "BatchOptimizer",
    "LazyImage",
    "ManualVisibilityTracker",
    "ImagePipeline",
]
