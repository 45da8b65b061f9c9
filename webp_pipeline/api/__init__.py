"""Image loaders and the schemas shared with the UI layer."""

from .loader import (
    HttpImageLoader,
    ImageLoadError,
    LocalImageLoader,
    MockImageLoader,
)
from .schemas import DisplayRequest, DisplayState

__all__ = [
    "HttpImageLoader",
    "ImageLoadError",
    "LocalImageLoader",
    "MockImageLoader",
    "DisplayRequest",
    "DisplayState",
]
