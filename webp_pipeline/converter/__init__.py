"""Offline build-time conversion of source images to WebP."""

from .scanner import SourceScanner
from .encoder import ConversionError, FitResult, downscale_image, encode_webp, fit_to_size
from .converter import WebPConverter

__all__ = [
    "SourceScanner",
    "ConversionError",
    "FitResult",
    "downscale_image",
    "encode_webp",
    "fit_to_size",
    "WebPConverter",
]
