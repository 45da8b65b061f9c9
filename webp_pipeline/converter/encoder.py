"""WebP encoding with Pillow, including size-targeted encoding."""

import io
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from PIL import Image, ImageOps


# Errors Pillow raises for unreadable, corrupt or oversized images.
DECODE_ERRORS = (OSError, ValueError, SyntaxError, Image.DecompressionBombError)


class ConversionError(Exception):
    """Raised when a source image cannot be encoded to WebP."""
    pass


@dataclass(frozen=True)
class FitResult:
    """Outcome of encoding under a byte-size ceiling."""

    data: bytes
    quality: int
    met_target: bool
    attempts: tuple[int, ...]

    @property
    def size(self) -> int:
        return len(self.data)


def downscale_image(img: Image.Image, max_dimension: Optional[int]) -> Image.Image:
    """Downscale image if it exceeds the maximum dimension.

    Maintains aspect ratio. Only downscales; never upscales images.
    """
    if max_dimension is None:
        return img

    width, height = img.size
    if width <= max_dimension and height <= max_dimension:
        return img

    scale = min(max_dimension / width, max_dimension / height)
    new_size = (max(1, int(width * scale)), max(1, int(height * scale)))
    return img.resize(new_size, Image.Resampling.LANCZOS)


def prepare_image(img: Image.Image) -> Image.Image:
    """Apply EXIF orientation and bring the image into a WebP-compatible mode."""
    img = ImageOps.exif_transpose(img)
    if img.mode == "P":
        img = img.convert("RGBA" if "transparency" in img.info else "RGB")
    elif img.mode in ("LA", "PA"):
        img = img.convert("RGBA")
    elif img.mode not in ("RGB", "RGBA"):
        img = img.convert("RGB")
    return img


def _encode(img: Image.Image, quality: int, method: int, lossless: bool) -> bytes:
    buffer = io.BytesIO()
    img.save(buffer, format="WEBP", quality=quality, method=method, lossless=lossless)
    return buffer.getvalue()


def open_source(source: str | Path | Image.Image) -> Image.Image:
    """Open and prepare a source image (path or already opened image)."""
    try:
        if isinstance(source, Image.Image):
            return prepare_image(source)
        with Image.open(source) as img:
            img.load()
            return prepare_image(img)
    except DECODE_ERRORS as e:
        raise ConversionError(f"Cannot read {source}: {e}")


def encode_webp(
    source: str | Path | Image.Image,
    quality: int = 85,
    method: int = 6,
    lossless: bool = False,
    max_dimension: Optional[int] = None,
) -> bytes:
    """Encode an image to WebP.

    Args:
        source: Image path or PIL image
        quality: WebP quality (0-100)
        method: Compression method (0-6, 6 is the slowest and smallest)
        lossless: Encode losslessly
        max_dimension: Optional cap on width/height before encoding

    Returns:
        The encoded WebP bytes

    Raises:
        ConversionError: If the source cannot be read or encoded
    """
    img = downscale_image(open_source(source), max_dimension)
    try:
        return _encode(img, quality, method, lossless)
    except DECODE_ERRORS as e:
        raise ConversionError(f"WebP encoding failed: {e}")


def fit_to_size(
    source: str | Path | Image.Image,
    target_bytes: int,
    start_quality: int = 75,
    min_quality: int = 30,
    step: int = 10,
    method: int = 6,
    max_dimension: Optional[int] = None,
) -> FitResult:
    """Lower the quality step by step until the encoding fits under a ceiling.

    Stops at the first quality whose output is at most ``target_bytes``, or at
    ``min_quality`` when even that is too large (``met_target`` is then False
    and the smallest attempt is returned).

    Raises:
        ConversionError: If the source cannot be read or encoded
        ValueError: On an empty quality range
    """
    if step <= 0 or start_quality < min_quality:
        raise ValueError("quality range is empty")

    img = downscale_image(open_source(source), max_dimension)

    qualities = list(range(start_quality, min_quality - 1, -step))
    if qualities[-1] != min_quality:
        qualities.append(min_quality)

    attempts = []
    data = b""
    for quality in qualities:
        try:
            data = _encode(img, quality, method, lossless=False)
        except DECODE_ERRORS as e:
            raise ConversionError(f"WebP encoding failed at quality {quality}: {e}")
        attempts.append(quality)
        if len(data) <= target_bytes:
            return FitResult(data=data, quality=quality, met_target=True, attempts=tuple(attempts))

    return FitResult(data=data, quality=attempts[-1], met_target=False, attempts=tuple(attempts))
