"""Naming convention shared by the runtime rewrite and the offline converter.

A source at ``path/name.ext`` (``ext`` in ``CONVERTIBLE_EXTENSIONS``) has its
converted counterpart at ``path/name.webp``.
"""

from pathlib import Path
from typing import Optional

TARGET_EXTENSION = ".webp"

# Compared case-insensitively, without the leading dot.
CONVERTIBLE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "bmp", "tiff"})


def is_webp(path: str) -> bool:
    """Check if a path already points at the target format."""
    return bool(path) and path.endswith(TARGET_EXTENSION)


def split_extension(path: str) -> tuple[str, Optional[str]]:
    """Split a path (without its leading separator) at the last dot.

    Returns:
        Tuple of (base name, lower-case extension). The extension is None
        when the path contains no dot.
    """
    clean = path[1:] if path.startswith("/") else path
    dot = clean.rfind(".")
    if dot == -1:
        return clean, None
    return clean[:dot], clean[dot + 1:].lower()


def to_webp_path(path: str) -> str:
    """Rewrite an image path to its WebP counterpart.

    Pure string rewrite: no I/O and no existence check. Paths that are empty,
    already WebP, extension-less or not in the allow-list come back unchanged.

    Examples:
        >>> to_webp_path("/photo.JPG")
        '/photo.webp'
        >>> to_webp_path("/icon.svg")
        '/icon.svg'
    """
    if not path:
        return path
    if is_webp(path):
        return path

    base, extension = split_extension(path)
    if extension is None or extension not in CONVERTIBLE_EXTENSIONS:
        return path

    return f"/{base}{TARGET_EXTENSION}"


def output_name(filename: str | Path) -> str:
    """Name of the converted file for a source file name (``a.PNG`` -> ``a.webp``)."""
    return Path(filename).stem + TARGET_EXTENSION
