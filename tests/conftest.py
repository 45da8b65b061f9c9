from __future__ import annotations

import struct
import zlib
from pathlib import Path

import pytest
from PIL import Image

from webp_pipeline.api.loader import MockImageLoader
from webp_pipeline.core.lazy import ManualVisibilityTracker
from webp_pipeline.core.scheduling import ManualScheduler


def make_image(path: Path, size: tuple[int, int] = (64, 48), mode: str = "RGB", noisy: bool = False) -> Path:
    """Write a small image whose format follows the file extension."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if noisy:
        img = Image.effect_noise(size, 64).convert(mode)
    else:
        color = (200, 80, 40, 128)[: len(mode)] if mode in ("RGB", "RGBA") else 128
        img = Image.new(mode, size, color)
    img.save(path)
    return path


@pytest.fixture
def image_tree(tmp_path: Path) -> Path:
    """A small public/ directory with convertible, skip-listed and other files."""
    public = tmp_path / "public"
    make_image(public / "hero.jpg", noisy=True)
    make_image(public / "banner.PNG", mode="RGBA")
    make_image(public / "logo.png")
    (public / "favicon.svg").write_text("<svg/>")
    (public / "notes.txt").write_text("not an image")
    make_image(public / "gallery" / "one.jpeg", noisy=True)
    return public


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def tracker() -> ManualVisibilityTracker:
    return ManualVisibilityTracker()


@pytest.fixture
def loader() -> MockImageLoader:
    return MockImageLoader()


def make_broken_png(path: Path) -> Path:
    """Write a PNG whose pixel data is split over two IDAT chunks, the second one corrupted."""
    make_image(path, size=(64, 64), noisy=True)
    data = path.read_bytes()

    chunks = []
    pos = 8
    while pos < len(data):
        length = struct.unpack(">I", data[pos:pos + 4])[0]
        chunks.append((data[pos + 4:pos + 8], data[pos + 8:pos + 8 + length]))
        pos += 12 + length

    idat = b"".join(body for kind, body in chunks if kind == b"IDAT")
    half = len(idat) // 2

    def chunk(kind: bytes, body: bytes) -> bytes:
        return struct.pack(">I", len(body)) + kind + body + struct.pack(">I", zlib.crc32(kind + body))

    out = data[:8]
    for kind, body in chunks:
        if kind == b"IDAT":
            continue
        if kind == b"IEND":
            out += chunk(b"IDAT", idat[:half])
            out += chunk(b"\x00\x01\x02\x03", idat[half:])
        out += chunk(kind, body)
    path.write_bytes(out)
    return path
