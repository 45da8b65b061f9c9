"""Detection of whether the runtime can handle the WebP format."""

import io
import logging
from typing import Optional, Protocol

from PIL import Image

logger = logging.getLogger(__name__)


class CapabilityProbe(Protocol):
    def supports_format(self) -> bool: ...


class PillowCapabilityProbe:
    """Probes WebP support by encoding a 1x1 image through Pillow.

    The result is computed on first access and kept for the lifetime of the
    probe. Any failure while probing means "unsupported".
    """

    def __init__(self):
        self._supported: Optional[bool] = None

    def supports_format(self) -> bool:
        if self._supported is None:
            self._supported = self._probe()
        return self._supported

    @staticmethod
    def _probe() -> bool:
        try:
            buffer = io.BytesIO()
            Image.new("RGB", (1, 1)).save(buffer, format="WEBP")
            data = buffer.getvalue()
            return data[:4] == b"RIFF" and data[8:12] == b"WEBP"
        except Exception as e:
            logger.info("WebP encoding unavailable: %s", e)
            return False


class HeadlessCapabilityProbe:
    """For contexts without a rendering surface: assume support."""

    def supports_format(self) -> bool:
        return True


class StaticCapabilityProbe:
    """Deterministic probe for tests. Counts how often it was asked."""

    def __init__(self, supported: bool = True):
        self.supported = supported
        self.calls = 0

    def supports_format(self) -> bool:
        self.calls += 1
        return self.supported
