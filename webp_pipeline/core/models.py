"""Data models for image references, load states and conversion results."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

from .naming import CONVERTIBLE_EXTENSIONS, split_extension


class LoadState(str, Enum):
    """Lifecycle of a single displayed image."""

    IDLE = "idle"
    OBSERVING = "observing"
    RESOLVED = "resolved"
    LOADED = "loaded"
    ERRORED = "errored"


class LadderState(str, Enum):
    """State of a fallback ladder."""

    PENDING = "pending"
    LOADED = "loaded"
    ERRORED = "errored"


class QualityHint(str, Enum):
    """Quality requested by the UI layer for an image."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def quality(self) -> int:
        return {"high": 85, "medium": 70, "low": 55}[self.value]


@dataclass(frozen=True)
class ImageReference:
    """A source image path as handed over by the UI layer."""

    original_path: str

    @property
    def extension(self) -> Optional[str]:
        """Lower-case extension without the dot, or None if there is none."""
        return split_extension(self.original_path)[1]

    @property
    def is_convertible(self) -> bool:
        return self.extension in CONVERTIBLE_EXTENSIONS


@dataclass(frozen=True)
class CacheStats:
    """Snapshot of the conversion cache."""

    processed_count: int
    queued_count: int

    def to_dict(self) -> dict:
        return {"processed": self.processed_count, "queued": self.queued_count}


@dataclass(frozen=True)
class BatchProgress:
    """Progress of a running batch optimization, emitted after each path."""

    processed_count: int
    total: int
    original: str = ""
    result: str = ""

    @property
    def progress(self) -> float:
        """Percentage of processed paths (0 for an empty batch)."""
        if self.total == 0:
            return 0.0
        return self.processed_count / self.total * 100


@dataclass
class BatchResult:
    """Result of a batch optimization, aligned with the input order."""

    results: list[str] = field(default_factory=list)
    processed_count: int = 0
    fell_back: bool = False

    @property
    def total(self) -> int:
        return len(self.results)


@dataclass(frozen=True)
class RewriteStats:
    """Counts from rewriting image fields of CMS/API records."""

    total_items: int
    total_images: int
    optimized_images: int


@dataclass
class ConversionResult:
    """Outcome of converting one source file."""

    source: Path
    output: Optional[Path] = None
    original_size: int = 0  # bytes
    webp_size: int = 0  # bytes
    quality: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.output is not None

    @property
    def reduction(self) -> float:
        """Size reduction in percent, 0 when nothing was measured."""
        if not self.original_size:
            return 0.0
        return (1 - self.webp_size / self.original_size) * 100


@dataclass
class ConversionReport:
    """Aggregate report of an offline conversion run."""

    converted: list[ConversionResult] = field(default_factory=list)
    failed: list[ConversionResult] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)

    @property
    def original_bytes(self) -> int:
        return sum(r.original_size for r in self.converted)

    @property
    def webp_bytes(self) -> int:
        return sum(r.webp_size for r in self.converted)

    @property
    def saved_bytes(self) -> int:
        return self.original_bytes - self.webp_bytes

    @property
    def reduction(self) -> float:
        if not self.original_bytes:
            return 0.0
        return (1 - self.webp_bytes / self.original_bytes) * 100

    def __str__(self) -> str:
        lines = [
            f"Converted: {len(self.converted)} file(s)",
        ]
        if self.failed:
            lines.append(f"Failed: {len(self.failed)} file(s)")
        if self.skipped:
            lines.append(f"Skipped: {len(self.skipped)} file(s)")
        if self.converted:
            lines.append(
                f"Original size: {human_size(self.original_bytes)} -> "
                f"WebP size: {human_size(self.webp_bytes)}"
            )
            lines.append(f"Total size reduction: {self.reduction:.1f}%")
            lines.append(f"Bandwidth savings: {human_size(self.saved_bytes)}")
        return "\n".join(lines)


@dataclass
class ConversionRecord:
    """A conversion persisted in the ledger."""

    source: str
    output: str
    original_size: int  # bytes
    webp_size: int  # bytes
    quality: int
    converted_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "output": self.output,
            "original_size": self.original_size,
            "webp_size": self.webp_size,
            "quality": self.quality,
            "converted_at": self.converted_at.isoformat() if self.converted_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ConversionRecord":
        converted_at = None
        if data.get("converted_at"):
            converted_at = datetime.fromisoformat(data["converted_at"])
        return cls(
            source=data["source"],
            output=data["output"],
            original_size=data["original_size"],
            webp_size=data["webp_size"],
            quality=data["quality"],
            converted_at=converted_at,
        )

    @classmethod
    def from_result(cls, result: ConversionResult) -> "ConversionRecord":
        return cls(
            source=str(result.source),
            output=str(result.output),
            original_size=result.original_size,
            webp_size=result.webp_size,
            quality=result.quality if result.quality is not None else 0,
        )


def human_size(nbytes: int | float | None) -> str:
    """Format byte count as human-readable string."""
    if nbytes is None:
        return "?"
    for unit in ("B", "KB", "MB", "GB"):
        if abs(nbytes) < 1024:
            return f"{nbytes:.0f} {unit}" if unit == "B" else f"{nbytes:.2f} {unit}"
        nbytes /= 1024
    return f"{nbytes:.1f} TB"
