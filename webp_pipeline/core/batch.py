"""Batch rewriting of image paths (slideshows, galleries, CMS records)."""

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, Iterable, Optional, Sequence

from .models import BatchProgress, BatchResult, RewriteStats
from .naming import to_webp_path

logger = logging.getLogger(__name__)

# Pause between items so a single-threaded UI loop stays responsive.
DEFAULT_DELAY = 0.05  # seconds


class BatchOptimizer:
    """Rewrites an ordered collection of paths with progress reporting."""

    def __init__(
        self,
        rewrite: Callable[[str], str] = to_webp_path,
        delay: float = DEFAULT_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the optimizer.

        Args:
            rewrite: Path rewrite, usually a ``ConversionCache.get_or_compute``
            delay: Seconds to yield between items (0 disables the pause)
            sleep: Awaitable used for the pause
        """
        self.rewrite = rewrite
        self.delay = delay
        self.sleep = sleep

    async def iter_progress(self, paths: Iterable[str]) -> AsyncIterator[BatchProgress]:
        """Rewrite paths in order, yielding progress after each one."""
        paths = list(paths)
        total = len(paths)
        for i, path in enumerate(paths):
            result = self.rewrite(path)
            yield BatchProgress(processed_count=i + 1, total=total, original=path, result=result)
            if self.delay and i < total - 1:
                await self.sleep(self.delay)

    async def optimize_all(
        self,
        paths: Iterable[str],
        on_progress: Optional[Callable[[BatchProgress], None]] = None,
    ) -> BatchResult:
        """Rewrite every path, keeping input order.

        An unexpected error anywhere in the run makes the whole batch fall
        back to the original paths instead of failing.

        Args:
            paths: Ordered source paths
            on_progress: Called with a ``BatchProgress`` after each path

        Returns:
            BatchResult whose ``results`` align positionally with ``paths``
        """
        paths = list(paths)
        batch = BatchResult()
        if not paths:
            return batch

        try:
            async for step in self.iter_progress(paths):
                batch.results.append(step.result)
                batch.processed_count = step.processed_count
                if on_progress is not None:
                    on_progress(step)
        except Exception:
            logger.exception("Batch optimization failed, falling back to original paths")
            return BatchResult(
                results=list(paths),
                processed_count=batch.processed_count,
                fell_back=True,
            )

        return batch

    def optimize_gallery(self, images: Sequence[dict]) -> list[dict]:
        """Return copies of gallery items (dicts with a 'src' key) with rewritten sources."""
        optimized = []
        for image in images:
            item = dict(image)
            if isinstance(item.get("src"), str):
                item["src"] = self.rewrite(item["src"])
            optimized.append(item)
        return optimized

    def rewrite_records(
        self,
        records: Sequence[dict],
        fields: Sequence[str],
    ) -> tuple[list[dict], RewriteStats]:
        """Rewrite image fields of CMS/API records.

        Only non-blank string values are touched; records are copied, never
        modified in place.

        Returns:
            Tuple of (rewritten records, RewriteStats)
        """
        rewritten = []
        total_images = 0
        optimized_images = 0
        for record in records:
            item = dict(record)
            for name in fields:
                value = record.get(name)
                if isinstance(value, str) and value.strip():
                    total_images += 1
                    item[name] = self.rewrite(value)
                    if item[name] != value:
                        optimized_images += 1
            rewritten.append(item)

        stats = RewriteStats(
            total_items=len(records),
            total_images=total_images,
            optimized_images=optimized_images,
        )
        return rewritten, stats
