"""Fallback ladder: WebP source -> original source -> placeholder."""

import logging
from typing import Callable, Optional

from .events import ERROR, FALLBACK, LOAD, EventEmitter, PipelineEvent
from .models import LadderState

logger = logging.getLogger(__name__)

DEFAULT_PLACEHOLDER = "/placeholder-image.webp"


class FallbackLadder:
    """Steps through degraded sources for one image as loads fail.

    The caller loads ``current``; on failure it asks ``on_load_failure()`` for
    the next candidate and retries with it, on success it calls
    ``on_load_success()``. Once loaded or errored the ladder ignores further
    reports.
    """

    def __init__(
        self,
        original: str,
        transformed: Optional[str] = None,
        placeholder: Optional[str] = DEFAULT_PLACEHOLDER,
        on_loaded: Optional[Callable[[str], None]] = None,
        on_errored: Optional[Callable[[str], None]] = None,
        emitter: Optional[EventEmitter] = None,
    ):
        """Initialize the ladder.

        Args:
            original: Source path as requested by the UI
            transformed: Rewritten (WebP) path, tried first. Defaults to the
                original when the rewrite was skipped.
            placeholder: Last-resort source, or None for no placeholder
            on_loaded: Called once with the source that loaded
            on_errored: Called once with a reason when every candidate failed
            emitter: Optional emitter for fallback/load/error events
        """
        self.original = original
        self.transformed = transformed if transformed is not None else original
        self.placeholder = placeholder
        self.on_loaded = on_loaded
        self.on_errored = on_errored
        self.emitter = emitter
        self.state = LadderState.PENDING
        self.index = 0
        self.failures = 0
        self._candidates: Optional[list[str]] = None

    @property
    def candidates(self) -> list[str]:
        """Ordered sources with adjacent duplicates and blanks removed."""
        if self._candidates is None:
            self._candidates = []
            for source in (self.transformed, self.original, self.placeholder):
                if not source:
                    continue
                if self._candidates and self._candidates[-1] == source:
                    continue
                self._candidates.append(source)
        return self._candidates

    @property
    def current(self) -> str:
        candidates = self.candidates
        return candidates[self.index] if candidates else ""

    @property
    def is_terminal(self) -> bool:
        return self.state is not LadderState.PENDING

    def on_load_failure(self) -> Optional[str]:
        """Report that ``current`` failed to load.

        Returns:
            The next source to try, or None once the ladder is exhausted
            (or was already terminal)
        """
        if self.is_terminal:
            return None

        self.failures += 1
        failed = self.current
        candidates = self.candidates

        if self.index < len(candidates) - 1:
            self.index += 1
            following = candidates[self.index]
            logger.info("Image source %s failed, falling back to %s", failed, following)
            self._emit(FALLBACK, following, f"failed: {failed}")
            return following

        self.state = LadderState.ERRORED
        reason = f"All image sources failed for {self.original}"
        logger.warning(reason)
        self._emit(ERROR, None, reason)
        if self.on_errored is not None:
            self.on_errored(reason)
        return None

    def on_load_success(self) -> None:
        """Report that ``current`` loaded."""
        if self.is_terminal:
            return
        self.state = LadderState.LOADED
        self._emit(LOAD, self.current)
        if self.on_loaded is not None:
            self.on_loaded(self.current)

    def _emit(self, action: str, optimized: Optional[str], detail: Optional[str] = None) -> None:
        if self.emitter is not None:
            self.emitter.emit(PipelineEvent(action, self.original, optimized, detail))
