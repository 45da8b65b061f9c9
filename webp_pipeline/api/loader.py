"""Image loaders: attempt to fetch a source and report success or failure.

A loader plays the part of the browser in the pipeline. ``load()`` is
fire-and-forget: it registers the callbacks and returns immediately (or, for
synchronous loaders, calls one of them before returning).
"""

import asyncio
import logging
from pathlib import Path
from typing import Callable, Iterable, Optional, Protocol
from urllib.parse import unquote, urljoin, urlparse

import requests
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

OnLoad = Callable[[], None]
OnError = Callable[["ImageLoadError"], None]


class ImageLoadError(Exception):
    """Raised (or passed to ``on_error``) when an image source cannot be loaded."""
    pass


class ImageLoader(Protocol):
    def load(self, url: str, on_load: OnLoad, on_error: OnError) -> None: ...


class HttpImageLoader:
    """Loads images over HTTP.

    A source is considered loaded when the server answers 200 with an
    ``image/*`` content type. Inside a running event loop the request runs in
    a worker thread and the callbacks fire back on the loop; outside of one
    the request runs inline.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the loader.

        Args:
            base_url: Site root that root-relative sources resolve against
                (e.g., 'https://example.com')
            timeout: Request timeout in seconds
            session: Optional requests session to reuse connections
        """
        self.base_url = base_url.rstrip("/") + "/"
        self.timeout = timeout
        self.session = session or requests.Session()
        self._tasks: set[asyncio.Task] = set()

    def url_for(self, source: str) -> str:
        """Resolve a source path against the base URL (absolute URLs pass through)."""
        if urlparse(source).scheme:
            return source
        return urljoin(self.base_url, source.lstrip("/"))

    def fetch(self, source: str) -> None:
        """Fetch a source synchronously.

        Raises:
            ImageLoadError: If the request fails or does not return an image
        """
        url = self.url_for(source)
        try:
            response = self.session.get(url, timeout=self.timeout, stream=True)
        except requests.RequestException as e:
            raise ImageLoadError(f"Request failed for {url}: {e}")

        try:
            if response.status_code != 200:
                raise ImageLoadError(f"HTTP {response.status_code} for {url}")
            content_type = response.headers.get("Content-Type", "")
            if not content_type.startswith("image/"):
                raise ImageLoadError(f"Not an image ({content_type or 'no content type'}): {url}")
        finally:
            response.close()

    def load(self, url: str, on_load: OnLoad, on_error: OnError) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None:
            try:
                self.fetch(url)
            except ImageLoadError as e:
                on_error(e)
                return
            on_load()
            return

        task = loop.create_task(self._load_async(url, on_load, on_error))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _load_async(self, url: str, on_load: OnLoad, on_error: OnError) -> None:
        try:
            await asyncio.to_thread(self.fetch, url)
        except ImageLoadError as e:
            on_error(e)
            return
        on_load()

    async def wait(self) -> None:
        """Wait until every in-flight request has reported back."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))


class LocalImageLoader:
    """Loads images from a local document root (e.g. a built static site).

    A source loads when the file exists under the root and Pillow can decode
    it.
    """

    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()

    def path_for(self, source: str) -> Path:
        """Map a root-relative source onto the document root.

        Raises:
            ImageLoadError: If the source escapes the root
        """
        path = (self.root / unquote(urlparse(source).path).lstrip("/")).resolve()
        try:
            path.relative_to(self.root)
        except ValueError:
            raise ImageLoadError(f"Outside of document root: {source}")
        return path

    def fetch(self, source: str) -> None:
        path = self.path_for(source)
        if not path.is_file():
            raise ImageLoadError(f"Not found: {source}")
        try:
            with Image.open(path) as img:
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError, Image.DecompressionBombError) as e:
            raise ImageLoadError(f"Cannot decode {source}: {e}")

    def load(self, url: str, on_load: OnLoad, on_error: OnError) -> None:
        try:
            self.fetch(url)
        except ImageLoadError as e:
            logger.debug("Local load failed: %s", e)
            on_error(e)
            return
        on_load()


class MockImageLoader:
    """Loader for tests without a server or files.

    Every source loads except the ones listed in ``failing``. With
    ``deferred=True`` nothing completes until ``complete_next()`` is called,
    which lets tests observe in-flight state.
    """

    def __init__(self, failing: Iterable[str] = (), deferred: bool = False):
        self.failing = set(failing)
        self.deferred = deferred
        self.attempts: list[str] = []
        self.pending: list[tuple[str, OnLoad, OnError]] = []

    def load(self, url: str, on_load: OnLoad, on_error: OnError) -> None:
        self.attempts.append(url)
        if self.deferred:
            self.pending.append((url, on_load, on_error))
            return
        self._complete(url, on_load, on_error)

    def complete_next(self) -> Optional[str]:
        """Complete the oldest pending load. Returns its URL, or None."""
        if not self.pending:
            return None
        url, on_load, on_error = self.pending.pop(0)
        self._complete(url, on_load, on_error)
        return url

    def _complete(self, url: str, on_load: OnLoad, on_error: OnError) -> None:
        if url in self.failing:
            on_error(ImageLoadError(f"Mock failure for {url}"))
        else:
            on_load()
