"""Background page loading.

Fetching, parsing and image decoding run on a worker thread; the UI
thread polls for results and renders them itself. Every request gets a
new generation number and results from older generations are dropped on
arrival, so following a link while another page is loading simply
abandons the earlier load.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

from .constants import ViewerConstants
from .images import ImageSource, LocalImageSource, preload_images
from .markup import MarkupNode, from_html

logger = logging.getLogger(__name__)


class LoadError(Exception):
    """A page could not be fetched."""


def read_local(target: str) -> tuple[str, str]:
    """Read a local HTML file given as a path or ``file://`` URL.

    Returns:
        (html, base_url) where base_url is the file's absolute file:// URL.

    Raises:
        LoadError: the target is not local or cannot be read.
    """
    parsed = urlparse(target)
    if parsed.scheme == "file":
        path = Path(url2pathname(unquote(parsed.path)))
    elif parsed.scheme == "" or len(parsed.scheme) == 1:
        # Plain path; a one-letter scheme is a Windows drive
        path = Path(target).expanduser()
    elif parsed.scheme in ("http", "https"):
        raise LoadError(f"Network fetching is not supported: {target}")
    else:
        raise LoadError(f"Unsupported URL scheme '{parsed.scheme}': {target}")

    try:
        data = path.read_bytes()
    except OSError as e:
        raise LoadError(f"Could not read {path}: {e.strerror or e}") from e
    return data.decode("utf-8", errors="replace"), path.resolve().as_uri()


@dataclass(frozen=True)
class LoadResult:
    """Outcome of one load request, delivered to the UI thread."""
    generation: int
    target: str
    base_url: Optional[str] = None
    tree: Optional[MarkupNode] = None
    images: dict = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.tree is not None


Fetch = Callable[[str], tuple[str, str]]


class PageLoader:
    """Runs page loads on daemon threads and hands back the newest result."""

    def __init__(self, fetch: Fetch = read_local, parse: Callable[[str], MarkupNode] = from_html,
                 image_source: Callable[[Optional[str]], ImageSource] = LocalImageSource,
                 image_limit: int = ViewerConstants.DEFAULT_MAX_IMAGES):
        self.fetch = fetch
        self.parse = parse
        self.image_source = image_source
        self.image_limit = image_limit
        self._generation = 0
        self._awaiting = -1  # Generation whose result has not been polled yet
        self._results: queue.Queue[LoadResult] = queue.Queue()

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def pending(self) -> bool:
        """True while the current generation's result has not been polled."""
        return self._awaiting == self._generation

    def request(self, target: str) -> int:
        """Start loading ``target``; any earlier request becomes stale."""
        self._generation += 1
        generation = self._generation
        self._awaiting = generation
        worker = threading.Thread(target=self._work, args=(generation, target),
                                  name=f"navim-loader-{generation}", daemon=True)
        worker.start()
        return generation

    def cancel(self) -> None:
        """Make any in-flight request stale without starting a new one."""
        self._generation += 1

    def poll(self) -> Optional[LoadResult]:
        """Return the current generation's result if it has arrived."""
        while True:
            try:
                result = self._results.get_nowait()
            except queue.Empty:
                return None
            if result.generation == self._generation:
                self._awaiting = -1
                return result
            logger.debug(f"Dropping stale result for {result.target} (generation {result.generation})")

    def wait(self, timeout: Optional[float] = None) -> Optional[LoadResult]:
        """Block until the current generation's result arrives or ``timeout`` passes."""
        while True:
            try:
                result = self._results.get(timeout=timeout)
            except queue.Empty:
                return None
            if result.generation == self._generation:
                self._awaiting = -1
                return result

    def _work(self, generation: int, target: str) -> None:
        try:
            html, base_url = self.fetch(target)
            tree = self.parse(html)
            images = preload_images(tree, self.image_source(base_url), self.image_limit)
            result = LoadResult(generation, target, base_url, tree, images)
        except LoadError as e:
            result = LoadResult(generation, target, error=str(e))
        except Exception as e:
            # Justification: an exception escaping a worker thread would leave
            # the UI waiting forever; report it like any other load failure.
            logger.exception(f"Unexpected error loading {target}")
            result = LoadResult(generation, target, error=f"{type(e).__name__}: {e}")
        self._results.put(result)
