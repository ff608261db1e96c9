"""ASCII-art rendering of raster images.

``convert`` downsamples a decoded image to a character grid using a fixed
luminance palette. Image loading itself belongs to the caller: the
renderer is handed an ``ImageSource`` callable, and ``LocalImageSource``
is the one used for local pages.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union
from urllib.parse import unquote, urljoin, urlparse
from urllib.request import url2pathname

from PIL import Image

from .constants import ViewerConstants
from .markup import MarkupNode, find_main_content

logger = logging.getLogger(__name__)

# Maps an image src (as written in the page) to a decoded image, or None
ImageSource = Callable[[str], Optional[Image.Image]]


@dataclass(frozen=True)
class GlyphGrid:
    """Rectangular grid of characters standing in for an image."""
    rows: tuple
    placeholder: bool = False

    @property
    def width(self) -> int:
        return max((len(row) for row in self.rows), default=0)

    @property
    def height(self) -> int:
        return len(self.rows)


def placeholder_grid(alt: str = "") -> GlyphGrid:
    text = f"[image: {alt}]" if alt else ViewerConstants.IMAGE_PLACEHOLDER
    return GlyphGrid((text,), placeholder=True)


def grid_shape(width: int, height: int, target_cols: int) -> tuple[int, int]:
    """Return (cols, rows) for an image of the given pixel size.

    Character cells are roughly twice as tall as they are wide, so rows
    are halved to keep the aspect ratio.
    """
    cols = min(target_cols, width)
    rows = max(1, round(cols * height / width / 2))
    if rows > ViewerConstants.MAX_IMAGE_ROWS:
        cols = max(1, cols * ViewerConstants.MAX_IMAGE_ROWS // rows)
        rows = ViewerConstants.MAX_IMAGE_ROWS
    return cols, rows


def convert(image: Union[Image.Image, bytes], target_cols: int, *,
            invert: bool = False, alt: str = "") -> GlyphGrid:
    """Convert an image (decoded, or raw encoded bytes) to a glyph grid.

    Never raises for bad input: undecodable data, an empty image or a
    target narrower than one column yield a placeholder grid.
    """
    if target_cols < 1:
        return placeholder_grid(alt)
    try:
        if isinstance(image, (bytes, bytearray)):
            image = Image.open(io.BytesIO(image))
            image.load()
        width, height = image.size
        if width < 1 or height < 1:
            return placeholder_grid(alt)
        cols, rows = grid_shape(width, height, target_cols)
        gray = image.convert("L").resize((cols, rows), Image.Resampling.LANCZOS)
        luminance = gray.tobytes()
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        logger.debug(f"Could not convert image: {e}")
        return placeholder_grid(alt)

    palette = ViewerConstants.IMAGE_PALETTE
    if invert:
        palette = palette[::-1]
    last = len(palette) - 1
    grid = tuple(
        "".join(palette[luminance[y * cols + x] * last // 255] for x in range(cols))
        for y in range(rows)
    )
    return GlyphGrid(grid)


# Substrings of src values that mark decoration rather than content
_NON_CONTENT_MARKERS = (
    "icon", "avatar", "sprite", "tracking", "pixel", "1x1",
    "badge", "button", "arrow", "spacer", "widget", "/static/",
)


def is_content_image(src: Optional[str]) -> bool:
    """Heuristically decide whether an image is worth rendering."""
    if not src:
        return False
    lower = src.lower()
    if lower.startswith("data:") or lower.endswith((".svg", ".gif")):
        return False
    return not any(marker in lower for marker in _NON_CONTENT_MARKERS)


def image_src(node: MarkupNode) -> Optional[str]:
    """Return an <img> node's source, honouring lazy-loading attributes."""
    return node.get("src") or node.get("data-src") or node.get("data-lazy-src")


class LocalImageSource:
    """Loads images referenced by a local page from the filesystem."""

    def __init__(self, base_url: Optional[str] = None):
        self.base_url = base_url

    def resolve(self, src: str) -> Optional[str]:
        """Return the filesystem path for ``src``, or None if it is not local."""
        url = urljoin(self.base_url, src) if self.base_url else src
        parsed = urlparse(url)
        if parsed.scheme == "file":
            return url2pathname(unquote(parsed.path))
        if parsed.scheme == "" and parsed.path:
            return unquote(parsed.path)
        return None

    def __call__(self, src: str) -> Optional[Image.Image]:
        path = self.resolve(src)
        if path is None:
            logger.debug(f"Not a local image, skipping: {src}")
            return None
        try:
            with Image.open(path) as img:
                img.load()
                return img.copy()
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            logger.debug(f"Could not load image {path}: {e}")
            return None


def preload_images(tree: MarkupNode, source: ImageSource,
                   limit: int = ViewerConstants.DEFAULT_MAX_IMAGES) -> dict:
    """Decode the content images a render of ``tree`` will ask for.

    Meant to run on the loader thread; the returned dict's ``get`` serves
    as the renderer's image source on the UI thread.
    """
    images: dict = {}
    if limit <= 0:
        return images
    for node in find_main_content(tree).iter_elements():
        if node.tag != "img":
            continue
        src = image_src(node)
        if not is_content_image(src) or src in images:
            continue
        image = source(src)
        if image is not None:
            images[src] = image
        if len(images) >= limit:
            break
    return images
