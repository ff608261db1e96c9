"""Render a markup tree into a Document.

``render`` walks the tree in document order, turns each element into
styled cells according to its tag class, reflows paragraphs to the target
width and records where every link and image ends up. It is a pure
function of its arguments: all traversal state lives in a ``_Renderer``
that is thrown away after the call.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Optional
from urllib.parse import urljoin

from .constants import ViewerConstants
from .document import (
    BLOCKQUOTE,
    CODE,
    PLAIN,
    BreakKind,
    Cell,
    Document,
    DocumentBuilder,
    ImagePlacement,
    RenderClass,
    cells_for,
)
from .images import GlyphGrid, ImageSource, convert, image_src, is_content_image, placeholder_grid
from .layout import clip_cells, wrap_cells
from .markup import MarkupNode, NodeKind, find_main_content, page_title

logger = logging.getLogger(__name__)


class RenderError(Exception):
    """A page could not be rendered; the caller keeps its previous Document."""


class MalformedDocument(RenderError):
    """The markup tree is not a well-formed tree."""


class TooDeep(RenderError):
    """The markup tree nests deeper than the renderer allows."""


def validate_tree(root: MarkupNode, max_depth: int = ViewerConstants.MAX_TREE_DEPTH) -> None:
    """Check that ``root`` is a proper tree no deeper than ``max_depth``.

    Raises MalformedDocument for cycles, shared subtrees, text nodes with
    children, tagless elements and foreign objects; TooDeep when the
    nesting limit is exceeded.
    """
    if not isinstance(root, MarkupNode):
        raise MalformedDocument(f"expected a MarkupNode, got {type(root).__name__}")
    seen: set[int] = set()
    stack = [(root, 0)]
    while stack:
        node, depth = stack.pop()
        if id(node) in seen:
            raise MalformedDocument("markup tree contains a cycle or a shared node")
        seen.add(id(node))
        if depth > max_depth:
            raise TooDeep(f"markup nests deeper than {max_depth} levels")
        if node.kind is NodeKind.TEXT and node.children:
            raise MalformedDocument("text node has children")
        if node.kind is NodeKind.ELEMENT and not node.tag:
            raise MalformedDocument("element node has no tag")
        for child in node.children:
            if not isinstance(child, MarkupNode):
                raise MalformedDocument(f"unexpected child of type {type(child).__name__}")
            stack.append((child, depth + 1))


class TagClass(Enum):
    """Formatting rules, one per family of tags."""
    SKIP = "skip"
    BLOCK = "block"
    HEADING = "heading"
    LIST = "list"
    ITEM = "item"
    QUOTE = "quote"
    PRE = "pre"
    CODE = "code"
    LINK = "link"
    IMAGE = "image"
    BREAK = "break"
    RULE = "rule"
    CELL = "cell"
    INLINE = "inline"


TAG_CLASSES: dict[str, TagClass] = {
    **{tag: TagClass.SKIP for tag in (
        "head", "title", "script", "style", "noscript", "template", "svg", "iframe", "canvas",
        "object", "embed", "input", "select", "textarea", "button", "option",
    )},
    **{tag: TagClass.BLOCK for tag in (
        "p", "div", "section", "article", "main", "header", "footer", "aside", "nav",
        "figure", "figcaption", "table", "tr", "dl", "dt", "dd", "address", "center",
        "details", "summary", "form", "body", "html",
    )},
    **{f"h{level}": TagClass.HEADING for level in range(1, 7)},
    "ul": TagClass.LIST,
    "ol": TagClass.LIST,
    "menu": TagClass.LIST,
    "li": TagClass.ITEM,
    "blockquote": TagClass.QUOTE,
    "pre": TagClass.PRE,
    "code": TagClass.CODE,
    "kbd": TagClass.CODE,
    "samp": TagClass.CODE,
    "tt": TagClass.CODE,
    "a": TagClass.LINK,
    "img": TagClass.IMAGE,
    "br": TagClass.BREAK,
    "hr": TagClass.RULE,
    "td": TagClass.CELL,
    "th": TagClass.CELL,
}

# Blocks separated from their neighbours by a blank line
SPACED_BLOCKS = frozenset({"p", "table", "figure", "dl", "details"})

# Control characters other than whitespace
_CONTROL_RE = re.compile(r"[\x00-\x08\x0e-\x1b\x7f]")
# Whitespace controls (\v \f \r and the separators) read as a space
_SPACE_CONTROL_RE = re.compile(r"[\x0b-\x0d\x1c-\x1f]")
_WHITESPACE_RE = re.compile(r"\s+")


def _preformatted_text(node: MarkupNode) -> str:
    """Text of a <pre> subtree with whitespace intact; <br> becomes a newline."""
    parts: list[str] = []
    stack = [node]
    while stack:
        current = stack.pop()
        if current.kind is NodeKind.TEXT:
            parts.append(current.text)
        elif current.tag == "br":
            parts.append("\n")
        else:
            stack.extend(reversed(current.children))
    return "".join(parts)


class _Renderer:
    """Traversal state for a single render call."""

    def __init__(self, width: int, base_url: Optional[str], image_source: Optional[ImageSource],
                 image_columns: int, max_images: int, invert_images: bool, title: Optional[str]):
        self.width = width
        self.base_url = base_url
        self.image_source = image_source
        self.image_columns = image_columns
        self.max_images = max_images
        self.invert_images = invert_images
        self.builder = DocumentBuilder(width, title=title, base_url=base_url)

        self._inline: list[Cell] = []  # Cells of the paragraph being collected
        self._quote_depth = 0
        self._lists: list[list] = []   # [tag, item counter] per open list
        self._indent = 0               # List indentation of the current item
        self._hang = 0                 # Hanging indent of the current item
        self._marker: Optional[list[Cell]] = None  # Bullet awaiting its first line
        self._link: Optional[RenderClass] = None
        self._heading = 0
        self._code = 0
        self._next_link_id = 0
        self._images_shown = 0
        self._blank_pending = False

        self._rules = {
            TagClass.SKIP: self._skip,
            TagClass.BLOCK: self._block,
            TagClass.HEADING: self._heading_rule,
            TagClass.LIST: self._list,
            TagClass.ITEM: self._item,
            TagClass.QUOTE: self._quote,
            TagClass.PRE: self._pre,
            TagClass.CODE: self._inline_code,
            TagClass.LINK: self._anchor,
            TagClass.IMAGE: self._image,
            TagClass.BREAK: self._break,
            TagClass.RULE: self._horizontal_rule,
            TagClass.CELL: self._cell,
            TagClass.INLINE: self._children,
        }

    def run(self, root: MarkupNode) -> Document:
        self._render(root)
        self._flush()
        return self.builder.build()

    # --- traversal ---

    def _render(self, node: MarkupNode) -> None:
        if node.kind is NodeKind.TEXT:
            self._text(node.text)
        elif node.kind is NodeKind.FRAGMENT:
            self._children(node)
        else:
            self._rules[TAG_CLASSES.get(node.tag, TagClass.INLINE)](node)

    def _children(self, node: MarkupNode) -> None:
        for child in node.children:
            self._render(child)

    def _text(self, text: str) -> None:
        text = _CONTROL_RE.sub("", _SPACE_CONTROL_RE.sub(" ", text))
        if not text:
            return
        style = self._text_style()
        self._inline.extend(cells_for(text, style))
        if text.strip():
            self.builder.add_run(text, style)

    def _text_style(self) -> RenderClass:
        if self._link is not None:
            return self._link
        if self._code:
            return CODE
        if self._heading:
            return RenderClass.heading(self._heading)
        if self._lists:
            return RenderClass.list_item(len(self._lists) - 1)
        if self._quote_depth:
            return BLOCKQUOTE
        return PLAIN

    # --- line emission ---

    def _prefix_length(self) -> int:
        full = len(ViewerConstants.QUOTE_BAR) * self._quote_depth + self._indent + self._hang
        # Always leave at least one column for content
        return min(full, self.width - 1)

    def _available(self) -> int:
        return self.width - self._prefix_length()

    def _prefix(self) -> list[Cell]:
        cells = cells_for(ViewerConstants.QUOTE_BAR * self._quote_depth, BLOCKQUOTE, decoration=True)
        cells += cells_for(" " * self._indent, decoration=True)
        if self._marker is not None:
            cells += self._marker
        else:
            cells += cells_for(" " * self._hang, decoration=True)
        return cells[:self._prefix_length()]

    def _request_blank(self) -> None:
        self._blank_pending = True

    def _emit_line(self, cells: list[Cell], break_before: BreakKind = BreakKind.HARD) -> None:
        if self._blank_pending and self.builder.line_count:
            bars = (ViewerConstants.QUOTE_BAR * self._quote_depth).rstrip()
            self.builder.add_line(cells_for(bars[:self.width], BLOCKQUOTE, decoration=True))
        self._blank_pending = False
        prefix = self._prefix()
        self._marker = None
        self.builder.add_line(prefix + list(cells), break_before)

    def _flush(self) -> None:
        """Wrap the collected paragraph and emit its lines."""
        if not self._inline:
            return
        cells, self._inline = self._inline, []
        for line in wrap_cells(cells, self._available()):
            self._emit_line(line.cells, line.break_before)

    def _emit_rule(self, glyph: str, style: RenderClass = PLAIN) -> None:
        text = glyph * self._available()
        self.builder.add_run(text, style, decoration=True)
        self._emit_line(cells_for(text, style, decoration=True))

    # --- rules ---

    def _skip(self, node: MarkupNode) -> None:
        pass

    def _block(self, node: MarkupNode) -> None:
        spaced = node.tag in SPACED_BLOCKS
        self._flush()
        if spaced:
            self._request_blank()
        self._children(node)
        self._flush()
        if spaced:
            self._request_blank()

    def _heading_rule(self, node: MarkupNode) -> None:
        level = int(node.tag[1])
        glyph = ViewerConstants.HEADING_RULES.get(level, ViewerConstants.DEFAULT_RULE)
        style = RenderClass.heading(level)
        self._flush()
        self._request_blank()
        self._emit_rule(glyph, style)
        outer, self._heading = self._heading, level
        self._children(node)
        self._flush()
        self._heading = outer
        self._emit_rule(glyph, style)
        self._request_blank()

    def _list(self, node: MarkupNode) -> None:
        top_level = not self._lists
        self._flush()
        if top_level:
            self._request_blank()
        counter = 0
        if node.tag == "ol":
            try:
                counter = int(node.get("start", "1")) - 1
            except ValueError:
                counter = 0
        self._lists.append([node.tag, counter])
        self._children(node)
        self._flush()
        self._lists.pop()
        if top_level:
            self._request_blank()

    def _item(self, node: MarkupNode) -> None:
        self._flush()
        if self._marker is not None:
            # An enclosing item has not shown its bullet yet
            self._emit_line([])
        depth = max(0, len(self._lists) - 1)
        if self._lists and self._lists[-1][0] == "ol":
            self._lists[-1][1] += 1
            marker = f"{self._lists[-1][1]}. "
        else:
            marker = ViewerConstants.BULLET
        style = RenderClass.list_item(depth)
        self.builder.add_run(marker, style, decoration=True)

        saved = (self._indent, self._hang)
        self._indent = ViewerConstants.LIST_INDENT * depth
        self._hang = len(marker)
        self._marker = cells_for(marker, style, decoration=True)
        self._children(node)
        self._flush()
        if self._marker is not None:
            # Empty item: show the bullet on its own
            self._emit_line([])
        self._indent, self._hang = saved

    def _quote(self, node: MarkupNode) -> None:
        self._flush()
        self._request_blank()
        self._quote_depth += 1
        self._children(node)
        self._flush()
        self._quote_depth -= 1
        self._request_blank()

    def _pre(self, node: MarkupNode) -> None:
        self._flush()
        text = _preformatted_text(node).replace("\r\n", "\n")
        text = _CONTROL_RE.sub("", _SPACE_CONTROL_RE.sub(" ", text)).expandtabs(ViewerConstants.TAB_SIZE)
        if text.startswith("\n"):
            text = text[1:]
        text = text.rstrip()
        if not text:
            return
        self._request_blank()
        self.builder.add_run(text, CODE)
        lines = text.split("\n")
        avail = self._available()
        if avail < 3:
            for line in lines:
                self._emit_line(clip_cells(cells_for(line, CODE), avail))
        else:
            inner = max(1, min(max(len(line) for line in lines), avail - 2))
            self._emit_line(cells_for("┌" + "─" * inner + "┐", CODE, decoration=True))
            for line in lines:
                content = clip_cells(cells_for(line, CODE), inner)
                padding = cells_for(" " * (inner - len(content)), CODE, decoration=True)
                border = cells_for("│", CODE, decoration=True)
                self._emit_line(border + content + padding + border)
            self._emit_line(cells_for("└" + "─" * inner + "┘", CODE, decoration=True))
        self._request_blank()

    def _inline_code(self, node: MarkupNode) -> None:
        self._code += 1
        self._children(node)
        self._code -= 1

    def _resolve(self, href: Optional[str]) -> Optional[str]:
        href = (href or "").strip()
        if not href or href.lower().startswith("javascript:"):
            return None
        return urljoin(self.base_url, href) if self.base_url else href

    def _anchor(self, node: MarkupNode) -> None:
        target = self._resolve(node.get("href"))
        if target is None or self._link is not None:
            # Not a followable link, or nested inside another one
            self._children(node)
            return
        self._link = RenderClass.link(target, self._next_link_id)
        self._next_link_id += 1
        self._children(node)
        self._link = None

    def _image_grid(self, src: Optional[str], alt: str) -> Optional[GlyphGrid]:
        if not is_content_image(src):
            return placeholder_grid(alt) if alt else None
        if self.image_source is None or self._images_shown >= self.max_images:
            return placeholder_grid(alt)
        try:
            image = self.image_source(src)
        except Exception as e:
            # Justification: image sources are pluggable collaborators; a
            # failing one must degrade to a placeholder, never abort the page.
            logger.debug(f"Image source failed for {src}: {e}")
            image = None
        if image is None:
            return placeholder_grid(alt)
        grid = convert(image, min(self.image_columns, self._available()),
                       invert=self.invert_images, alt=alt)
        if not grid.placeholder:
            self._images_shown += 1
        return grid

    def _image(self, node: MarkupNode) -> None:
        src = image_src(node)
        alt = _WHITESPACE_RE.sub(" ", node.get("alt") or "").strip()
        grid = self._image_grid(src, alt)
        if grid is None:
            return
        self._flush()
        style = self._link or PLAIN
        avail = self._available()
        for row in grid.rows:
            self.builder.add_run(row, style, decoration=True)
            self._emit_line(clip_cells(cells_for(row, style, decoration=True), avail))
        last = self.builder.line_count - 1
        source = self._resolve(src) if src else None
        self.builder.add_image(ImagePlacement(last - grid.height + 1, last, source, alt,
                                              grid.placeholder))

    def _break(self, node: MarkupNode) -> None:
        self._flush()

    def _horizontal_rule(self, node: MarkupNode) -> None:
        self._flush()
        self._emit_rule(ViewerConstants.DEFAULT_RULE)

    def _cell(self, node: MarkupNode) -> None:
        self._children(node)
        self._inline.append(Cell(" "))


def render(root: MarkupNode, width: int, *, base_url: Optional[str] = None,
           image_source: Optional[ImageSource] = None,
           image_columns: int = ViewerConstants.DEFAULT_IMAGE_COLUMNS,
           max_images: int = ViewerConstants.DEFAULT_MAX_IMAGES,
           invert_images: bool = False) -> Document:
    """Render ``root`` into a Document whose lines are at most ``width`` wide.

    Args:
        root: Parsed page.
        width: Target width in columns, at least 1.
        base_url: Base for resolving relative link and image URLs.
        image_source: Returns a decoded image for an <img> src, or None.
            Without one, images render as placeholders.
        image_columns: Widest an image may be drawn.
        max_images: Images beyond this many render as placeholders.
        invert_images: Map dark pixels to dense glyphs instead of light ones.

    Raises:
        MalformedDocument: ``root`` is not a well-formed tree.
        TooDeep: ``root`` nests deeper than the renderer allows.
    """
    if width < 1:
        raise ValueError(f"width must be at least 1, got {width}")
    validate_tree(root)
    renderer = _Renderer(width, base_url, image_source, image_columns, max_images,
                         invert_images, title=page_title(root))
    return renderer.run(find_main_content(root))
