"""Rendered document model.

A ``Document`` is the output of one render pass: an ordered sequence of
``DisplayLine`` rows, each a sequence of styled ``Cell`` columns, plus the
link spans and image placements found while rendering. Documents are
immutable; a new page (or a new width) produces a new Document.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping, NamedTuple, Optional


class RunKind(Enum):
    """Render classes of styled text."""
    PLAIN = "plain"
    HEADING = "heading"
    LIST_ITEM = "list_item"
    BLOCKQUOTE = "blockquote"
    CODE = "code"
    LINK = "link"


@dataclass(frozen=True)
class RenderClass:
    """How a piece of text is displayed.

    ``level`` is the heading level for HEADING and the nesting depth for
    LIST_ITEM. ``target`` and ``link_id`` are set only for LINK.
    """
    kind: RunKind = RunKind.PLAIN
    level: int = 0
    target: Optional[str] = None
    link_id: Optional[int] = None

    @classmethod
    def heading(cls, level: int) -> "RenderClass":
        return cls(RunKind.HEADING, level=level)

    @classmethod
    def list_item(cls, depth: int) -> "RenderClass":
        return cls(RunKind.LIST_ITEM, level=depth)

    @classmethod
    def link(cls, target: str, link_id: int) -> "RenderClass":
        return cls(RunKind.LINK, target=target, link_id=link_id)

    @property
    def is_link(self) -> bool:
        return self.kind is RunKind.LINK


PLAIN = RenderClass()
BLOCKQUOTE = RenderClass(RunKind.BLOCKQUOTE)
CODE = RenderClass(RunKind.CODE)


class StyledRun(NamedTuple):
    """A contiguous piece of text with one render class."""
    text: str
    style: RenderClass = PLAIN
    decoration: bool = False  # Rules, borders, bullets, image glyphs


class Cell(NamedTuple):
    """One terminal column of a display line."""
    char: str
    style: RenderClass = PLAIN
    decoration: bool = False


def cells_for(text: str, style: RenderClass = PLAIN, decoration: bool = False) -> list[Cell]:
    return [Cell(ch, style, decoration) for ch in text]


class BreakKind(Enum):
    """What separates a display line from the one before it."""
    HARD = "hard"    # Paragraph or structural break
    SOFT = "soft"    # Wrap that consumed whitespace
    SPLIT = "split"  # Wrap inside a word longer than the line


@dataclass(frozen=True)
class LinkSpan:
    """Columns [col_start, col_end) of one line that belong to a link."""
    link_id: int
    line_index: int
    col_start: int
    col_end: int
    target_url: str

    def contains(self, col: int) -> bool:
        return self.col_start <= col < self.col_end


@dataclass(frozen=True)
class DisplayLine:
    """One terminal row after reflow."""
    index: int
    cells: tuple
    spans: tuple = ()
    break_before: BreakKind = BreakKind.HARD

    def __len__(self) -> int:
        return len(self.cells)

    @property
    def text(self) -> str:
        return "".join(cell.char for cell in self.cells)

    @property
    def hard_break(self) -> bool:
        return self.break_before is BreakKind.HARD

    def span_at(self, col: int) -> Optional[LinkSpan]:
        for span in self.spans:
            if span.contains(col):
                return span
        return None


@dataclass(frozen=True)
class ImagePlacement:
    """Lines occupied by a rendered image (inclusive)."""
    first_line: int
    last_line: int
    source: Optional[str]
    alt: str = ""
    placeholder: bool = False


@dataclass(frozen=True, eq=False)
class Document:
    """Immutable result of rendering a page at a given width."""
    lines: tuple
    links: Mapping[int, tuple]
    link_order: tuple
    runs: tuple = ()
    images: tuple = ()
    width: int = 0
    title: Optional[str] = None
    base_url: Optional[str] = None

    def __len__(self) -> int:
        return len(self.lines)

    @property
    def last_line_index(self) -> int:
        return len(self.lines) - 1

    def line(self, index: int) -> DisplayLine:
        return self.lines[index]

    def link_at(self, line_index: int, col: int) -> Optional[LinkSpan]:
        """Return the link span covering a cursor position, if any."""
        if not 0 <= line_index < len(self.lines):
            return None
        return self.lines[line_index].span_at(col)

    def first_span(self, link_id: int) -> LinkSpan:
        return self.links[link_id][0]

    def link_target(self, link_id: int) -> str:
        return self.links[link_id][0].target_url

    def spans(self) -> list[LinkSpan]:
        """All link spans, ordered by (line_index, col_start)."""
        return [span for line in self.lines for span in line.spans]

    def plain_text(self) -> str:
        """Document text without decoration.

        Lines are joined with newlines, except split-word continuations
        which are joined directly so hard-broken words read whole again.
        """
        parts: list[str] = []
        for line in self.lines:
            text = "".join(cell.char for cell in line.cells if not cell.decoration)
            if parts and line.break_before is not BreakKind.SPLIT:
                parts.append("\n")
            parts.append(text)
        return "".join(parts)

    @classmethod
    def from_plain_lines(cls, lines: Iterable[str], title: Optional[str] = None) -> "Document":
        """Build an unstyled document, one hard line per string."""
        lines = list(lines)
        builder = DocumentBuilder(width=max((len(line) for line in lines), default=0), title=title)
        for text in lines:
            builder.add_run(text)
            builder.add_line(cells_for(text))
        return builder.build()


def _spans_for(line_index: int, cells: tuple) -> list[LinkSpan]:
    """Group consecutive cells carrying the same link id into spans."""
    spans: list[LinkSpan] = []
    start = None
    current: Optional[RenderClass] = None
    for col, cell in enumerate(cells + (None,)):
        style = cell.style if cell is not None else None
        link_id = style.link_id if style is not None and style.is_link else None
        if current is not None and link_id != current.link_id:
            spans.append(LinkSpan(current.link_id, line_index, start, col, current.target))
            current = None
        if link_id is not None and current is None:
            current = style
            start = col
    return spans


class DocumentBuilder:
    """Accumulates display lines and freezes them into a Document.

    Line indices are assigned in emission order and never reused. Link
    spans are derived from the link styles carried by each line's cells.
    """

    def __init__(self, width: int, title: Optional[str] = None, base_url: Optional[str] = None):
        self.width = width
        self.title = title
        self.base_url = base_url
        self._lines: list[DisplayLine] = []
        self._links: dict[int, list[LinkSpan]] = {}
        self._link_order: list[int] = []
        self._runs: list[StyledRun] = []
        self._images: list[ImagePlacement] = []

    @property
    def line_count(self) -> int:
        return len(self._lines)

    def add_line(self, cells: Iterable[Cell], break_before: BreakKind = BreakKind.HARD) -> DisplayLine:
        index = len(self._lines)
        cells = tuple(cells)
        spans = tuple(_spans_for(index, cells))
        for span in spans:
            if span.link_id not in self._links:
                self._links[span.link_id] = []
                self._link_order.append(span.link_id)
            self._links[span.link_id].append(span)
        line = DisplayLine(index, cells, spans, break_before)
        self._lines.append(line)
        return line

    def add_run(self, text: str, style: RenderClass = PLAIN, decoration: bool = False) -> None:
        if text:
            self._runs.append(StyledRun(text, style, decoration))

    def add_image(self, placement: ImagePlacement) -> None:
        self._images.append(placement)

    def build(self) -> Document:
        if not self._lines:
            self.add_line(())
        return Document(
            lines=tuple(self._lines),
            links=MappingProxyType({k: tuple(v) for k, v in self._links.items()}),
            link_order=tuple(self._link_order),
            runs=tuple(self._runs),
            images=tuple(self._images),
            width=self.width,
            title=self.title,
            base_url=self.base_url,
        )
