"""Greedy word wrap over styled cells."""

from typing import NamedTuple, Optional, Sequence

from .document import BreakKind, Cell


class WrappedLine(NamedTuple):
    cells: list
    break_before: BreakKind


def split_words(cells: Sequence[Cell]) -> list[tuple[Optional[Cell], list[Cell]]]:
    """Split cells into whitespace-delimited words.

    Returns (gap, word) pairs where ``gap`` is the first whitespace cell
    preceding the word, or None for a word with no whitespace before it.
    Runs of whitespace collapse to that single gap cell.
    """
    words: list[tuple[Optional[Cell], list[Cell]]] = []
    gap: Optional[Cell] = None
    word: list[Cell] = []
    for cell in cells:
        if cell.char.isspace():
            # Leading and repeated whitespace collapse away
            if word:
                words.append((gap, word))
                word = []
                gap = cell
        else:
            word.append(cell)
    if word:
        words.append((gap, word))
    return words


def wrap_cells(cells: Sequence[Cell], width: int) -> list[WrappedLine]:
    """Render cells into lines of at most ``width`` cells with word wrap.

    Words are packed greedily; a word longer than ``width`` is broken at
    the width boundary and its continuation lines are marked SPLIT. The
    first line is marked HARD, other wrap lines SOFT. Returns an empty
    list when there are no words.
    """
    if width < 1:
        raise ValueError(f"width must be at least 1, got {width}")

    lines: list[WrappedLine] = []
    current: list[Cell] = []
    break_before = BreakKind.HARD

    for gap, word in split_words(cells):
        if current and len(current) + 1 + len(word) <= width:
            # Fits on the current line after a single space
            assert gap is not None
            current.append(Cell(" ", gap.style, gap.decoration))
            current.extend(word)
            continue
        if current:
            lines.append(WrappedLine(current, break_before))
            current = []
            break_before = BreakKind.SOFT
        # Break long word across as many lines as needed
        while len(word) > width:
            lines.append(WrappedLine(word[:width], break_before))
            word = word[width:]
            break_before = BreakKind.SPLIT
        current = list(word)

    if current:
        lines.append(WrappedLine(current, break_before))
    return lines


def clip_cells(cells: Sequence[Cell], width: int) -> list[Cell]:
    """Hard-truncate a line to ``width`` cells (no reflow)."""
    return list(cells[:max(0, width)])
