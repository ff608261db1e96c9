"""Scroll window and relative line-number gutter."""

from .constants import ViewerConstants


class Viewport:
    """Window of ``height`` document lines that follows the cursor.

    The window scrolls only when the cursor comes within ``scrolloff``
    lines of its top or bottom edge.
    """

    def __init__(self, height: int, scrolloff: int = ViewerConstants.SCROLLOFF):
        self.height = max(1, height)
        self.scrolloff = max(0, scrolloff)
        self.top = 0

    def resize(self, height: int) -> None:
        self.height = max(1, height)

    def reset(self) -> None:
        self.top = 0

    def _margin(self) -> int:
        # Context can never take more than half the window
        return min(self.scrolloff, (self.height - 1) // 2)

    def follow(self, cursor_line: int, total_lines: int) -> None:
        """Scroll so ``cursor_line`` is visible with context lines around it."""
        margin = self._margin()
        if cursor_line - margin < self.top:
            self.top = cursor_line - margin
        elif cursor_line + margin >= self.top + self.height:
            self.top = cursor_line + margin - self.height + 1
        self.top = max(0, min(self.top, total_lines - self.height))

    def visible_range(self, total_lines: int) -> tuple[int, int]:
        """Return (start, end) line indices of the window, end exclusive."""
        start = max(0, min(self.top, total_lines - 1))
        return start, min(total_lines, start + self.height)


def gutter_labels(cursor_line: int, start: int, end: int) -> list[int]:
    """Line-number labels for lines [start, end).

    The cursor's line shows its absolute 1-based number; every other line
    shows its distance from the cursor.
    """
    return [index + 1 if index == cursor_line else abs(index - cursor_line)
            for index in range(start, end)]


def gutter_width(total_lines: int) -> int:
    """Columns needed for the widest label of a ``total_lines`` document."""
    return len(str(max(1, total_lines)))
