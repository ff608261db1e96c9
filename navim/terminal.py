"""Terminal interface using Blessed for display and Curtsies for input."""

import blessed
from typing import Optional, Sequence
import sys
import select

from .constants import ViewerConstants
from .document import Cell, RunKind


def cell_attrs(cell: Cell, active_link_id: Optional[int]) -> tuple[bool, bool, bool]:
    """Return (bold, underline, reverse) for a cell."""
    style = cell.style
    if style.is_link:
        active = style.link_id == active_link_id
        return False, not active, active
    if style.kind is RunKind.HEADING and not cell.decoration:
        return True, False, False
    return False, False, False


class TerminalInterface:
    """Handles terminal I/O using Blessed.

    The screen is a one-line header, the document window and a one-line
    status bar at the bottom.
    """

    def __init__(self, terminal: Optional[blessed.Terminal] = None):
        """Initialize with a terminal instance (or create one)."""
        self.term = terminal or blessed.Terminal()
        self.is_fullscreen = False
        self._curtsies_input: Optional[object] = None
        self._curtsies_active: bool = False
        # Virtual screen state for minimal updates
        self._last_lines: list[str] | None = None
        self._last_header: str | None = None
        self._last_status: str | None = None

    def setup(self):
        """Enter fullscreen mode and prepare terminal."""
        print(self.term.enter_fullscreen)
        print(self.term.hide_cursor)
        print(self.term.clear)
        self.is_fullscreen = True
        if self._curtsies_input is None:
            try:
                from curtsies import Input  # type: ignore
                # Enter raw mode immediately so reads work
                self._curtsies_input = Input(keynames='curtsies')  # type: ignore
                self._curtsies_input.__enter__()
                self._curtsies_active = True
            except Exception:
                # Justification: curtsies may fail to initialize without a
                # real tty (CI, pipes). Run without input rather than crash.
                self._curtsies_input = None
                self._curtsies_active = False

    def cleanup(self):
        """Exit fullscreen mode and restore terminal."""
        if self.is_fullscreen:
            print(self.term.exit_fullscreen)
            print(self.term.normal_cursor)
            self.is_fullscreen = False
        if self._curtsies_input is not None:
            try:
                if self._curtsies_active:
                    self._curtsies_input.__exit__(None, None, None)  # type: ignore
            except Exception:
                # Justification: teardown should never crash the app. Any
                # failure to exit raw mode is non-fatal at this point.
                pass
            finally:
                self._curtsies_input = None
                self._curtsies_active = False

    def invalidate_frame(self) -> None:
        """Invalidate cached frame so next update does a full clear."""
        self._last_lines = None
        self._last_header = None
        self._last_status = None

    def compose_display_line(self, gutter: str, cells: Sequence[Cell], view_width: int,
                             active_link_id: Optional[int] = None) -> str:
        """Compose a gutter label and styled cells, padded to width."""
        out = [self.term.normal, gutter]
        active_bold = active_under = active_rev = False

        for cell in cells[:view_width]:
            bold, under, rev = cell_attrs(cell, active_link_id)
            if (bold, under, rev) != (active_bold, active_under, active_rev):
                # Reset then enable desired to avoid sticky state issues
                out.append(self.term.normal)
                if bold:
                    out.append(self.term.bold)
                if under:
                    out.append(self.term.underline)
                if rev:
                    out.append(self.term.reverse)
                active_bold, active_under, active_rev = bold, under, rev
            out.append(cell.char)
        if active_bold or active_under or active_rev:
            out.append(self.term.normal)
        out.append(' ' * max(0, view_width - len(cells)))
        return ''.join(out)

    def update_frame(
        self,
        header: str,
        lines: list[str],
        cursor_y: int,
        cursor_x: int,
        status: Optional[str] = None,
    ) -> None:
        """Diff against last frame and write only changes.

        ``lines`` are already composed display lines; ``cursor_y`` counts
        from the first document row and ``cursor_x`` includes the gutter.
        """
        need_full_clear = (
            self._last_lines is None
            or len(self._last_lines) != len(lines)
        )
        if need_full_clear:
            print(self.term.home + self.term.clear, end='')
            self._last_lines = ["" for _ in range(len(lines))]
            self._last_header = None
            self._last_status = None

        width = self.term.width
        header_text = self.term.reverse + header[:width].ljust(width) + self.term.normal
        if header_text != self._last_header:
            print(self.term.move(0, 0) + header_text, end='')
            self._last_header = header_text

        for y, line in enumerate(lines):
            if line != self._last_lines[y]:
                print(self.term.move(y + 1, 0) + line + self.term.clear_eol, end='')
                self._last_lines[y] = line

        # Status line at bottom; at rest, show the help hint right-justified
        if status:
            status_text = status[:width].ljust(width)
        else:
            hint = ViewerConstants.HELP_HINT
            status_text = (" " * max(0, width - len(hint) - 1)) + hint
        if status_text != self._last_status:
            print(self.term.move(self.term.height - 1, 0) + status_text, end='')
            self._last_status = status_text

        print(self.term.move(cursor_y + 1, cursor_x) + self.term.normal_cursor, end='', flush=True)

    def draw_text_screen(self, title: str, lines: list[str], footer: str) -> None:
        """Draw a centered block of plain text, used for the help screen."""
        term = self.term
        print(term.home + term.clear, end='')
        width, height = term.width, term.height
        print(f"{term.move(1, max(0, (width - len(title)) // 2))}{term.bold}{title}{term.normal}", end='')
        content_start_y = max(3, (height - len(lines)) // 2)
        left_margin = max(0, (width - max((len(line) for line in lines), default=0)) // 2)
        for i, line in enumerate(lines):
            if content_start_y + i >= height - 1:
                break
            print(f"{term.move(content_start_y + i, left_margin)}{line[:width]}", end='')
        print(f"{term.move(height - 1, 0)}{footer[:width]}", end='')
        print(term.hide_cursor, end='', flush=True)
        self.invalidate_frame()

    def draw_error_message(self, message1: str, message2: str = ""):
        """Draw an error message in the center of the screen."""
        print(self.term.home + self.term.clear, end='')
        center_y = self.term.height // 2
        box_width = min(self.term.width, max(len(message1), len(message2)) + 4)
        inner = max(0, box_width - 4)
        left_margin = max(0, (self.term.width - box_width) // 2)

        print(self.term.move(center_y - 2, left_margin) + "╔" + "═" * (box_width - 2) + "╗", end='')
        print(self.term.move(center_y - 1, left_margin) + "║ " + message1[:inner].center(inner) + " ║", end='')
        if message2:
            print(self.term.move(center_y, left_margin) + "║ " + message2[:inner].center(inner) + " ║", end='')
            print(self.term.move(center_y + 1, left_margin) + "╚" + "═" * (box_width - 2) + "╝", end='', flush=True)
        else:
            print(self.term.move(center_y, left_margin) + "╚" + "═" * (box_width - 2) + "╝", end='', flush=True)
        self.invalidate_frame()

    def get_key(self, timeout=None):
        """Get a single keypress from the user.

        Args:
            timeout: Timeout in seconds (None for blocking, 0 for non-blocking)

        Returns:
            The curtsies key token as a string, or None.
        """
        if self._curtsies_input is not None:
            if timeout is None:
                evt = next(self._curtsies_input)  # blocks
                return str(evt)
            t = 0.0 if timeout == 0 else float(timeout)
            r, _, _ = select.select([sys.stdin], [], [], t)
            if not r:
                return None
            evt = next(self._curtsies_input)
            return str(evt)
        return None

    @property
    def width(self):
        """Terminal width in columns."""
        return self.term.width

    @property
    def height(self):
        """Rows available for the document (excluding header and status lines)."""
        return self.term.height - 2
