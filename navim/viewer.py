"""Main viewer controller: input loop, page lifecycle and drawing."""

import logging
import os
import select
import signal
from dataclasses import dataclass, field
from typing import Optional

from .constants import ViewerConstants
from .document import Document
from .history import History
from .keyboard import KeyboardHandler, KeyEvent
from .loader import LoadResult, PageLoader
from .markup import MarkupNode, page_title
from .navigation import NavigationEngine, OutcomeKind, ViewChange
from .renderer import RenderError, render
from .settings import ViewerSettings
from .terminal import TerminalInterface
from .viewport import Viewport, gutter_labels, gutter_width

logger = logging.getLogger(__name__)

HELP_LINES = [
    "",
    "MOVING                         LINKS",
    "  h j k l   Left/down/up/right   L / Tab        Next link",
    "  w b       Next/previous word   H / Shift-Tab  Previous link",
    "  0 $       Start/end of line    Enter          Follow link",
    "  g G       Top/bottom           Backspace      Back",
    "  Ctrl-D/U  Half page down/up",
    "  Space     Page down           PAGES",
    "  Ctrl-B    Page up                r          Reload",
    "                                   q          Quit",
    "  Prefix a motion with a count:    ? / F1     Help",
    "  20j, 3w, 50G",
]


@dataclass
class PageEntry:
    """A loaded page: everything needed to render it again."""
    target: str
    tree: MarkupNode
    base_url: Optional[str] = None
    images: dict = field(default_factory=dict)
    title: Optional[str] = None
    line_index: int = 0  # Cursor line when the page was left


class Viewer:
    """Terminal HTML viewer application controller."""

    def __init__(self, settings: Optional[ViewerSettings] = None, history: Optional[History] = None,
                 terminal: Optional[TerminalInterface] = None, loader: Optional[PageLoader] = None):
        self.settings = settings or ViewerSettings()
        self.history = history
        self.terminal = terminal or TerminalInterface()
        self.keyboard = KeyboardHandler(self.terminal)
        self.loader = loader or PageLoader(image_limit=self.settings.max_images)
        self.viewport = Viewport(self.terminal.height, self.settings.scrolloff)
        self.engine = NavigationEngine(Document.from_plain_lines([""]),
                                       page_size=max(1, self.terminal.height - 1),
                                       wrap_links=self.settings.wrap_links)
        self.page: Optional[PageEntry] = None
        self.back_stack: list[PageEntry] = []
        self.status_message: Optional[str] = None
        self.help_visible = False
        self.running = False
        self._push_on_arrival = False
        self._resize_pipe_r: Optional[int] = None
        self._resize_pipe_w: Optional[int] = None

    # --- page lifecycle ---

    def render_width(self, total_lines: int = 1) -> int:
        """Reflow width: the configured width, narrowed so that text and a
        gutter for ``total_lines`` lines fit the terminal."""
        return max(1, min(self.settings.width, self.terminal.width - gutter_width(total_lines) - 1))

    def open(self, target: str, push: bool = True) -> None:
        """Start loading ``target``; the current page stays up until it arrives."""
        self._push_on_arrival = push and self.page is not None
        self.status_message = ViewerConstants.LOADING_MESSAGE.format(target)
        self.loader.request(target)

    def open_tree(self, tree: MarkupNode, target: str) -> bool:
        """Show an already parsed page, e.g. the generated history page."""
        return self._install(PageEntry(target, tree, title=page_title(tree)), push=False, record=False)

    def _render(self, entry: PageEntry) -> Document:
        # The gutter grows with the line count: re-render narrower until both fit
        total_lines = 1
        while True:
            width = self.render_width(total_lines)
            document = render(
                entry.tree,
                width,
                base_url=entry.base_url,
                image_source=entry.images.get,
                image_columns=self.settings.image_columns,
                max_images=self.settings.max_images,
                invert_images=self.settings.invert_images,
            )
            if self.render_width(len(document)) >= width:
                return document
            total_lines = len(document)

    def _install(self, entry: PageEntry, push: bool, record: bool = True) -> bool:
        """Render ``entry`` and make it the current page.

        On RenderError the current Document stays on screen and the error
        is shown in the status line.
        """
        try:
            document = self._render(entry)
        except RenderError as e:
            logger.warning(f"Could not render {entry.target}: {e}")
            self.status_message = ViewerConstants.RENDER_FAILED_MESSAGE.format(e)
            return False
        if push and self.page is not None:
            self.page.line_index = self.engine.cursor.line_index
            self.back_stack.append(self.page)
        self.page = entry
        self._show(document, entry.line_index)
        self.status_message = None
        if record and self.history is not None:
            self.history.add(document.title, entry.target)
        return True

    def _show(self, document: Document, line_index: int = 0) -> None:
        self.engine.reset(document, line_index)
        self.viewport.reset()

    def handle_load_result(self, result: LoadResult) -> None:
        if not result.ok:
            logger.info(f"Load failed for {result.target}: {result.error}")
            self.status_message = ViewerConstants.LOAD_FAILED_MESSAGE.format(result.error)
            return
        # Entries and history hold the resolved location, not the target as typed
        target = result.base_url or result.target
        entry = PageEntry(target, result.tree, result.base_url, dict(result.images),
                          page_title(result.tree))
        if not self._push_on_arrival and self.page is not None and self.page.target == target:
            # Reload keeps the cursor line
            entry.line_index = self.page.line_index
        self._install(entry, push=self._push_on_arrival)

    def poll_loader(self) -> bool:
        """Install a finished load, if any. Returns True if something changed."""
        result = self.loader.poll()
        if result is None:
            return False
        self.handle_load_result(result)
        return True

    def go_back(self) -> None:
        # Whatever was loading is no longer wanted
        self.loader.cancel()
        if not self.back_stack:
            self.status_message = "No previous page"
            return
        entry = self.back_stack.pop()
        if not self._install(entry, push=False, record=False):
            self.back_stack.append(entry)

    def reload(self) -> None:
        if self.page is not None:
            self.page.line_index = self.engine.cursor.line_index
            self.open(self.page.target, push=False)

    def handle_resize(self) -> None:
        """Re-render the current page at the new terminal width."""
        self.viewport.resize(self.terminal.height)
        self.engine.page_size = max(1, self.terminal.height - 1)
        self.terminal.invalidate_frame()
        if self.page is None:
            return
        line_index = self.engine.cursor.line_index
        try:
            document = self._render(self.page)
        except RenderError as e:
            logger.warning(f"Could not re-render {self.page.target}: {e}")
            self.status_message = ViewerConstants.RENDER_FAILED_MESSAGE.format(e)
            return
        self._show(document, line_index)

    # --- input ---

    def handle_key(self, key_event: KeyEvent) -> None:
        """Handle a keyboard event."""
        # If help is visible, any key dismisses it
        if self.help_visible:
            self.help_visible = False
            return
        if not self.loader.pending:
            self.status_message = None

        outcome = self.engine.handle_key(key_event)
        if outcome.kind is OutcomeKind.FOLLOWED_LINK:
            self.open(outcome.target_url)
        elif outcome.kind is OutcomeKind.VIEW_CHANGE:
            change = outcome.view_change
            if change is ViewChange.QUIT:
                self.running = False
            elif change is ViewChange.BACK:
                self.go_back()
            elif change is ViewChange.HELP:
                self.help_visible = True
            elif change is ViewChange.RELOAD:
                self.reload()

    # --- drawing ---

    def header_text(self) -> str:
        if self.page is None:
            return " navim"
        title = self.engine.document.title or self.page.title
        return f" {title} │ {self.page.target}" if title else f" {self.page.target}"

    def status_text(self) -> Optional[str]:
        if self.status_message:
            return self.status_message
        cursor = self.engine.cursor
        if cursor.active_link_id is not None:
            return self.engine.document.link_target(cursor.active_link_id)
        if cursor.pending_count:
            return str(cursor.pending_count)
        return None

    def compose_lines(self) -> tuple[list[str], int, int]:
        """Compose the visible document rows.

        Returns:
            (lines, cursor_y, cursor_x) with the cursor relative to the
            first document row.
        """
        document = self.engine.document
        cursor = self.engine.cursor
        total = len(document)
        self.viewport.resize(self.terminal.height)
        self.viewport.follow(cursor.line_index, total)
        start, end = self.viewport.visible_range(total)
        digits = gutter_width(total)
        view_width = max(0, self.terminal.width - digits - 1)

        lines = []
        for index, label in zip(range(start, end), gutter_labels(cursor.line_index, start, end)):
            lines.append(self.terminal.compose_display_line(
                f"{label:>{digits}} ", document.line(index).cells, view_width, cursor.active_link_id))
        lines.extend("" for _ in range(self.terminal.height - len(lines)))
        cursor_x = digits + 1 + min(cursor.col_index, view_width)
        return lines, cursor.line_index - start, cursor_x

    def draw(self) -> None:
        if (self.terminal.width < ViewerConstants.MIN_TERMINAL_WIDTH
                or self.terminal.term.height < ViewerConstants.MIN_TERMINAL_HEIGHT):
            self.terminal.draw_error_message(
                ViewerConstants.TERMINAL_TOO_SMALL_MESSAGE.format(ViewerConstants.MIN_TERMINAL_WIDTH),
                ViewerConstants.CURRENT_SIZE_MESSAGE.format(self.terminal.width, self.terminal.term.height),
            )
            return
        if self.help_visible:
            self.terminal.draw_text_screen("NAVIM HELP", HELP_LINES, " Press any key to continue")
            return
        lines, cursor_y, cursor_x = self.compose_lines()
        self.terminal.update_frame(self.header_text(), lines, cursor_y, cursor_x, self.status_text())

    # --- main loop ---

    def _handle_resize(self, signum, frame):
        """Handle terminal resize signal."""
        del signum, frame  # Unused
        # Write to pipe to wake up select()
        os.write(self._resize_pipe_w, ViewerConstants.RESIZE_PIPE_MARKER)

    def run(self) -> None:
        """Run the main viewer loop until the user quits."""
        self.terminal.setup()
        self.running = True
        self._resize_pipe_r, self._resize_pipe_w = os.pipe()
        original_winch_handler = signal.signal(signal.SIGWINCH, self._handle_resize)

        try:
            with self.terminal.term.cbreak():
                self.handle_resize()
                need_draw = True
                while self.running:
                    if need_draw:
                        self.draw()
                        need_draw = False

                    # Wake up periodically while a page is loading
                    timeout = ViewerConstants.POLL_INTERVAL if self.loader.pending else None
                    ready, _, _ = select.select([0, self._resize_pipe_r], [], [], timeout)

                    if self._resize_pipe_r in ready:
                        os.read(self._resize_pipe_r, 1024)
                        self.handle_resize()
                        need_draw = True
                    elif 0 in ready:
                        key_event = self.keyboard.get_key_event(timeout=0)
                        if key_event:
                            self.handle_key(key_event)
                            need_draw = True
                    if self.poll_loader():
                        need_draw = True
        except KeyboardInterrupt:
            pass
        finally:
            signal.signal(signal.SIGWINCH, original_winch_handler)
            os.close(self._resize_pipe_r)
            os.close(self._resize_pipe_w)
            self.terminal.cleanup()
