"""Cursor state machine for vim-style motions over a rendered Document."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from .constants import ViewerConstants
from .document import BreakKind, Document
from .keyboard import KeyEvent, KeyType


@dataclass
class CursorState:
    """Cursor position within a Document.

    ``col_index`` may equal the line length (the position past the last
    character). ``active_link_id`` is derived from the position after
    every motion and is never updated on its own.
    """
    line_index: int = 0
    col_index: int = 0
    desired_col: int = 0  # Column vertical motions try to return to
    active_link_id: Optional[int] = None
    pending_count: int = 0


class OutcomeKind(Enum):
    MOVED = "moved"
    FOLLOWED_LINK = "followed_link"
    NO_OP = "no_op"
    VIEW_CHANGE = "view_change"


class ViewChange(Enum):
    """Requests the engine passes up to the viewer."""
    QUIT = "quit"
    BACK = "back"
    HELP = "help"
    RELOAD = "reload"


@dataclass(frozen=True)
class NavOutcome:
    """Result of handling one key."""
    kind: OutcomeKind
    target_url: Optional[str] = None
    view_change: Optional[ViewChange] = None

    @classmethod
    def moved(cls) -> "NavOutcome":
        return cls(OutcomeKind.MOVED)

    @classmethod
    def no_op(cls) -> "NavOutcome":
        return cls(OutcomeKind.NO_OP)

    @classmethod
    def followed_link(cls, target_url: str) -> "NavOutcome":
        return cls(OutcomeKind.FOLLOWED_LINK, target_url=target_url)

    @classmethod
    def request_view_change(cls, change: ViewChange) -> "NavOutcome":
        return cls(OutcomeKind.VIEW_CHANGE, view_change=change)


# Handlers take the repetition count and whether it was typed explicitly
Motion = Callable[[int, bool], Optional[NavOutcome]]


class NavigationEngine:
    """Resolves key events against a Document.

    Motions clamp at the edges of the buffer rather than failing; a key
    that leaves the cursor where it was yields ``NavOutcome.no_op()``.
    """

    def __init__(self, document: Document, *, page_size: int = ViewerConstants.DEFAULT_PAGE_SIZE,
                 wrap_links: bool = False):
        self.page_size = max(1, page_size)
        self.wrap_links = wrap_links
        self._bindings: Dict[Tuple[KeyType, str], Motion] = {}
        self._setup_default_bindings()
        self.reset(document)

    def _setup_default_bindings(self):
        # Character and line motions
        for key_type, value in ((KeyType.REGULAR, 'h'), (KeyType.SPECIAL, 'left')):
            self.register((key_type, value), self._left)
        for key_type, value in ((KeyType.REGULAR, 'l'), (KeyType.SPECIAL, 'right')):
            self.register((key_type, value), self._right)
        for key_type, value in ((KeyType.REGULAR, 'j'), (KeyType.SPECIAL, 'down')):
            self.register((key_type, value), self._down)
        for key_type, value in ((KeyType.REGULAR, 'k'), (KeyType.SPECIAL, 'up')):
            self.register((key_type, value), self._up)
        self.register((KeyType.SPECIAL, 'home'), self._line_start)
        self.register((KeyType.REGULAR, '$'), self._line_end)
        self.register((KeyType.SPECIAL, 'end'), self._line_end)

        # Word motions
        self.register((KeyType.REGULAR, 'w'), self._word_forward)
        self.register((KeyType.REGULAR, 'b'), self._word_backward)

        # Buffer motions
        self.register((KeyType.REGULAR, 'g'), self._top)
        self.register((KeyType.REGULAR, 'G'), self._bottom)
        self.register((KeyType.CTRL, 'd'), self._half_page_down)
        self.register((KeyType.CTRL, 'u'), self._half_page_up)
        self.register((KeyType.REGULAR, ' '), self._page_down)
        self.register((KeyType.CTRL, 'f'), self._page_down)
        self.register((KeyType.SPECIAL, 'page_down'), self._page_down)
        self.register((KeyType.CTRL, 'b'), self._page_up)
        self.register((KeyType.SPECIAL, 'page_up'), self._page_up)

        # Links
        self.register((KeyType.REGULAR, 'L'), self._next_link)
        self.register((KeyType.SPECIAL, 'tab'), self._next_link)
        self.register((KeyType.REGULAR, 'H'), self._previous_link)
        self.register((KeyType.SHIFT_SPECIAL, 'tab'), self._previous_link)
        self.register((KeyType.SPECIAL, 'enter'), self._follow_link)

        # Requests for the viewer
        self.register((KeyType.SPECIAL, 'escape'), lambda count, explicit: NavOutcome.no_op())
        self._register_view_change((KeyType.REGULAR, 'q'), ViewChange.QUIT)
        self._register_view_change((KeyType.SPECIAL, 'backspace'), ViewChange.BACK)
        self._register_view_change((KeyType.ALT, 'left'), ViewChange.BACK)
        self._register_view_change((KeyType.REGULAR, '?'), ViewChange.HELP)
        self._register_view_change((KeyType.SPECIAL, 'f1'), ViewChange.HELP)
        self._register_view_change((KeyType.REGULAR, 'r'), ViewChange.RELOAD)

    def register(self, key: Tuple[KeyType, str], motion: Motion):
        """Bind a key to a motion."""
        self._bindings[key] = motion

    def _register_view_change(self, key: Tuple[KeyType, str], change: ViewChange):
        self.register(key, lambda count, explicit: NavOutcome.request_view_change(change))

    # --- state ---

    def reset(self, document: Document, line_index: int = 0) -> None:
        """Switch to a new Document with a fresh cursor.

        The cursor starts at the top, or at column 0 of ``line_index``
        (clamped) when returning to a page or re-rendering it.
        """
        self._document = document
        self._state = CursorState(line_index=max(0, min(line_index, document.last_line_index)))
        self._update_active_link()

    @property
    def document(self) -> Document:
        return self._document

    @property
    def cursor(self) -> CursorState:
        """A copy of the cursor state."""
        return dataclasses.replace(self._state)

    def _line_length(self, line_index: int) -> int:
        return len(self._document.lines[line_index])

    def _last_line(self) -> int:
        return self._document.last_line_index

    def _update_active_link(self) -> None:
        span = self._document.link_at(self._state.line_index, self._state.col_index)
        self._state.active_link_id = span.link_id if span is not None else None

    # --- dispatch ---

    def handle_key(self, event: KeyEvent) -> NavOutcome:
        """Apply one key event to the cursor and report what happened."""
        state = self._state
        if event.is_digit and (state.pending_count or event.value != '0'):
            state.pending_count = min(state.pending_count * 10 + int(event.value),
                                      ViewerConstants.MAX_COUNT)
            return NavOutcome.no_op()

        if event.key_type is KeyType.REGULAR and event.value == '0':
            motion = self._line_start
        else:
            motion = self._bindings.get((event.key_type, event.value))

        explicit = state.pending_count > 0
        count = state.pending_count if explicit else 1
        state.pending_count = 0
        if motion is None:
            return NavOutcome.no_op()

        before = (state.line_index, state.col_index)
        outcome = motion(count, explicit)
        self._update_active_link()
        if outcome is not None:
            return outcome
        if (state.line_index, state.col_index) == before:
            return NavOutcome.no_op()
        return NavOutcome.moved()

    # --- motions ---

    def _move_to(self, line_index: int, col_index: int, keep_desired: bool = False) -> None:
        state = self._state
        state.line_index = max(0, min(line_index, self._last_line()))
        state.col_index = max(0, min(col_index, self._line_length(state.line_index)))
        if not keep_desired:
            state.desired_col = state.col_index

    def _move_lines(self, delta: int) -> None:
        """Vertical motion that keeps the desired column."""
        target = self._state.line_index + delta
        target = max(0, min(target, self._last_line()))
        self._move_to(target, min(self._state.desired_col, self._line_length(target)),
                      keep_desired=True)

    def _left(self, count: int, explicit: bool):
        self._move_to(self._state.line_index, self._state.col_index - count)

    def _right(self, count: int, explicit: bool):
        self._move_to(self._state.line_index, self._state.col_index + count)

    def _down(self, count: int, explicit: bool):
        self._move_lines(count)

    def _up(self, count: int, explicit: bool):
        self._move_lines(-count)

    def _line_start(self, count: int, explicit: bool):
        self._move_to(self._state.line_index, 0)

    def _line_end(self, count: int, explicit: bool):
        line_index = self._state.line_index
        self._move_to(line_index, self._line_length(line_index))

    def _top(self, count: int, explicit: bool):
        self._move_to(0, 0)

    def _bottom(self, count: int, explicit: bool):
        self._move_to(count - 1 if explicit else self._last_line(), 0)

    def _half_page_down(self, count: int, explicit: bool):
        self._move_lines(count * max(1, self.page_size // 2))

    def _half_page_up(self, count: int, explicit: bool):
        self._move_lines(-count * max(1, self.page_size // 2))

    def _page_down(self, count: int, explicit: bool):
        self._move_lines(count * self.page_size)

    def _page_up(self, count: int, explicit: bool):
        self._move_lines(-count * self.page_size)

    # --- word motions ---
    #
    # Positions are (line, col) pairs. The end of a line reads as a space,
    # except before a split continuation where the word carries on
    # directly on the next line.

    def _continues_word(self, line_index: int) -> bool:
        """True if the line after ``line_index`` continues a split word."""
        lines = self._document.lines
        return line_index + 1 < len(lines) and lines[line_index + 1].break_before is BreakKind.SPLIT

    def _char_at(self, pos: Tuple[int, int]) -> str:
        line = self._document.lines[pos[0]]
        if pos[1] < len(line):
            return line.cells[pos[1]].char
        return " "

    def _is_space(self, pos: Tuple[int, int]) -> bool:
        return self._char_at(pos).isspace()

    def _next_pos(self, pos: Tuple[int, int]) -> Optional[Tuple[int, int]]:
        line_index, col = pos
        length = self._line_length(line_index)
        if col < length - 1:
            return line_index, col + 1
        if col == length - 1 and not self._continues_word(line_index):
            return line_index, length
        if line_index < self._last_line():
            return line_index + 1, 0
        return None

    def _prev_pos(self, pos: Tuple[int, int]) -> Optional[Tuple[int, int]]:
        line_index, col = pos
        if col > 0:
            return line_index, min(col, self._line_length(line_index)) - 1
        if line_index == 0:
            return None
        previous = line_index - 1
        length = self._line_length(previous)
        if self._document.lines[line_index].break_before is BreakKind.SPLIT and length:
            return previous, length - 1
        return previous, length

    def _next_word_start(self, pos: Tuple[int, int]) -> Optional[Tuple[int, int]]:
        current: Optional[Tuple[int, int]] = pos
        while current is not None and not self._is_space(current):
            current = self._next_pos(current)
        while current is not None and self._is_space(current):
            current = self._next_pos(current)
        return current

    def _previous_word_start(self, pos: Tuple[int, int]) -> Optional[Tuple[int, int]]:
        current = self._prev_pos(pos)
        while current is not None and self._is_space(current):
            current = self._prev_pos(current)
        if current is None:
            return None
        while True:
            before = self._prev_pos(current)
            if before is None or self._is_space(before):
                return current
            current = before

    def _word_forward(self, count: int, explicit: bool):
        pos = (self._state.line_index, self._state.col_index)
        for _ in range(count):
            found = self._next_word_start(pos)
            if found is None:
                break
            pos = found
        self._move_to(*pos)

    def _word_backward(self, count: int, explicit: bool):
        pos = (self._state.line_index, self._state.col_index)
        for _ in range(count):
            found = self._previous_word_start(pos)
            if found is None:
                break
            pos = found
        self._move_to(*pos)

    # --- links ---

    def _link_position(self, link_id: int) -> Tuple[int, int]:
        span = self._document.first_span(link_id)
        return span.line_index, span.col_start

    def _link_index(self, count: int, forward: bool) -> Optional[int]:
        """Index into link_order of the link ``count`` steps away, or None."""
        order = self._document.link_order
        if not order:
            return None
        here = (self._state.line_index, self._state.col_index)
        active = self._state.active_link_id
        if active is not None:
            start = order.index(active)
        elif forward:
            # Off-link cursor counts as sitting just before the next link
            start = next((i for i, link_id in enumerate(order)
                          if self._link_position(link_id) > here), len(order)) - 1
        else:
            start = next((i for i in reversed(range(len(order)))
                          if self._link_position(order[i]) < here), -1) + 1
        index = start + count if forward else start - count
        if self.wrap_links:
            return index % len(order)

        # Saturate at the ends, but never jump against the direction of travel
        index = max(0, min(index, len(order) - 1))
        target = self._link_position(order[index])
        if (forward and target <= here) or (not forward and target >= here):
            return None
        return index

    def _jump_to_link(self, count: int, forward: bool):
        index = self._link_index(count, forward)
        if index is None:
            return
        self._move_to(*self._link_position(self._document.link_order[index]))

    def _next_link(self, count: int, explicit: bool):
        self._jump_to_link(count, forward=True)

    def _previous_link(self, count: int, explicit: bool):
        self._jump_to_link(count, forward=False)

    def _follow_link(self, count: int, explicit: bool) -> NavOutcome:
        active = self._state.active_link_id
        if active is None:
            return NavOutcome.no_op()
        return NavOutcome.followed_link(self._document.link_target(active))
