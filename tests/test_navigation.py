"""Tests for the navigation engine: counts, line motions, links and view requests."""

import pytest

from navim.constants import ViewerConstants
from navim.document import Document, DocumentBuilder, RenderClass, cells_for
from navim.keyboard import KeyEvent, KeyType
from navim.navigation import NavigationEngine, NavOutcome, OutcomeKind, ViewChange


def keys(engine, *events):
    """Send keys; plain strings are typed one character at a time."""
    outcome = None
    for event in events:
        if isinstance(event, str):
            for ch in event:
                outcome = engine.handle_key(KeyEvent.char(ch))
        else:
            outcome = engine.handle_key(event)
    return outcome


def numbered_lines(count, text="line"):
    return Document.from_plain_lines([f"{text} {i}" for i in range(count)])


def document_with_links(total_lines, link_lines, col=0):
    """Lines of filler with a four-character link at ``col`` on each of ``link_lines``."""
    builder = DocumentBuilder(width=40)
    link_id = 0
    for index in range(total_lines):
        if index in link_lines:
            cells = cells_for(" " * col) + cells_for("link", RenderClass.link(f"page{link_id}.html", link_id))
            link_id += 1
        else:
            cells = cells_for(f"plain text {index}")
        builder.add_line(cells)
    return builder.build()


class TestCounts:

    def test_count_prefix_moves_down(self):
        engine = NavigationEngine(numbered_lines(30))
        assert keys(engine, "20") == NavOutcome.no_op()
        assert engine.cursor.pending_count == 20
        assert keys(engine, "j") == NavOutcome.moved()
        assert engine.cursor.line_index == 20
        assert engine.cursor.pending_count == 0

    def test_count_clamped_to_buffer(self):
        engine = NavigationEngine(numbered_lines(10))
        keys(engine, "20j")
        assert engine.cursor.line_index == 9

    def test_leading_zero_is_line_start(self):
        engine = NavigationEngine(numbered_lines(3))
        keys(engine, "4l")
        assert engine.cursor.col_index == 4
        assert keys(engine, "0") == NavOutcome.moved()
        assert engine.cursor.col_index == 0
        assert engine.cursor.pending_count == 0

    def test_zero_after_digit_accumulates(self):
        engine = NavigationEngine(numbered_lines(3))
        keys(engine, "10")
        assert engine.cursor.pending_count == 10

    def test_count_saturates(self):
        engine = NavigationEngine(numbered_lines(3))
        keys(engine, "9" * 12)
        assert engine.cursor.pending_count == ViewerConstants.MAX_COUNT
        keys(engine, "j")
        assert engine.cursor.line_index == 2

    def test_unknown_key_discards_count(self):
        engine = NavigationEngine(numbered_lines(10))
        assert keys(engine, "5z") == NavOutcome.no_op()
        assert engine.cursor.pending_count == 0
        keys(engine, "j")
        assert engine.cursor.line_index == 1

    def test_escape_clears_count(self):
        engine = NavigationEngine(numbered_lines(10))
        keys(engine, "5")
        assert keys(engine, KeyEvent.special('escape')) == NavOutcome.no_op()
        assert engine.cursor.pending_count == 0

    @pytest.mark.parametrize("ch", ["²", "٣", "½"])
    def test_non_ascii_digits_are_not_counts(self, ch):
        engine = NavigationEngine(numbered_lines(10))
        keys(engine, "2j")
        before = engine.cursor
        assert keys(engine, ch) == NavOutcome.no_op()
        assert engine.cursor == before
        # A pending count is discarded like any other unbound key
        keys(engine, "5")
        assert keys(engine, ch) == NavOutcome.no_op()
        assert engine.cursor.pending_count == 0
        assert engine.cursor.line_index == 2

    def test_unknown_key_is_idempotent(self):
        engine = NavigationEngine(numbered_lines(10))
        keys(engine, "3j2l")
        before = engine.cursor
        for event in [KeyEvent.char("z"), KeyEvent.special("f9"), KeyEvent.ctrl("x")]:
            assert engine.handle_key(event) == NavOutcome.no_op()
            assert engine.cursor == before


class TestLineMotions:

    def test_character_motions_clamp_to_line(self):
        engine = NavigationEngine(Document.from_plain_lines(["abc", "defghij"]))
        assert keys(engine, "h") == NavOutcome.no_op()
        keys(engine, "10l")
        assert engine.cursor.col_index == 3  # Past the last character
        assert engine.cursor.line_index == 0
        keys(engine, "2h")
        assert engine.cursor.col_index == 1
        assert engine.cursor.desired_col == 1

    def test_vertical_memory(self):
        engine = NavigationEngine(Document.from_plain_lines(["a" * 12, "b" * 3, "c" * 15]))
        keys(engine, "10l")
        assert engine.cursor.col_index == 10
        keys(engine, "j")
        assert engine.cursor.col_index == 3
        assert engine.cursor.desired_col == 10
        keys(engine, "j")
        assert engine.cursor.col_index == 10

    def test_arrow_keys_match_hjkl(self):
        engine = NavigationEngine(numbered_lines(5))
        keys(engine, KeyEvent.special('down'), KeyEvent.special('down'), KeyEvent.special('right'))
        assert (engine.cursor.line_index, engine.cursor.col_index) == (2, 1)
        keys(engine, KeyEvent.special('up'), KeyEvent.special('left'))
        assert (engine.cursor.line_index, engine.cursor.col_index) == (1, 0)

    def test_line_start_and_end(self):
        engine = NavigationEngine(Document.from_plain_lines(["hello world"]))
        keys(engine, "$")
        assert engine.cursor.col_index == 11
        keys(engine, KeyEvent.special('home'))
        assert engine.cursor.col_index == 0
        keys(engine, KeyEvent.special('end'))
        assert engine.cursor.col_index == 11

    def test_top_and_bottom(self):
        engine = NavigationEngine(numbered_lines(30))
        keys(engine, "3l", "G")
        assert (engine.cursor.line_index, engine.cursor.col_index) == (29, 0)
        keys(engine, "g")
        assert (engine.cursor.line_index, engine.cursor.col_index) == (0, 0)

    def test_count_goto_line(self):
        engine = NavigationEngine(numbered_lines(30))
        keys(engine, "7G")
        assert engine.cursor.line_index == 6
        keys(engine, "50G")
        assert engine.cursor.line_index == 29

    def test_no_move_at_edges(self):
        engine = NavigationEngine(numbered_lines(3))
        assert keys(engine, "k") == NavOutcome.no_op()
        assert keys(engine, "g") == NavOutcome.no_op()

    def test_page_motions(self):
        engine = NavigationEngine(numbered_lines(100), page_size=20)
        keys(engine, KeyEvent.ctrl('d'))
        assert engine.cursor.line_index == 10
        keys(engine, " ")
        assert engine.cursor.line_index == 30
        keys(engine, KeyEvent.special('page_down'), KeyEvent.ctrl('f'))
        assert engine.cursor.line_index == 70
        keys(engine, KeyEvent.ctrl('b'))
        assert engine.cursor.line_index == 50
        keys(engine, KeyEvent.ctrl('u'), KeyEvent.special('page_up'))
        assert engine.cursor.line_index == 20
        keys(engine, "9", KeyEvent.ctrl('f'))
        assert engine.cursor.line_index == 99

    def test_page_motion_keeps_desired_column(self):
        lines = ["x" * 12] + ["y"] * 20 + ["z" * 12]
        engine = NavigationEngine(Document.from_plain_lines(lines), page_size=21)
        keys(engine, "8l", " ")
        assert engine.cursor.line_index == 21
        assert engine.cursor.col_index == 8

    def test_empty_document(self):
        engine = NavigationEngine(Document.from_plain_lines([]))
        for ch in "hjklwbgGLH$0":
            assert keys(engine, ch) == NavOutcome.no_op()
        assert (engine.cursor.line_index, engine.cursor.col_index) == (0, 0)

    def test_reset(self):
        engine = NavigationEngine(numbered_lines(10))
        keys(engine, "5j3")
        engine.reset(numbered_lines(3))
        cursor = engine.cursor
        assert (cursor.line_index, cursor.col_index, cursor.pending_count) == (0, 0, 0)
        assert len(engine.document) == 3
        engine.reset(numbered_lines(5), line_index=99)
        assert engine.cursor.line_index == 4

    def test_cursor_is_a_copy(self):
        engine = NavigationEngine(numbered_lines(10))
        engine.cursor.line_index = 5
        assert engine.cursor.line_index == 0


class TestLinks:

    def test_link_traversal(self):
        engine = NavigationEngine(document_with_links(12, {2, 5, 9}))
        keys(engine, "L")
        assert engine.cursor.active_link_id == 0
        assert keys(engine, "L") == NavOutcome.moved()
        assert engine.cursor.active_link_id == 1
        assert engine.cursor.line_index == 5
        keys(engine, "H")
        assert engine.cursor.active_link_id == 0
        assert engine.cursor.line_index == 2

    def test_link_cycling_saturates(self):
        engine = NavigationEngine(document_with_links(12, {2, 5, 9}))
        assert keys(engine, "H") == NavOutcome.no_op()
        keys(engine, "G")
        assert keys(engine, "L") == NavOutcome.no_op()
        keys(engine, "H")
        assert engine.cursor.active_link_id == 2
        assert keys(engine, "L") == NavOutcome.no_op()
        assert engine.cursor.active_link_id == 2
        keys(engine, "10H")
        assert engine.cursor.active_link_id == 0
        assert keys(engine, "H") == NavOutcome.no_op()

    def test_link_cycling_wraps_when_enabled(self):
        engine = NavigationEngine(document_with_links(12, {2, 5, 9}), wrap_links=True)
        keys(engine, "H")
        assert engine.cursor.active_link_id == 2
        keys(engine, "L")
        assert engine.cursor.active_link_id == 0

    def test_count_skips_links(self):
        engine = NavigationEngine(document_with_links(12, {2, 5, 9}))
        keys(engine, "2L")
        assert engine.cursor.active_link_id == 1

    def test_tab_and_shift_tab(self):
        engine = NavigationEngine(document_with_links(12, {2, 5, 9}))
        keys(engine, KeyEvent.special('tab'), KeyEvent.special('tab'))
        assert engine.cursor.active_link_id == 1
        keys(engine, KeyEvent(KeyType.SHIFT_SPECIAL, 'tab', '<Shift-TAB>', is_shift=True))
        assert engine.cursor.active_link_id == 0

    def test_cursor_lands_on_span_start(self):
        engine = NavigationEngine(document_with_links(5, {3}, col=6))
        keys(engine, "L")
        assert (engine.cursor.line_index, engine.cursor.col_index) == (3, 6)
        assert engine.cursor.desired_col == 6

    def test_active_link_follows_cursor(self):
        engine = NavigationEngine(document_with_links(5, {1}, col=2))
        keys(engine, "j")
        assert engine.cursor.active_link_id is None
        keys(engine, "2l")
        assert engine.cursor.active_link_id == 0
        keys(engine, "4l")
        assert engine.cursor.active_link_id is None

    def test_enter_follows_active_link(self):
        engine = NavigationEngine(document_with_links(12, {2, 5, 9}))
        assert keys(engine, KeyEvent.special('enter')) == NavOutcome.no_op()
        keys(engine, "LL")
        outcome = keys(engine, KeyEvent.special('enter'))
        assert outcome.kind is OutcomeKind.FOLLOWED_LINK
        assert outcome == NavOutcome.followed_link("page1.html")

    def test_no_links(self):
        engine = NavigationEngine(numbered_lines(5))
        assert keys(engine, "L") == NavOutcome.no_op()
        assert keys(engine, "H") == NavOutcome.no_op()


@pytest.mark.parametrize("event,change", [
    (KeyEvent.char('q'), ViewChange.QUIT),
    (KeyEvent.special('backspace'), ViewChange.BACK),
    (KeyEvent(KeyType.ALT, 'left', '<Esc+LEFT>', is_alt=True), ViewChange.BACK),
    (KeyEvent.char('?'), ViewChange.HELP),
    (KeyEvent.special('f1'), ViewChange.HELP),
    (KeyEvent.char('r'), ViewChange.RELOAD),
])
def test_view_change_requests(event, change):
    engine = NavigationEngine(numbered_lines(5))
    keys(engine, "3")
    assert engine.handle_key(event) == NavOutcome.request_view_change(change)
    assert engine.cursor.pending_count == 0
    assert engine.cursor.line_index == 0
