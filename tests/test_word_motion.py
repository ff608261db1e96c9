"""Test word motions (w/b) across soft wraps and split words."""

from navim.document import BreakKind, DocumentBuilder, Document, cells_for
from navim.keyboard import KeyEvent
from navim.navigation import NavigationEngine, NavOutcome


def press(engine, text):
    outcome = None
    for ch in text:
        outcome = engine.handle_key(KeyEvent.char(ch))
    return outcome


def position(engine):
    cursor = engine.cursor
    return cursor.line_index, cursor.col_index


def wrapped_document(*lines):
    """Build a document from (text, break_before) pairs."""
    builder = DocumentBuilder(width=max(len(text) for text, _ in lines))
    for text, break_kind in lines:
        builder.add_line(cells_for(text), break_kind)
    return builder.build()


def test_forward_word_skips_repeated_spaces():
    line = "the quick  brown fox"
    engine = NavigationEngine(Document.from_plain_lines([line]))
    press(engine, "w")
    assert position(engine) == (0, line.index("quick"))
    press(engine, "w")
    assert position(engine) == (0, line.index("brown"))
    assert engine.cursor.desired_col == line.index("brown")


def test_forward_word_with_count():
    engine = NavigationEngine(Document.from_plain_lines(["one two three four"]))
    press(engine, "2w")
    assert position(engine) == (0, 8)


def test_forward_word_from_whitespace():
    engine = NavigationEngine(Document.from_plain_lines(["   indented"]))
    press(engine, "w")
    assert position(engine) == (0, 3)


def test_forward_word_crosses_soft_wrap():
    engine = NavigationEngine(wrapped_document(
        ("alpha beta", BreakKind.HARD),
        ("gamma", BreakKind.SOFT),
    ))
    press(engine, "ww")
    assert position(engine) == (1, 0)


def test_forward_word_crosses_blank_line():
    engine = NavigationEngine(Document.from_plain_lines(["a", "", "b"]))
    press(engine, "w")
    assert position(engine) == (2, 0)


def test_split_word_is_one_word():
    engine = NavigationEngine(wrapped_document(
        ("abcd", BreakKind.HARD),
        ("efgh", BreakKind.SPLIT),
        ("ij", BreakKind.SPLIT),
        ("cd", BreakKind.SOFT),
    ))
    press(engine, "w")
    assert position(engine) == (3, 0)
    press(engine, "b")
    assert position(engine) == (0, 0)


def test_forward_word_stops_at_last_word():
    engine = NavigationEngine(Document.from_plain_lines(["hello world"]))
    press(engine, "w")
    assert position(engine) == (0, 6)
    assert press(engine, "w") == NavOutcome.no_op()
    assert position(engine) == (0, 6)


def test_backward_word_basic():
    engine = NavigationEngine(Document.from_plain_lines(["hello world test"]))
    press(engine, "$")
    press(engine, "b")
    assert position(engine) == (0, 12)
    press(engine, "b")
    assert position(engine) == (0, 6)
    press(engine, "b")
    assert position(engine) == (0, 0)
    assert press(engine, "b") == NavOutcome.no_op()


def test_backward_word_from_middle_of_word():
    engine = NavigationEngine(Document.from_plain_lines(["hello world"]))
    press(engine, "8l")
    press(engine, "b")
    assert position(engine) == (0, 6)


def test_backward_word_crosses_lines():
    engine = NavigationEngine(wrapped_document(
        ("alpha beta", BreakKind.HARD),
        ("gamma", BreakKind.SOFT),
    ))
    press(engine, "j")
    press(engine, "b")
    assert position(engine) == (0, 6)
    press(engine, "2b")
    assert position(engine) == (0, 0)
