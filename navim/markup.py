"""Markup tree handed to the renderer, and its construction from HTML.

The renderer never sees BeautifulSoup objects. ``from_html`` parses a page
with BeautifulSoup and copies it into an immutable ``MarkupNode`` tree;
``find_main_content`` narrows a tree to the node most likely to hold the
article text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional

from bs4 import BeautifulSoup, Tag
from bs4.element import Comment, Declaration, Doctype, NavigableString, ProcessingInstruction

from .constants import ViewerConstants


class NodeKind(Enum):
    """Kinds of markup nodes."""
    TEXT = "text"
    ELEMENT = "element"
    FRAGMENT = "fragment"  # Tagless container, e.g. the parsed document root


@dataclass(frozen=True)
class MarkupNode:
    """One node of a parsed page. Immutable once built."""
    kind: NodeKind
    tag: Optional[str] = None
    text: str = ""
    attrs: dict = field(default_factory=dict)
    children: tuple = ()

    @classmethod
    def text_node(cls, text: str) -> "MarkupNode":
        return cls(NodeKind.TEXT, text=text)

    @classmethod
    def element(cls, tag: str, attrs: Optional[dict] = None, children=()) -> "MarkupNode":
        return cls(NodeKind.ELEMENT, tag=tag.lower(), attrs=dict(attrs or {}), children=tuple(children))

    @classmethod
    def fragment(cls, children=()) -> "MarkupNode":
        return cls(NodeKind.FRAGMENT, children=tuple(children))

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.attrs.get(name, default)

    def classes(self) -> list[str]:
        return (self.attrs.get("class") or "").split()

    def iter_elements(self) -> Iterator["MarkupNode"]:
        """Yield element nodes in document order (pre-order)."""
        stack = [self]
        while stack:
            node = stack.pop()
            if node.kind is NodeKind.ELEMENT:
                yield node
            stack.extend(reversed(node.children))

    def iter_text(self) -> Iterator[str]:
        """Yield the text of all descendant text nodes in document order."""
        stack = [self]
        while stack:
            node = stack.pop()
            if node.kind is NodeKind.TEXT:
                yield node.text
            else:
                stack.extend(reversed(node.children))

    def text_content(self) -> str:
        return "".join(self.iter_text())


# Elements whose content is never displayed; dropped while parsing
DROPPED_TAGS = frozenset({"script", "style", "noscript", "template"})

_SKIPPED_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction)


def _copy_attrs(tag: Tag) -> dict:
    attrs = {}
    for key, value in tag.attrs.items():
        # Multi-valued attributes such as class come back as lists
        if isinstance(value, list):
            value = " ".join(value)
        attrs[key.lower()] = str(value)
    return attrs


def from_soup(soup: Tag) -> MarkupNode:
    """Copy a BeautifulSoup tree into a MarkupNode tree.

    Iterative, so pathological nesting does not hit the interpreter's
    recursion limit; depth is policed later by the renderer.
    """
    # Each frame: (tag name or None for the root, attrs, children so far, child iterator)
    stack: list[tuple[Optional[str], dict, list, Iterator]] = [
        (None, {}, [], iter(soup.contents))
    ]
    while True:
        name, attrs, kids, remaining = stack[-1]
        child = next(remaining, None)
        if child is None:
            stack.pop()
            if name is None:
                node = MarkupNode.fragment(kids)
            else:
                node = MarkupNode(NodeKind.ELEMENT, tag=name, attrs=attrs, children=tuple(kids))
            if not stack:
                return node
            stack[-1][2].append(node)
            continue
        if isinstance(child, _SKIPPED_STRINGS):
            continue
        if isinstance(child, NavigableString):
            text = str(child)
            if text:
                kids.append(MarkupNode.text_node(text))
            continue
        if isinstance(child, Tag):
            tag_name = child.name.lower()
            if tag_name in DROPPED_TAGS:
                continue
            stack.append((tag_name, _copy_attrs(child), [], iter(child.contents)))


def from_html(html: str) -> MarkupNode:
    """Parse an HTML string into a MarkupNode tree."""
    return from_soup(BeautifulSoup(html, "html.parser"))


# Candidate main-content containers, most specific first.
# Each entry is (attribute, value); "tag" matches the element name.
MAIN_CONTENT_SELECTORS = (
    # Wikipedia
    ("class", "mw-parser-output"),
    ("id", "mw-content-text"),
    ("id", "bodyContent"),
    # StackOverflow
    ("class", "s-prose"),
    ("id", "mainbar"),
    # Generic articles
    ("class", "post-content"),
    ("class", "entry-content"),
    ("tag", "article"),
    ("id", "main-content"),
    ("class", "main-content"),
    ("role", "main"),
    ("tag", "main"),
    # Blogs and news
    ("class", "post-body"),
    ("class", "article-body"),
    ("class", "story-body"),
    # Documentation
    ("class", "markdown-body"),
    ("class", "documentation"),
    ("class", "doc-content"),
    ("id", "readme"),
    ("id", "content"),
)


def _matches(node: MarkupNode, selector: tuple[str, str]) -> bool:
    attr, value = selector
    if attr == "tag":
        return node.tag == value
    if attr == "class":
        return value in node.classes()
    return node.attrs.get(attr) == value


def find_main_content(root: MarkupNode,
                      min_chars: int = ViewerConstants.MIN_MAIN_CONTENT_CHARS) -> MarkupNode:
    """Return the node most likely to hold the page's main content.

    Falls back to ``root`` when no candidate carries at least ``min_chars``
    characters of text.
    """
    elements = list(root.iter_elements())
    for selector in MAIN_CONTENT_SELECTORS:
        for node in elements:
            if _matches(node, selector) and len(node.text_content().strip()) >= min_chars:
                return node
    return root


_WHITESPACE_RE = re.compile(r"\s+")


def page_title(root: MarkupNode) -> Optional[str]:
    """Return the page's <title> text with whitespace collapsed, if any."""
    for node in root.iter_elements():
        if node.tag == "title":
            title = _WHITESPACE_RE.sub(" ", node.text_content()).strip()
            return title or None
    return None
