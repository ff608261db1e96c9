"""navim - a terminal HTML viewer with vim-style navigation."""

__version__ = "0.1.0"

from .document import Document, DisplayLine, LinkSpan
from .markup import MarkupNode, from_html
from .navigation import NavigationEngine, NavOutcome, ViewChange
from .renderer import MalformedDocument, RenderError, TooDeep, render

__all__ = [
    'Document',
    'DisplayLine',
    'LinkSpan',
    'MarkupNode',
    'from_html',
    'NavigationEngine',
    'NavOutcome',
    'ViewChange',
    'RenderError',
    'MalformedDocument',
    'TooDeep',
    'render',
]
