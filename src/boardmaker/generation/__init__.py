"""Generation package for document layout.

This package turns a parsed document tree into positioned canvas primitives:
- core: DocumentWalker and the render_document entry point
- layout: Settings, defaults and the vertical flow cursor
- elements: Primitive factories for text, errors, images and rules
- html_dispatch: Classification of raw html nodes
"""

from .core import (
    DocumentWalker,
    LayoutResult,
    fixed_delay,
    no_pacing,
    render_document,
)
from .elements import (
    ERROR_COLOR,
    NOTICE_COLOR,
    TEXT_COLOR,
    ElementFactory,
)
from .html_dispatch import classify_html, dispatch_table
from .layout import (
    DEFAULTS,
    LayoutCursor,
    LayoutSettings,
    meta_defaults,
    parse_bool,
)

__all__ = [
    # Core functionality
    'DocumentWalker',
    'LayoutResult',
    'fixed_delay',
    'no_pacing',
    'render_document',
    # Element factories
    'ERROR_COLOR',
    'NOTICE_COLOR',
    'TEXT_COLOR',
    'ElementFactory',
    # Html dispatch
    'classify_html',
    'dispatch_table',
    # Settings and cursor
    'DEFAULTS',
    'LayoutCursor',
    'LayoutSettings',
    'meta_defaults',
    'parse_bool',
]
