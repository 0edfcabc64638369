"""Classification of raw html node values.

Checks run in a fixed order and the first match wins, so a diagram wrapper
that happens to contain table markup is still treated as a diagram.
"""

from typing import Callable, List, Tuple

DIAGRAM = 'diagram'
EQUATION = 'equation'
TABLE = 'table'
PLAIN = 'plain'


def _wrapped(tag: str) -> Callable[[str], bool]:
    t = tag.lower()

    def check(value: str) -> bool:
        v = value.lower()
        return v.startswith(f"<{t}>") and v.endswith(f"</{t}>")

    return check


def is_table(value: str) -> bool:
    v = value.lower()
    return '<table' in v and '</table>' in v


def dispatch_table(diagram_tag: str = 'mermaid', equation_tag: str = 'equation') -> List[Tuple[Callable[[str], bool], str]]:
    return [
        (_wrapped(diagram_tag), DIAGRAM),
        (_wrapped(equation_tag), EQUATION),
        (is_table, TABLE),
    ]


def classify_html(value: str, diagram_tag: str = 'mermaid', equation_tag: str = 'equation') -> str:
    v = (value or '').strip()
    for predicate, kind in dispatch_table(diagram_tag, equation_tag):
        if predicate(v):
            return kind
    return PLAIN


def unwrap(value: str, tag: str) -> str:
    """Inner content of ``<tag>...</tag>``, trimmed."""
    v = value.strip()
    return v[len(tag) + 2 : len(v) - len(tag) - 3].strip()
