"""Layout settings and the vertical flow cursor."""

import warnings
from dataclasses import dataclass
from typing import Dict, Optional

from ..diagrams.converter import SPACING_PRESETS

DEFAULTS = {
    'START_X': '0',
    'START_Y': '0',
    'INDENT': '20',
    'EQUATION_TAG': 'equation',
    'DIAGRAM_TAG': 'mermaid',
    'EQUATION_TIMEOUT': '10',
    'DIAGRAM_TIMEOUT': '10',
    'PACING': '0',
    'FONT_FILE': '',
    'SPACING': 'DEFAULT',
    'EQUATIONS': 'true',
}


def meta_defaults(meta: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Merge user overrides (case-insensitive keys) over DEFAULTS."""
    merged = dict(DEFAULTS)
    for k, v in (meta or {}).items():
        if v is None:
            continue
        merged[str(k).upper()] = str(v)
    return merged


def parse_bool(val: Optional[str], default: bool = False) -> bool:
    if val is None:
        return default
    s = str(val).strip().lower()
    if s in ('1', 'true', 'yes', 'on'):
        return True
    if s in ('0', 'false', 'no', 'off'):
        return False
    return default


def parse_number(key: str, val: Optional[str], default: float, minimum: Optional[float] = None) -> float:
    """Parse a numeric setting, warning and falling back on bad input."""
    try:
        num = float(str(val).strip())
    except (TypeError, ValueError):
        warnings.warn(f"Invalid {key} '{val}', using {default}", UserWarning)
        return default
    if num != num or num in (float('inf'), float('-inf')):
        warnings.warn(f"Invalid {key} '{val}', using {default}", UserWarning)
        return default
    if minimum is not None and num < minimum:
        warnings.warn(f"{key} {num} below {minimum}, using {default}", UserWarning)
        return default
    return num


@dataclass
class LayoutSettings:
    start_x: float = 0.0
    start_y: float = 0.0
    indent: float = 20.0
    equation_tag: str = 'equation'
    diagram_tag: str = 'mermaid'
    equation_timeout: float = 10.0
    diagram_timeout: float = 10.0
    pacing: float = 0.0
    font_file: str = ''
    spacing: str = 'DEFAULT'
    equations: bool = True

    @classmethod
    def from_meta(cls, meta: Optional[Dict[str, str]] = None) -> 'LayoutSettings':
        m = meta_defaults(meta)
        spacing = m['SPACING'].strip().upper() or 'DEFAULT'
        if spacing not in SPACING_PRESETS:
            warnings.warn(f"Unknown SPACING '{m['SPACING']}', using DEFAULT", UserWarning)
            spacing = 'DEFAULT'
        return cls(
            start_x=parse_number('START_X', m['START_X'], 0.0),
            start_y=parse_number('START_Y', m['START_Y'], 0.0),
            indent=parse_number('INDENT', m['INDENT'], 20.0, minimum=0),
            equation_tag=m['EQUATION_TAG'].strip() or 'equation',
            diagram_tag=m['DIAGRAM_TAG'].strip() or 'mermaid',
            equation_timeout=parse_number('EQUATION_TIMEOUT', m['EQUATION_TIMEOUT'], 10.0, minimum=0),
            diagram_timeout=parse_number('DIAGRAM_TIMEOUT', m['DIAGRAM_TIMEOUT'], 10.0, minimum=0),
            pacing=parse_number('PACING', m['PACING'], 0.0, minimum=0),
            font_file=m['FONT_FILE'].strip(),
            spacing=spacing,
            equations=parse_bool(m['EQUATIONS'], True),
        )


class LayoutCursor:
    """Single vertical position shared by every handler in one pass.

    The cursor only moves down; ``advance`` rejects negative steps and
    ``advance_to`` never moves it up.
    """

    def __init__(self, start_y: float = 0.0):
        self.current_y = float(start_y)

    def advance(self, dy: float) -> float:
        if dy < 0:
            raise ValueError(f"Cursor cannot move up (dy={dy})")
        self.current_y += dy
        return self.current_y

    def advance_to(self, y: float) -> float:
        self.current_y = max(self.current_y, float(y))
        return self.current_y

    def __repr__(self):
        return f"LayoutCursor(current_y={self.current_y})"
