"""Diagram source cleanup before parsing.

``preprocess_diagram_code`` is the lenient pass used by the layout walker: it
only quotes labels so that punctuation inside them cannot break the parser.
``normalize_diagram_code`` is the strict pass for raw model output and may
reject a diagram outright.
"""

import re
from typing import List

from ..utils.text_helpers import escape_entities

BR_RE = re.compile(r'<br\s*/?>', re.I)
SQUARE_RE = re.compile(r'\[([^\]]+)\]')
PAREN_RE = re.compile(r'\(([^)]+)\)')
CURLY_RE = re.compile(r'\{([^}]+)\}')
PIPE_RE = re.compile(r'\|([^|]+)\|')
SIMPLE_PAREN_RE = re.compile(r'^[\w\s\-.,]+$')

FENCE_RE = re.compile(r'```(?:mermaid)?\s*([\s\S]*?)\s*```')
CURLY_TO_SQUARE_RE = re.compile(r'\{([^}]*)\}')
UNQUOTED_LABEL_RE = re.compile(r'(\[[^\]"\']+?\])')
LEADING_ID_RE = re.compile(r'^([^\s\[\]]+)\[', re.M)
QUOTED_LABEL_RE = re.compile(r'\["([^"]*)"\]')
DIAGRAM_TYPE_RE = re.compile(
    r'^(flowchart|graph|sequenceDiagram|classDiagram|erDiagram|gantt|journey)', re.M
)

MAX_LINES = 200
MAX_CHARS = 5000


class DiagramTooLargeError(ValueError):
    """Raised when diagram source exceeds the line or character limit."""


def _escape_label(content: str) -> str:
    return escape_entities(content).strip()


def is_already_quoted(content: str) -> bool:
    s = content.strip()
    if len(s) < 2:
        return False
    return (s[0] == '"' and s[-1] == '"') or (s[0] == "'" and s[-1] == "'")


def is_inside_quotes(text: str, position: int) -> bool:
    """True when ``position`` falls inside a double-quoted span of ``text``.

    Only ``"`` delimits a span, so apostrophes in plain labels such as
    ``A[it's]`` never open one. Quotes preceded by a backslash are ignored.
    """
    inside = False
    for i in range(min(position, len(text))):
        if text[i] == '"' and (i == 0 or text[i - 1] != '\\'):
            inside = not inside
    return inside


def _quote_pass(line: str, pattern: re.Pattern, open_ch: str, close_ch: str, simple_only=False) -> str:
    out: List[str] = []
    pos = 0
    for m in pattern.finditer(line):
        out.append(line[pos : m.start()])
        pos = m.end()
        content = m.group(1)
        # Quote state comes from the rewritten prefix, not the input line
        done = ''.join(out)
        keep = (
            is_inside_quotes(done, len(done))
            or is_already_quoted(content)
            or (
                simple_only
                and not (SIMPLE_PAREN_RE.match(content) and '"' not in content and "'" not in content)
            )
        )
        out.append(m.group(0) if keep else f'{open_ch}"{_escape_label(content)}"{close_ch}')
    out.append(line[pos:])
    return ''.join(out)


def preprocess_line(line: str) -> str:
    line = _quote_pass(line, SQUARE_RE, '[', ']')
    line = _quote_pass(line, PAREN_RE, '(', ')', simple_only=True)
    line = _quote_pass(line, CURLY_RE, '{', '}')
    line = _quote_pass(line, PIPE_RE, '|', '|')
    return line


def preprocess_diagram_code(raw: str) -> str:
    """Quote and escape bracketed labels so they survive diagram parsing.

    Line breaks written as <br> become real newlines first. Running the
    function on its own output changes nothing.
    """
    text = BR_RE.sub('\n', raw or '')
    return '\n'.join(preprocess_line(ln) for ln in text.split('\n'))


def clean_diagram_code(code: str) -> str:
    """Swap curly braces for square brackets."""
    return code.replace('{', '[').replace('}', ']')


def fallback_diagram(description: str) -> str:
    """Single self-looping node used when a diagram cannot be produced."""
    return clean_diagram_code(f"flowchart TD\n    A[{description}] --> A[{description}]")


def _dedupe_lines(lines: List[str]) -> List[str]:
    seen = set()
    out = []
    for ln in lines:
        key = ln.strip()
        if key in seen:
            continue
        seen.add(key)
        out.append(ln)
    return out


def normalize_diagram_code(raw: str, max_lines: int = MAX_LINES, max_chars: int = MAX_CHARS) -> str:
    """Strictly normalize diagram source taken from model output.

    Raises DiagramTooLargeError when the normalized code has more than
    ``max_lines`` lines or ``max_chars`` characters.
    """
    raw = raw or ''
    m = FENCE_RE.search(raw)
    code = m.group(1).strip() if m else raw.strip()

    code = CURLY_TO_SQUARE_RE.sub(r'[\1]', code)
    code = UNQUOTED_LABEL_RE.sub(lambda mm: f'["{mm.group(0)[1:-1].strip()}"]', code)
    code = LEADING_ID_RE.sub(lambda mm: re.sub(r'[^a-zA-Z0-9_]', '_', mm.group(1)) + '[', code)

    def _escape_quoted(mm):
        label = (
            mm.group(1)
            .replace('&', '&amp;')
            .replace('<', '&lt;')
            .replace('>', '&gt;')
            .replace('"', '&quot;')
        )
        return f'["{label}"]'

    code = QUOTED_LABEL_RE.sub(_escape_quoted, code)

    if not DIAGRAM_TYPE_RE.search(code):
        code = 'flowchart TD\n' + code

    code = '\n'.join(_dedupe_lines(code.split('\n')))

    n_lines = len(code.split('\n'))
    if n_lines > max_lines or len(code) > max_chars:
        raise DiagramTooLargeError(
            f"Diagram too large or complex ({n_lines} lines, {len(code)} chars; "
            f"limits {max_lines} lines, {max_chars} chars)"
        )
    return code.strip()
