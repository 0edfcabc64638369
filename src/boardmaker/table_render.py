"""HTML/Markdown tables to a grid of cell rectangles and centered text.

Sizing happens in three steps before anything is emitted: column widths from
the longest cell per column, row heights from wrapped line counts, then
cumulative row offsets. Rows may be ragged; cells past the header's column
count are ignored and short rows simply emit fewer cells.
"""

import math
import re
from typing import List, Optional, Sequence

from .fonts import WRAP_FACTOR, AverageCharMeasurer
from .primitives import IdFactory, Primitive, RectanglePrimitive, TextPrimitive
from .utils.text_helpers import collapse_ws, decode_entities, strip_tags

ROW_RE = re.compile(r'<tr\b[^>]*>([\s\S]*?)</tr>', re.I)
CELL_RE = re.compile(r'<t[hd]\b[^>]*>([\s\S]*?)</t[hd]>', re.I)
SEPARATOR_CELL_RE = re.compile(r'^:?-+:?$')
PLAIN_SPLIT_RE = re.compile(r'\s{2,}|\t|,')

HEADER_FONT_SIZE = 20
BODY_FONT_SIZE = 16
MIN_COL_WIDTH = 150
MAX_COL_WIDTH = 600
MAX_TOTAL_WIDTH = 1400
EMPTY_CELL_WIDTH = 150
MIN_CELL_PADDING = 50
CELL_PADDING_RATIO = 0.6
WRAP_MARGIN = 20
BASE_ROW_HEIGHT = 60
LINE_HEIGHT = 1.25
ROW_CONTENT_PADDING = 20
TEXT_LINE_HEIGHT = 1.2
TEXT_INSET = 20

HEADER_FILL = '#f0f0f0'
BODY_FILL = 'transparent'
GRID_STROKE = '#1e1e1e'


def font_size_for_row(row_index: int) -> int:
    return HEADER_FONT_SIZE if row_index == 0 else BODY_FONT_SIZE


def html_table_to_markdown(html: str) -> str:
    """Convert table row/cell markup to a pipe table.

    A ``---`` separator row follows the first row when there are at least two
    rows. Returns '' when no row holds a cell.
    """
    rows: List[List[str]] = []
    for row_m in ROW_RE.finditer(html or ''):
        cells = [
            collapse_ws(decode_entities(c.group(1).strip())) for c in CELL_RE.finditer(row_m.group(1))
        ]
        if cells:
            rows.append(cells)
    if not rows:
        return ''
    lines = ['| ' + ' | '.join(r) + ' |' for r in rows]
    if len(rows) >= 2:
        lines.insert(1, '| ' + ' | '.join('---' for _ in rows[0]) + ' |')
    return '\n'.join(lines)


def clean_cell(content: str) -> str:
    return decode_entities(strip_tags(content)).strip()


def _is_separator_row(row: Sequence[str]) -> bool:
    return bool(row) and all(SEPARATOR_CELL_RE.match(c or '') for c in row)


def parse_table_markdown(markdown: str) -> List[List[str]]:
    """Parse pipe-table (or loosely delimited) text into rows of cell strings."""
    lines = [ln for ln in (markdown or '').strip().split('\n') if ln.strip()]
    if '|' in (markdown or ''):
        rows = []
        for ln in lines:
            parts = ln.split('|')
            rows.append([clean_cell(c) for c in parts[1:-1]])
        if len(rows) > 1 and _is_separator_row(rows[1]):
            del rows[1]
        return rows
    return [[clean_cell(c) for c in PLAIN_SPLIT_RE.split(ln) if c.strip()] for ln in lines]


def compute_column_widths(
    rows: Sequence[Sequence[str]],
    measurer=None,
    min_width: float = MIN_COL_WIDTH,
    max_width: float = MAX_COL_WIDTH,
    max_total: float = MAX_TOTAL_WIDTH,
) -> List[float]:
    """Column widths clamped to [min_width, max_width], scaled to fit max_total.

    When scaling pushes a column below the minimum it is pinned there and the
    remaining columns share what is left, so the sum stays within max_total
    whenever ``len(columns) * min_width <= max_total``.
    """
    if not rows:
        return []
    measurer = measurer or AverageCharMeasurer()
    ncols = len(rows[0])
    widths = [0.0] * ncols
    for ri, row in enumerate(rows):
        fs = font_size_for_row(ri)
        for ci, cell in enumerate(row[:ncols]):
            if not cell:
                need = EMPTY_CELL_WIDTH
            else:
                tw = measurer.text_width(cell, fs)
                need = math.ceil(tw + max(MIN_CELL_PADDING, tw * CELL_PADDING_RATIO))
            widths[ci] = max(widths[ci], need)
    widths = [max(min_width, min(max_width, w)) for w in widths]
    if sum(widths) <= max_total:
        return widths

    pinned = set()
    while True:
        free = [i for i in range(ncols) if i not in pinned]
        budget = max_total - min_width * len(pinned)
        free_total = sum(widths[i] for i in free)
        if not free or free_total <= budget:
            break
        scale = budget / free_total
        newly_pinned = [i for i in free if math.floor(widths[i] * scale) < min_width]
        if not newly_pinned:
            for i in free:
                widths[i] = math.floor(widths[i] * scale)
            break
        for i in newly_pinned:
            widths[i] = min_width
            pinned.add(i)
    return widths


def wrap_cell_text(text: str, col_width: float, font_size: float) -> str:
    """Greedy word wrap against the column's usable width.

    Words longer than a full line are cut into line-sized pieces.
    """
    if not text:
        return ''
    max_chars = max(1, int((col_width - WRAP_MARGIN) // (font_size * WRAP_FACTOR)))
    if len(text) <= max_chars:
        return text
    lines: List[str] = []
    current = ''
    for word in text.split(' '):
        candidate = f"{current} {word}" if current else word
        if len(candidate) <= max_chars:
            current = candidate
            continue
        if current:
            lines.append(current)
            current = ''
        while len(word) > max_chars:
            lines.append(word[:max_chars])
            word = word[max_chars:]
        current = word
    if current:
        lines.append(current)
    return '\n'.join(lines)


def compute_row_heights(rows: Sequence[Sequence[str]], col_widths: Sequence[float]) -> List[float]:
    heights: List[float] = []
    ncols = len(col_widths)
    for ri, row in enumerate(rows):
        fs = font_size_for_row(ri)
        h = float(BASE_ROW_HEIGHT)
        for ci, cell in enumerate(row[:ncols]):
            n_lines = wrap_cell_text(cell or '', col_widths[ci], fs).count('\n') + 1
            h = max(h, n_lines * fs * LINE_HEIGHT + ROW_CONTENT_PADDING)
        heights.append(h)
    return heights


def build_table_grid_from_rows(
    rows: Sequence[Sequence[str]],
    origin_x: float,
    origin_y: float,
    measurer=None,
    ids: Optional[IdFactory] = None,
) -> List[Primitive]:
    """Lay out already-split rows. Fewer than two rows yields nothing."""
    if len(rows) < 2:
        return []
    return _emit_grid(rows, origin_x, origin_y, measurer, ids)


def _emit_grid(rows, origin_x, origin_y, measurer=None, ids=None) -> List[Primitive]:
    """Emit a rectangle and a centered text per cell, header row first."""
    rows = [list(r) for r in rows if r is not None]
    if not rows or not rows[0]:
        return []
    ids = ids or IdFactory()
    col_widths = compute_column_widths(rows, measurer)
    row_heights = compute_row_heights(rows, col_widths)
    row_ys = []
    y = origin_y
    for h in row_heights:
        row_ys.append(y)
        y += h

    out: List[Primitive] = []
    for ri, row in enumerate(rows):
        fs = font_size_for_row(ri)
        x = origin_x
        rh = row_heights[ri]
        ry = row_ys[ri]
        for ci, cell in enumerate(row[: len(col_widths)]):
            cw = col_widths[ci]
            out.append(
                RectanglePrimitive(
                    id=ids.next(f"table-cell-{ri}-{ci}"),
                    x=x,
                    y=ry,
                    width=cw,
                    height=rh,
                    stroke_color=GRID_STROKE,
                    background_color=HEADER_FILL if ri == 0 else BODY_FILL,
                )
            )
            wrapped = wrap_cell_text(cell or '', cw, fs)
            n_lines = wrapped.count('\n') + 1
            out.append(
                TextPrimitive(
                    id=ids.next(f"table-text-{ri}-{ci}"),
                    x=x + cw / 2,
                    y=ry + rh / 2,
                    width=cw - TEXT_INSET,
                    height=fs * TEXT_LINE_HEIGHT * n_lines,
                    stroke_color=GRID_STROKE,
                    stroke_width=2,
                    text=wrapped,
                    font_size=fs,
                    text_align='center',
                    vertical_align='middle',
                )
            )
            x += cw
    return out


def build_table_grid(
    markdown: str,
    origin_x: float,
    origin_y: float,
    measurer=None,
    ids: Optional[IdFactory] = None,
) -> List[Primitive]:
    """Lay out a pipe table. Fewer than two non-blank lines yields nothing."""
    lines = [ln for ln in (markdown or '').strip().split('\n') if ln.strip()]
    if len(lines) < 2:
        return []
    return _emit_grid(parse_table_markdown(markdown), origin_x, origin_y, measurer, ids)


def table_height(primitives: Sequence[Primitive]) -> float:
    """Vertical span of the cell rectangles (0 when there are none)."""
    rects = [p for p in primitives if isinstance(p, RectanglePrimitive)]
    if not rects:
        return 0.0
    return max(r.bottom() for r in rects) - min(r.y for r in rects)
