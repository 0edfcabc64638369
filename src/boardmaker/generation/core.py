"""Document tree to positioned primitives.

``DocumentWalker`` visits nodes depth-first and keeps a single vertical cursor.
Every node finishes (including any awaited rasterization or diagram parse)
before the next one starts, so positions depend only on document order.
Recoverable failures never stop a pass: they become red text on the canvas,
a ``ValidationIssue`` in the result and a ``UserWarning``.
"""

import asyncio
import warnings
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from ..diagrams.adapter import DiagramLayoutAdapter
from ..diagrams.converter import LayeredGraphConverter
from ..diagrams.flowchart import FlowchartParser
from ..diagrams.preprocess import preprocess_diagram_code
from ..equations import SVG_MIME, EquationRasterizer, MathEngine, to_data_url
from ..fonts import load_measurer
from ..host import origin_from_app_state, to_native_elements
from ..nodes import (
    Generic,
    Heading,
    Html,
    ListItem,
    ListNode,
    Node,
    Paragraph,
    Root,
    Table,
    TableCell,
    TableRow,
    Text,
    ThematicBreak,
    collect_text,
)
from ..primitives import (
    Clock,
    FileAsset,
    IdFactory,
    Primitive,
    RectanglePrimitive,
    TextPrimitive,
    now_ms,
    primitives_to_json,
)
from ..segments import EQUATION, has_markers, segment_text
from ..table_render import build_table_grid, build_table_grid_from_rows, clean_cell, html_table_to_markdown, table_height
from ..utils.text_helpers import PLACEHOLDER_RE, placeholder_index, strip_tags
from ..validation import ValidationIssue
from . import html_dispatch
from .elements import NOTICE_COLOR, ElementFactory
from .layout import LayoutCursor, LayoutSettings

Pacer = Callable[[int], Awaitable[None]]


async def no_pacing(section_index: int) -> None:
    return None


def fixed_delay(seconds: float) -> Pacer:
    """Pause between top-level sections so a live canvas fills in gradually."""

    async def _pace(section_index: int) -> None:
        await asyncio.sleep(seconds)

    return _pace


@dataclass
class LayoutResult:
    primitives: List[Primitive] = field(default_factory=list)
    files: Dict[str, FileAsset] = field(default_factory=dict)
    cursor: float = 0.0
    issues: List[ValidationIssue] = field(default_factory=list)
    section_starts: List[float] = field(default_factory=list)

    def to_json(self) -> Dict[str, Any]:
        data = primitives_to_json(self.primitives, self.files)
        data['cursor'] = self.cursor
        data['sectionStarts'] = list(self.section_starts)
        data['issues'] = [
            {'path': i.path, 'message': i.message, 'severity': i.severity} for i in self.issues
        ]
        return data


class DocumentWalker:
    def __init__(
        self,
        settings: Optional[LayoutSettings] = None,
        table_blocks: Optional[Sequence[str]] = None,
        rasterizer: Optional[EquationRasterizer] = None,
        parser=None,
        converter=None,
        measurer=None,
        ids: Optional[IdFactory] = None,
        clock: Clock = now_ms,
    ):
        self.settings = settings or LayoutSettings()
        self.table_blocks = list(table_blocks or [])
        self.ids = ids or IdFactory()
        self.clock = clock
        self.measurer = measurer or load_measurer(self.settings.font_file)
        if rasterizer is None and self.settings.equations:
            rasterizer = EquationRasterizer(MathEngine(), self.settings.equation_timeout or None)
        self.rasterizer = rasterizer
        self.parser = parser or FlowchartParser()
        self.adapter = DiagramLayoutAdapter(
            converter or LayeredGraphConverter(self.settings.spacing, ids=self.ids)
        )
        self.elements = ElementFactory(self.ids)
        self.cursor = LayoutCursor(self.settings.start_y)
        self.files: Dict[str, FileAsset] = {}
        self.issues: List[ValidationIssue] = []
        self.handlers = {
            Root: self._root,
            Heading: self._heading,
            Paragraph: self._paragraph,
            ListNode: self._list,
            ListItem: self._list_item,
            Table: self._table,
            TableRow: self._container,
            TableCell: self._container,
            ThematicBreak: self._thematic_break,
            Html: self._html,
            Text: self._text,
            Generic: self._container,
        }
        self.html_handlers = {
            html_dispatch.DIAGRAM: self._html_diagram,
            html_dispatch.EQUATION: self._html_equation,
            html_dispatch.TABLE: self._html_table,
            html_dispatch.PLAIN: self._html_plain,
        }

    # -- helpers -------------------------------------------------------

    def _x(self, depth: int) -> float:
        return self.settings.start_x + depth * self.settings.indent

    def _record(self, path: str, message: str) -> None:
        self.issues.append(ValidationIssue(path=path, message=message, severity='warn'))
        warnings.warn(f"{path}: {message}", UserWarning)

    def _add_file(self, file_id: str, data: bytes, mime_type: str) -> None:
        self.files[file_id] = FileAsset(
            id=file_id, data_url=to_data_url(data, mime_type), mime_type=mime_type, created=self.clock()
        )

    async def _rasterize(self, markup: str, path: str) -> Optional[bytes]:
        if self.rasterizer is None:
            self._record(path, f"Equation rendering disabled: {markup}")
            return None
        data = await self.rasterizer.render(markup)
        if data is None:
            reason = getattr(self.rasterizer, 'last_error', None) or 'no output'
            self._record(path, f"Equation failed ({reason}): {markup}")
        return data

    def _advance_for_table(self, grid: List[Primitive]) -> None:
        has_rects = any(isinstance(p, RectanglePrimitive) for p in grid)
        has_text = any(isinstance(p, TextPrimitive) for p in grid)
        if has_rects and has_text:
            self.cursor.advance(table_height(grid) + 30)
        else:
            self.cursor.advance(200)

    # -- traversal -----------------------------------------------------

    async def walk(self, node: Node, depth: int = 0, path: str = '/') -> List[Primitive]:
        handler = self.handlers.get(type(node))
        if handler is None:
            raise TypeError(f"No layout handler for {type(node).__name__}")
        return await handler(node, depth, path)

    async def _walk_children(self, node: Node, depth: int, path: str) -> List[Primitive]:
        out: List[Primitive] = []
        for i, child in enumerate(node.children):
            out.extend(await self.walk(child, depth, f"{path.rstrip('/')}/children/{i}"))
        return out

    async def _root(self, node: Root, depth: int, path: str) -> List[Primitive]:
        return await self._walk_children(node, depth, path)

    async def _container(self, node: Node, depth: int, path: str) -> List[Primitive]:
        return await self._walk_children(node, depth + 1, path)

    async def _heading(self, node: Heading, depth: int, path: str) -> List[Primitive]:
        fs = max(12, 20 - 2 * node.depth)
        prim = self.elements.text(
            'heading', self._x(depth), self.cursor.current_y, collect_text(node), 200, fs + 10, font_size=fs
        )
        self.cursor.advance(fs + 20)
        return [prim]

    async def _paragraph(self, node: Paragraph, depth: int, path: str) -> List[Primitive]:
        tag = self.settings.equation_tag
        has_html = any(isinstance(c, Html) for c in node.children)
        text = collect_text(node)
        if not has_html:
            idx = placeholder_index(text)
            if idx is not None:
                return await self._table_block(idx, depth, path)
        mixed = has_html or any(
            has_markers(collect_text(c), tag) for c in node.children
        )
        if not mixed:
            if not text.strip():
                return []
            prim = self.elements.text('text', self._x(depth), self.cursor.current_y, text, 400, 30)
            self.cursor.advance(30)
            return [prim]

        out: List[Primitive] = []
        for i, child in enumerate(node.children):
            cpath = f"{path.rstrip('/')}/children/{i}"
            if isinstance(child, Html):
                out.extend(await self._html(child, depth, cpath))
                continue
            for seg in segment_text(collect_text(child), tag):
                x = self._x(depth)
                if seg.kind == EQUATION:
                    data = await self._rasterize(seg.content, cpath)
                    if data is not None:
                        img = self.elements.image(x, self.cursor.current_y, 200, 40)
                        self._add_file(img.file_id, data, getattr(self.rasterizer, 'mime_type', SVG_MIME))
                        out.append(img)
                        self.cursor.advance(50)
                    else:
                        out.append(
                            self.elements.error(
                                'equation-error', x, self.cursor.current_y,
                                f"LaTeX Error: {seg.content}", font_size=14, height=20,
                            )
                        )
                        self.cursor.advance(25)
                elif seg.content.strip():
                    out.append(self.elements.text('text', x, self.cursor.current_y, seg.content, 400, 20))
                    self.cursor.advance(25)
        return out

    async def _list(self, node: ListNode, depth: int, path: str) -> List[Primitive]:
        out: List[Primitive] = []
        start = node.start if node.start is not None else 1
        for i, child in enumerate(node.children):
            cpath = f"{path.rstrip('/')}/children/{i}"
            if isinstance(child, ListItem):
                marker = f"{start + i}. " if node.ordered else '- '
                out.extend(await self._list_item(child, depth + 1, cpath, marker))
            else:
                out.extend(await self.walk(child, depth + 1, cpath))
        return out

    async def _list_item(self, node: ListItem, depth: int, path: str, marker: str = '- ') -> List[Primitive]:
        parts = [collect_text(c).strip() for c in node.children if not isinstance(c, ListNode)]
        text = ' '.join(p for p in parts if p)
        out: List[Primitive] = [
            self.elements.text('listitem', self._x(depth), self.cursor.current_y, marker + text, 350, 30)
        ]
        self.cursor.advance(30)
        # Nested lists keep their own markers one indent further in
        for i, child in enumerate(node.children):
            if isinstance(child, ListNode):
                out.extend(await self._list(child, depth, f"{path.rstrip('/')}/children/{i}"))
        return out

    async def _table(self, node: Table, depth: int, path: str) -> List[Primitive]:
        if not node.children:
            return []
        rows = [[clean_cell(collect_text(cell)) for cell in row.children] for row in node.children]
        grid = build_table_grid_from_rows(
            rows, self._x(depth), self.cursor.current_y, measurer=self.measurer, ids=self.ids
        )
        self._advance_for_table(grid)
        return grid

    async def _thematic_break(self, node: ThematicBreak, depth: int, path: str) -> List[Primitive]:
        prim = self.elements.rule(self._x(depth), self.cursor.current_y + 10)
        self.cursor.advance(30)
        return [prim]

    async def _text(self, node: Text, depth: int, path: str) -> List[Primitive]:
        m = PLACEHOLDER_RE.search(node.value)
        if m:
            return await self._table_block(int(m.group(1)), depth, path)
        if not node.value.strip():
            return []
        prim = self.elements.text('text', self._x(depth), self.cursor.current_y, node.value, 300, 30)
        self.cursor.advance(30)
        return [prim]

    async def _table_block(self, index: int, depth: int, path: str) -> List[Primitive]:
        if index >= len(self.table_blocks):
            self._record(path, f"Table block {index} not found ({len(self.table_blocks)} available)")
            return []
        return self._emit_html_table(self.table_blocks[index], depth, path)

    # -- html ------------------------------------------------------------

    async def _html(self, node: Html, depth: int, path: str) -> List[Primitive]:
        kind = html_dispatch.classify_html(
            node.value, self.settings.diagram_tag, self.settings.equation_tag
        )
        return await self.html_handlers[kind](node.value.strip(), depth, path)

    async def _html_diagram(self, value: str, depth: int, path: str) -> List[Primitive]:
        code = preprocess_diagram_code(html_dispatch.unwrap(value, self.settings.diagram_tag))
        x = self._x(depth)
        y = self.cursor.current_y
        try:
            graph = await asyncio.wait_for(
                self.parser.parse(code), self.settings.diagram_timeout or None
            )
            placed = self.adapter.place(graph, x, y)
        except asyncio.TimeoutError:
            message = f"timed out after {self.settings.diagram_timeout}s"
        except Exception as e:
            message = str(e) or type(e).__name__
        else:
            if not placed.primitives:
                self._record(path, 'Diagram produced no elements')
                prim = self.elements.text(
                    'diagram-empty', x, y, 'Diagram (no elements generated)', 400, 30,
                    font_size=16, color=NOTICE_COLOR,
                )
                self.cursor.advance(50)
                return [prim]
            self.files.update(placed.files)
            self.cursor.advance_to(placed.bottom + 50)
            return list(placed.primitives)
        self._record(path, f"Diagram failed: {message}")
        prim = self.elements.error('diagram-error', x, y, f"Error rendering diagram: {message}")
        self.cursor.advance(50)
        return [prim]

    async def _html_equation(self, value: str, depth: int, path: str) -> List[Primitive]:
        markup = html_dispatch.unwrap(value, self.settings.equation_tag)
        x = self._x(depth)
        data = await self._rasterize(markup, path)
        if data is None:
            prim = self.elements.error('equation-error', x, self.cursor.current_y, f"LaTeX Error: {markup}")
            self.cursor.advance(50)
            return [prim]
        img = self.elements.image(x, self.cursor.current_y, 400, 60)
        self._add_file(img.file_id, data, getattr(self.rasterizer, 'mime_type', SVG_MIME))
        self.cursor.advance(80)
        return [img]

    async def _html_table(self, value: str, depth: int, path: str) -> List[Primitive]:
        return self._emit_html_table(value, depth, path)

    def _emit_html_table(self, value: str, depth: int, path: str) -> List[Primitive]:
        markdown = html_table_to_markdown(value)
        x = self._x(depth)
        if not markdown.strip():
            self._record(path, 'Could not parse HTML table')
            prim = self.elements.error(
                'table-error', x, self.cursor.current_y, 'Error: Could not parse HTML table', font_size=14
            )
            self.cursor.advance(50)
            return [prim]
        grid = build_table_grid(markdown, x, self.cursor.current_y, measurer=self.measurer, ids=self.ids)
        self._advance_for_table(grid)
        return grid

    async def _html_plain(self, value: str, depth: int, path: str) -> List[Primitive]:
        text = strip_tags(value).strip()
        if not text:
            return []
        prim = self.elements.text('html-text', self._x(depth), self.cursor.current_y, text, 400, 30)
        self.cursor.advance(30)
        return [prim]

    def result(self, primitives: List[Primitive], section_starts=None) -> LayoutResult:
        return LayoutResult(
            primitives=primitives,
            files=dict(self.files),
            cursor=self.cursor.current_y,
            issues=list(self.issues),
            section_starts=list(section_starts or []),
        )


async def render_document(
    root: Root,
    settings: Optional[LayoutSettings] = None,
    *,
    table_blocks: Optional[Sequence[str]] = None,
    host=None,
    pacer: Optional[Pacer] = None,
    use_viewport: bool = False,
    **walker_kwargs,
) -> LayoutResult:
    """Lay out every top-level section of ``root`` in order.

    With a ``host`` each finished section is converted to host elements,
    appended to the existing scene and pushed before the next section
    starts. ``use_viewport`` takes the origin from the host's scroll
    position instead of the settings.
    """
    settings = settings or LayoutSettings()
    if host is not None and use_viewport:
        ox, oy = origin_from_app_state(host.get_app_state())
        settings = replace(settings, start_x=ox, start_y=oy)
    if pacer is None:
        pacer = fixed_delay(settings.pacing) if settings.pacing > 0 else no_pacing

    walker = DocumentWalker(settings, table_blocks=table_blocks, **walker_kwargs)
    primitives: List[Primitive] = []
    section_starts: List[float] = []
    scene = list(host.get_scene_elements()) if host is not None else []
    pushed_files = set()

    for i, child in enumerate(root.children):
        section_starts.append(walker.cursor.current_y)
        section = await walker.walk(child, 0, f"/children/{i}")
        primitives.extend(section)
        if host is not None:
            new_files = [f for k, f in walker.files.items() if k not in pushed_files]
            if new_files:
                host.add_files(new_files)
                pushed_files.update(f.id for f in new_files)
            scene = scene + to_native_elements(section)
            host.update_scene(scene)
        await pacer(i)

    return walker.result(primitives, section_starts)
