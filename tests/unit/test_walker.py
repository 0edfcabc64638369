#!/usr/bin/env python3
"""Unit tests for the document walker and the top-level render pass"""

import asyncio
import os
import sys
import unittest
import warnings

PROJECT_ROOT = os.path.join(os.path.dirname(__file__), '..', '..')
sys.path.insert(0, os.path.join(PROJECT_ROOT, 'src'))
from boardmaker.diagrams import DiagramGraph
from boardmaker.generation import (
    ERROR_COLOR,
    NOTICE_COLOR,
    DocumentWalker,
    LayoutSettings,
    render_document,
)
from boardmaker.host import SceneHost
from boardmaker.nodes import (
    NODE_CLASSES,
    Generic,
    Heading,
    Html,
    ListItem,
    ListNode,
    Paragraph,
    Root,
    Table,
    TableCell,
    TableRow,
    Text,
    ThematicBreak,
)
from boardmaker.primitives import ImagePrimitive, LinePrimitive, RectanglePrimitive, TextPrimitive

TABLE_HTML = '<tr><th>A</th><th>B</th></tr><tr><td>1</td><td>2</td></tr>'


class FailingRasterizer:
    mime_type = 'image/svg+xml'
    last_error = 'bad markup'

    async def render(self, markup):
        return None


class StubRasterizer:
    mime_type = 'image/svg+xml'
    last_error = None

    def __init__(self):
        self.calls = []

    async def render(self, markup):
        self.calls.append(markup)
        return b'<svg/>'


class SlowParser:
    async def parse(self, code):
        await asyncio.sleep(1)
        return DiagramGraph()


class EmptyParser:
    async def parse(self, code):
        return DiagramGraph()


def para(text):
    return Paragraph(children=(Text(value=text),))


def cell_row(*cells):
    return TableRow(children=tuple(TableCell(children=(Text(value=c),)) for c in cells))


class WalkerTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._warnings = warnings.catch_warnings()
        self._warnings.__enter__()
        warnings.simplefilter('ignore', UserWarning)

    def tearDown(self):
        self._warnings.__exit__(None, None, None)

    def walker(self, rasterizer=None, **kwargs):
        settings = kwargs.pop('settings', LayoutSettings())
        return DocumentWalker(settings, rasterizer=rasterizer or StubRasterizer(), **kwargs)


class TestHandlers(WalkerTestCase):
    def test_every_node_class_has_a_handler(self):
        w = self.walker()
        self.assertEqual(set(w.handlers), set(NODE_CLASSES))

    async def test_unknown_node_type(self):
        class Stray(Text):
            pass

        with self.assertRaises(TypeError):
            await self.walker().walk(Stray(value='x'))


class TestBlocks(WalkerTestCase):
    async def test_heading_scenario(self):
        w = self.walker()
        prims = await w.walk(Heading(depth=1, children=(Text(value='Title'),)))
        self.assertEqual(len(prims), 1)
        self.assertEqual((prims[0].text, prims[0].font_size, prims[0].x, prims[0].y), ('Title', 18, 0, 0))
        self.assertEqual(w.cursor.current_y, 38)

    async def test_heading_sizes(self):
        w = self.walker()
        sizes = []
        for depth in (1, 3, 6):
            sizes.append((await w.walk(Heading(depth=depth, children=(Text(value='h'),))))[0].font_size)
        self.assertEqual(sizes, [18, 14, 12])

    async def test_plain_paragraph(self):
        w = self.walker()
        prims = await w.walk(para('Hello world'))
        self.assertEqual(prims[0].text, 'Hello world')
        self.assertEqual((prims[0].width, prims[0].height), (400, 30))
        self.assertEqual(w.cursor.current_y, 30)

    async def test_blank_paragraph_is_noop(self):
        w = self.walker()
        self.assertEqual(await w.walk(para('   ')), [])
        self.assertEqual(w.cursor.current_y, 0)

    async def test_failing_rasterizer_paragraph(self):
        w = self.walker(FailingRasterizer())
        prims = await w.walk(para('Energy: <equation>E=mc^2</equation> is conserved.'))
        self.assertEqual([p.text for p in prims], ['Energy: ', 'LaTeX Error: E=mc^2', ' is conserved.'])
        ys = [p.y for p in prims]
        self.assertEqual(ys, sorted(set(ys)))
        self.assertEqual(prims[1].stroke_color, ERROR_COLOR)
        self.assertEqual(w.cursor.current_y, 75)
        self.assertEqual(len(w.issues), 1)
        self.assertIn('bad markup', w.issues[0].message)

    async def test_inline_equation_image(self):
        raster = StubRasterizer()
        w = self.walker(raster)
        prims = await w.walk(para('a <equation>x^2</equation>'))
        self.assertIsInstance(prims[1], ImagePrimitive)
        self.assertEqual((prims[1].width, prims[1].height), (200, 40))
        self.assertIn(prims[1].file_id, w.files)
        self.assertTrue(w.files[prims[1].file_id].data_url.startswith('data:image/svg+xml;base64,'))
        self.assertEqual(raster.calls, ['x^2'])
        self.assertEqual(w.cursor.current_y, 75)

    async def test_equations_disabled(self):
        w = DocumentWalker(LayoutSettings(equations=False))
        self.assertIsNone(w.rasterizer)
        prims = await w.walk(Html(value='<equation>x</equation>'))
        self.assertEqual(prims[0].text, 'LaTeX Error: x')
        self.assertIn('disabled', w.issues[0].message)

    async def test_list_markers_and_indent(self):
        w = self.walker()
        lst = ListNode(
            ordered=True,
            start=3,
            children=(
                ListItem(children=(para('first'),)),
                ListItem(
                    children=(
                        para('second'),
                        ListNode(children=(ListItem(children=(para('inner'),)),)),
                    )
                ),
            ),
        )
        prims = await w.walk(lst)
        self.assertEqual([p.text for p in prims], ['3. first', '4. second', '- inner'])
        self.assertEqual([p.x for p in prims], [20, 20, 40])
        self.assertEqual(w.cursor.current_y, 90)

    async def test_thematic_break(self):
        w = self.walker()
        prims = await w.walk(ThematicBreak())
        self.assertIsInstance(prims[0], LinePrimitive)
        self.assertEqual(prims[0].y, 10)
        self.assertEqual(w.cursor.current_y, 30)

    async def test_table_node(self):
        w = self.walker()
        prims = await w.walk(Table(children=(cell_row('A', 'B'), cell_row('1', '2'))))
        self.assertEqual(len([p for p in prims if isinstance(p, RectanglePrimitive)]), 4)
        self.assertEqual(w.cursor.current_y, 120 + 30)

    async def test_zero_row_table_is_noop(self):
        w = self.walker()
        self.assertEqual(await w.walk(Table()), [])
        self.assertEqual(w.cursor.current_y, 0)

    async def test_single_row_table_reserves_space(self):
        w = self.walker()
        self.assertEqual(await w.walk(Table(children=(cell_row('A'),))), [])
        self.assertEqual(w.cursor.current_y, 200)

    async def test_generic_descends_one_level(self):
        w = self.walker()
        node = Generic(kind='blockquote', children=(Text(value='quoted'),))
        prims = await w.walk(node)
        self.assertEqual((prims[0].text, prims[0].x), ('quoted', 20))


class TestTableBlocks(WalkerTestCase):
    async def test_placeholder_text(self):
        w = self.walker(table_blocks=[TABLE_HTML])
        prims = await w.walk(Text(value='__TABLE_BLOCK_0__'))
        self.assertEqual(len(prims), 8)
        self.assertEqual(w.cursor.current_y, 150)

    async def test_placeholder_paragraph(self):
        w = self.walker(table_blocks=[TABLE_HTML])
        prims = await w.walk(para('  __TABLE_BLOCK_0__ '))
        self.assertEqual(len(prims), 8)

    async def test_missing_block(self):
        w = self.walker(table_blocks=[])
        self.assertEqual(await w.walk(Text(value='__TABLE_BLOCK_4__')), [])
        self.assertEqual(w.cursor.current_y, 0)
        self.assertIn('Table block 4 not found', w.issues[0].message)

    async def test_unparseable_html_table(self):
        w = self.walker()
        prims = await w.walk(Html(value='<table></table>'))
        self.assertEqual(prims[0].text, 'Error: Could not parse HTML table')
        self.assertEqual(w.cursor.current_y, 50)


class TestHtml(WalkerTestCase):
    async def test_block_equation(self):
        w = self.walker()
        prims = await w.walk(Html(value='<equation>E=mc^2</equation>'))
        self.assertEqual((prims[0].width, prims[0].height), (400, 60))
        self.assertEqual(w.cursor.current_y, 80)

    async def test_block_equation_mixed_case_tag(self):
        raster = StubRasterizer()
        w = self.walker(raster)
        prims = await w.walk(Html(value='<Equation>E=mc^2</Equation>'))
        self.assertIsInstance(prims[0], ImagePrimitive)
        self.assertEqual(raster.calls, ['E=mc^2'])

    async def test_block_equation_failure(self):
        w = self.walker(FailingRasterizer())
        prims = await w.walk(Html(value='<equation>\\bad</equation>'))
        self.assertEqual(prims[0].text, 'LaTeX Error: \\bad')
        self.assertEqual(w.cursor.current_y, 50)

    async def test_diagram(self):
        w = self.walker()
        prims = await w.walk(Html(value='<mermaid>\ngraph TD\nA[Start] --> B[End]\n</mermaid>'))
        self.assertEqual(len(prims), 5)
        labels = [p.text for p in prims if isinstance(p, TextPrimitive)]
        self.assertEqual(labels, ['Start', 'End'])
        self.assertEqual(w.cursor.current_y, 200)

    async def test_diagram_is_offset(self):
        w = self.walker()
        await w.walk(para('before'))
        prims = await w.walk(Html(value='<mermaid>graph TD\nA --> B</mermaid>'), depth=1)
        rects = [p for p in prims if isinstance(p, RectanglePrimitive)]
        self.assertEqual((rects[0].x, rects[0].y), (20, 30))

    async def test_diagram_error(self):
        w = self.walker()
        prims = await w.walk(Html(value='<mermaid>sequenceDiagram\nA->>B: hi</mermaid>'))
        self.assertEqual(len(prims), 1)
        self.assertTrue(prims[0].text.startswith('Error rendering diagram: Unsupported diagram type'))
        self.assertEqual(prims[0].stroke_color, ERROR_COLOR)
        self.assertEqual(w.cursor.current_y, 50)

    async def test_diagram_timeout(self):
        w = self.walker(parser=SlowParser(), settings=LayoutSettings(diagram_timeout=0.01))
        prims = await w.walk(Html(value='<mermaid>graph TD\nA --> B</mermaid>'))
        self.assertIn('timed out', prims[0].text)
        self.assertEqual(w.cursor.current_y, 50)

    async def test_empty_diagram(self):
        w = self.walker(parser=EmptyParser())
        prims = await w.walk(Html(value='<mermaid>graph TD</mermaid>'))
        self.assertEqual(prims[0].text, 'Diagram (no elements generated)')
        self.assertEqual(prims[0].stroke_color, NOTICE_COLOR)
        self.assertEqual(w.cursor.current_y, 50)

    async def test_plain_html(self):
        w = self.walker()
        prims = await w.walk(Html(value='<p>Some <b>bold</b> text</p>'))
        self.assertEqual(prims[0].text, 'Some bold text')
        self.assertEqual(await w.walk(Html(value='<br/>')), [])
        self.assertEqual(w.cursor.current_y, 30)

    async def test_mixed_paragraph_with_inline_diagram(self):
        w = self.walker()
        node = Paragraph(
            children=(
                Text(value='See '),
                Html(value='<mermaid>graph TD\nA --> B</mermaid>'),
                Text(value=' and <equation>y</equation>'),
            )
        )
        prims = await w.walk(node)
        kinds = [type(p).__name__ for p in prims]
        self.assertEqual(kinds[0], 'TextPrimitive')
        self.assertIn('RectanglePrimitive', kinds)
        self.assertEqual(kinds[-1], 'ImagePrimitive')


class TestRenderDocument(WalkerTestCase):
    def doc(self):
        return Root(
            children=(
                Heading(depth=2, children=(Text(value='Intro'),)),
                para('Energy: <equation>E</equation> here.'),
                Html(value='<mermaid>graph TD\nA --> B</mermaid>'),
                Text(value='__TABLE_BLOCK_0__'),
                ThematicBreak(),
                Html(value='<mermaid>pie\n"a": 1</mermaid>'),
            )
        )

    async def test_sections_monotonic(self):
        result = await render_document(
            self.doc(), table_blocks=[TABLE_HTML], rasterizer=FailingRasterizer()
        )
        starts = result.section_starts
        self.assertEqual(len(starts), 6)
        self.assertEqual(starts, sorted(starts))
        self.assertEqual(starts[0], 0)
        self.assertGreater(result.cursor, starts[-1])
        ids = [p.id for p in result.primitives]
        self.assertEqual(len(ids), len(set(ids)))

    async def test_deterministic(self):
        first = await render_document(self.doc(), table_blocks=[TABLE_HTML], rasterizer=StubRasterizer(), clock=lambda: 0)
        second = await render_document(self.doc(), table_blocks=[TABLE_HTML], rasterizer=StubRasterizer(), clock=lambda: 0)
        self.assertEqual(first.to_json(), second.to_json())

    async def test_host_updates_per_section(self):
        host = SceneHost(elements=[{'id': 'existing'}])
        paced = []

        async def pacer(i):
            paced.append((i, len(host.get_scene_elements())))

        result = await render_document(
            self.doc(), table_blocks=[TABLE_HTML], host=host, pacer=pacer, rasterizer=StubRasterizer()
        )
        self.assertEqual(host.update_count, 6)
        self.assertEqual([i for i, _ in paced], list(range(6)))
        counts = [n for _, n in paced]
        self.assertEqual(counts, sorted(counts))
        self.assertEqual(len(host.elements), len(result.primitives) + 1)
        self.assertEqual(host.elements[0], {'id': 'existing'})
        self.assertEqual(set(host.files), set(result.files))

    async def test_viewport_origin(self):
        host = SceneHost({'scrollX': 0, 'scrollY': 100, 'width': 1000})
        result = await render_document(
            Root(children=(para('hi'),)), host=host, use_viewport=True, rasterizer=StubRasterizer()
        )
        self.assertEqual((result.primitives[0].x, result.primitives[0].y), (300, 150))

    async def test_issues_in_json(self):
        result = await render_document(self.doc(), table_blocks=[TABLE_HTML], rasterizer=FailingRasterizer())
        data = result.to_json()
        self.assertEqual(len(data['issues']), 2)
        self.assertEqual(data['issues'][0]['path'], '/children/1/children/0')
        self.assertEqual(data['issues'][1]['path'], '/children/5')
        self.assertEqual(data['cursor'], result.cursor)


if __name__ == '__main__':
    unittest.main()
