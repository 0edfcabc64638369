#!/usr/bin/env python3
"""Unit tests for flowchart parsing, layered conversion, placement and mindmaps"""

import asyncio
import os
import sys
import unittest
from dataclasses import dataclass
from typing import Optional

PROJECT_ROOT = os.path.join(os.path.dirname(__file__), '..', '..')
sys.path.insert(0, os.path.join(PROJECT_ROOT, 'src'))
from boardmaker.diagrams import (
    ConvertedDiagram,
    DiagramGraph,
    DiagramLayoutAdapter,
    FlowchartParser,
    LayeredGraphConverter,
    mindmap_to_diagram,
    parse_flowchart,
    preprocess_diagram_code,
    rank_nodes,
    split_statements,
)
from boardmaker.diagrams.flowchart import DiagramEdge, DiagramNode
from boardmaker.primitives import LinePrimitive, RectanglePrimitive, TextPrimitive


class TestFlowchartParser(unittest.TestCase):
    def test_shapes_groups_and_labels(self):
        g = parse_flowchart(
            'graph LR\n'
            'A[Start] -->|go| B(Next) & C{Choice}\n'
            'B --> D\n'
            'classDef hot fill:#f00\n'
            'style A fill:#f00'
        )
        self.assertEqual(g.direction, 'LR')
        self.assertEqual(list(g.nodes), ['A', 'B', 'C', 'D'])
        self.assertEqual(g.nodes['A'], DiagramNode('A', 'Start', 'rectangle'))
        self.assertEqual(g.nodes['B'].shape, 'rounded')
        self.assertEqual(g.nodes['C'].shape, 'diamond')
        self.assertEqual(g.nodes['D'].label, 'D')
        self.assertEqual(
            [(e.source, e.target, e.label) for e in g.edges],
            [('A', 'B', 'go'), ('A', 'C', 'go'), ('B', 'D', None)],
        )

    def test_arrow_styles(self):
        g = parse_flowchart('flowchart TD\nA -.-> B\nB ==> C\nC --- D\nD -- yes --> E')
        styles = [(e.style, e.arrow_end, e.label) for e in g.edges]
        self.assertEqual(
            styles,
            [('dotted', True, None), ('thick', True, None), ('solid', False, None), ('solid', True, 'yes')],
        )

    def test_compact_syntax_and_chains(self):
        g = parse_flowchart('graph TD; A-->B-->C; my-node --> A')
        self.assertEqual(
            [(e.source, e.target) for e in g.edges], [('A', 'B'), ('B', 'C'), ('my-node', 'A')]
        )

    def test_preprocessed_labels_are_unquoted(self):
        code = preprocess_diagram_code('graph TD\nA[a & b] --> B{Is it ok?}')
        g = parse_flowchart(code)
        self.assertEqual(g.nodes['A'].label, 'a & b')
        self.assertEqual(g.nodes['B'].label, 'Is it ok?')

    def test_escaped_labels_survive_parsing(self):
        code = preprocess_diagram_code(
            "graph TD\nA[Newton's law] --> B[Salt & Water]\n"
            'B -->|a & b| C{x < y}\nC --> D[say "hi"]'
        )
        g = parse_flowchart(code)
        self.assertEqual(
            {k: n.label for k, n in g.nodes.items()},
            {'A': "Newton's law", 'B': 'Salt & Water', 'C': 'x < y', 'D': 'say "hi"'},
        )
        self.assertEqual(
            [(e.source, e.target, e.label) for e in g.edges],
            [('A', 'B', None), ('B', 'C', 'a & b'), ('C', 'D', None)],
        )

    def test_split_statements_keeps_labels_whole(self):
        self.assertEqual(
            split_statements('graph TD; A["a &amp; b"] --> B;B -->|x;y| C\nC --> D[p;q]'),
            ['graph TD', ' A["a &amp; b"] --> B', 'B -->|x;y| C', 'C --> D[p;q]'],
        )

    def test_headers(self):
        self.assertEqual(parse_flowchart('flowchart\nA --> B').direction, 'TD')
        self.assertEqual(parse_flowchart('graph TB\nA --> B').direction, 'TD')
        with self.assertRaises(ValueError):
            parse_flowchart('')
        with self.assertRaises(ValueError) as cm:
            parse_flowchart('sequenceDiagram\nA->>B: hi')
        self.assertIn('Unsupported diagram type', str(cm.exception))
        with self.assertRaises(ValueError) as cm:
            parse_flowchart('hello world')
        self.assertIn('Invalid diagram header', str(cm.exception))

    def test_async_parser(self):
        g = asyncio.run(FlowchartParser().parse('graph TD\nA --> B'))
        self.assertEqual(len(g.edges), 1)


def _graph(direction, edges):
    g = DiagramGraph(direction=direction)
    for s, t in edges:
        for n in (s, t):
            g.nodes.setdefault(n, DiagramNode(n, n))
        g.edges.append(DiagramEdge(s, t))
    return g


class TestConverter(unittest.TestCase):
    def _rects(self, converted):
        return {p.id: p for p in converted.primitives if isinstance(p, RectanglePrimitive)}

    def test_top_down(self):
        out = LayeredGraphConverter().convert(_graph('TD', [('A', 'B')]))
        rects = [p for p in out.primitives if isinstance(p, RectanglePrimitive)]
        lines = [p for p in out.primitives if isinstance(p, LinePrimitive)]
        labels = [p for p in out.primitives if isinstance(p, TextPrimitive)]
        self.assertEqual([(r.x, r.y, r.width, r.height) for r in rects], [(0, 0, 120, 50), (0, 100, 120, 50)])
        self.assertEqual([t.text for t in labels], ['A', 'B'])
        self.assertEqual(len(lines), 1)
        self.assertEqual((lines[0].x, lines[0].y), (60, 50))
        self.assertEqual(lines[0].points, ((0, 0), (0, 50)))

    def test_left_right_and_bottom_top(self):
        lr = [p for p in LayeredGraphConverter().convert(_graph('LR', [('A', 'B')])).primitives
              if isinstance(p, RectanglePrimitive)]
        self.assertEqual([(r.x, r.y) for r in lr], [(0, 0), (170, 0)])
        bt = [p for p in LayeredGraphConverter().convert(_graph('BT', [('A', 'B')])).primitives
              if isinstance(p, RectanglePrimitive)]
        self.assertEqual([(r.x, r.y) for r in bt], [(0, 100), (0, 0)])

    def test_spacing_presets(self):
        out = LayeredGraphConverter('LOOSE').convert(_graph('TD', [('A', 'B')]))
        rects = [p for p in out.primitives if isinstance(p, RectanglePrimitive)]
        self.assertEqual(rects[1].y, 150)
        with self.assertRaises(ValueError):
            LayeredGraphConverter('HUGE')

    def test_siblings_share_rank(self):
        out = LayeredGraphConverter().convert(_graph('TD', [('A', 'B'), ('A', 'C')]))
        rects = [p for p in out.primitives if isinstance(p, RectanglePrimitive)]
        self.assertEqual(rects[1].y, rects[2].y)
        self.assertEqual(rects[2].x - rects[1].x, 120 + 50)
        # the root is centered over its children
        self.assertEqual(rects[0].x + 60, (rects[1].x + rects[2].x + 120) / 2)

    def test_edge_label_and_thick_edge(self):
        g = _graph('TD', [('A', 'B')])
        g.edges[0] = DiagramEdge('A', 'B', label='yes', style='thick')
        out = LayeredGraphConverter().convert(g)
        line = next(p for p in out.primitives if isinstance(p, LinePrimitive))
        self.assertEqual(line.stroke_width, 4)
        self.assertEqual(out.primitives[-1].text, 'yes')
        self.assertEqual(out.primitives[-1].stroke_color, '#495057')

    def test_cycles_and_self_loops(self):
        g = _graph('TD', [('A', 'B'), ('B', 'A'), ('A', 'A')])
        self.assertEqual(rank_nodes(g), {'A': 0, 'B': 1})
        out = LayeredGraphConverter().convert(g)
        self.assertEqual(len([p for p in out.primitives if isinstance(p, LinePrimitive)]), 2)

    def test_empty_graph(self):
        self.assertEqual(LayeredGraphConverter().convert(DiagramGraph()).primitives, [])


@dataclass(frozen=True)
class LooseShape:
    id: str
    x: Optional[float] = None
    y: Optional[float] = None
    height: Optional[float] = None


class FixedConverter:
    def __init__(self, primitives):
        self.primitives = primitives

    def convert(self, graph):
        return ConvertedDiagram(primitives=list(self.primitives))


class TestAdapter(unittest.TestCase):
    def test_offsets_and_bottom(self):
        prims = [
            RectanglePrimitive('r', 0, 0, 100, 40),
            LinePrimitive('l', 10, 50, 0, 0, points=((0, 0), (0, 10))),
        ]
        placed = DiagramLayoutAdapter(FixedConverter(prims)).place(None, 100, 200)
        self.assertEqual([(p.x, p.y) for p in placed.primitives], [(100, 200), (110, 250)])
        self.assertEqual(placed.bottom, 250)
        # originals are not mutated
        self.assertEqual((prims[0].x, prims[0].y), (0, 0))

    def test_missing_coordinates_and_height(self):
        placed = DiagramLayoutAdapter(FixedConverter([LooseShape('s')])).place(None, 5, 7)
        self.assertEqual((placed.primitives[0].x, placed.primitives[0].y), (5, 7))
        self.assertEqual(placed.bottom, 27)

    def test_empty_block(self):
        placed = DiagramLayoutAdapter(FixedConverter([])).place(None, 0, 300)
        self.assertEqual(placed.primitives, [])
        self.assertEqual(placed.bottom, 300)


class TestMindmap(unittest.TestCase):
    DATA = {
        'nodes': [
            {'id': 'A', 'label': 'Root'},
            {'id': 'B', 'label': ''},
            {'id': 'C', 'label': 'Say "hi"'},
        ],
        'connections': [
            {'from': 'A', 'to': 'B', 'label': 'has'},
            {'from': 'A', 'to': 'C'},
            {'from': 'A'},
        ],
    }

    def test_output(self):
        self.assertEqual(
            mindmap_to_diagram(self.DATA),
            'flowchart TB\n'
            '    A["Root"]\n'
            '    B["Node"]\n'
            '    C["Say \\"hi\\""]\n'
            '\n'
            '    A  -- has --- B\n'
            '    A --- C\n',
        )

    def test_output_parses(self):
        g = parse_flowchart(mindmap_to_diagram(self.DATA))
        self.assertEqual(g.nodes['C'].label, 'Say "hi"')
        self.assertEqual([(e.source, e.target, e.label, e.arrow_end) for e in g.edges],
                         [('A', 'B', 'has', False), ('A', 'C', None, False)])

    def test_empty_and_invalid(self):
        self.assertEqual(mindmap_to_diagram({'nodes': []}), 'flowchart TD\n    A[No content available]')
        with self.assertRaises(ValueError):
            mindmap_to_diagram(['nodes'])


if __name__ == '__main__':
    unittest.main()
