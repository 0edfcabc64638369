"""Layered layout of a parsed diagram graph into canvas primitives.

Nodes are ranked by longest path from the sources, ranks are stacked along
the flow direction and nodes within a rank are placed side by side in order of
first appearance. Everything is positioned relative to (0, 0); the layout
adapter moves the block into place.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..fonts import AverageCharMeasurer
from ..primitives import FileAsset, IdFactory, LinePrimitive, Primitive, RectanglePrimitive, TextPrimitive
from ..utils.text_helpers import break_lines
from .flowchart import DiagramGraph

SPACING_PRESETS = {
    'DEFAULT': {'node_spacing': 50, 'rank_spacing': 50},
    'LOOSE': {'node_spacing': 80, 'rank_spacing': 100},
    'TIGHT': {'node_spacing': 30, 'rank_spacing': 40},
    'EXTRA_LOOSE': {'node_spacing': 120, 'rank_spacing': 150},
}

NODE_FONT_SIZE = 16
EDGE_FONT_SIZE = 14
NODE_PADDING = 20
MIN_NODE_WIDTH = 120
MIN_NODE_HEIGHT = 50
LABEL_WORDS_PER_LINE = 4
LINE_HEIGHT = 1.25
NODE_STROKE = '#1e1e1e'
EDGE_LABEL_COLOR = '#495057'


@dataclass
class ConvertedDiagram:
    primitives: List[Primitive] = field(default_factory=list)
    files: Dict[str, FileAsset] = field(default_factory=dict)


def rank_nodes(graph: DiagramGraph) -> Dict[str, int]:
    """Longest-path rank per node. Cycles are broken at the first unranked node."""
    order = list(graph.nodes)
    preds: Dict[str, List[str]] = {n: [] for n in order}
    succs: Dict[str, List[str]] = {n: [] for n in order}
    indeg = {n: 0 for n in order}
    for e in graph.edges:
        if e.source == e.target or e.source not in preds or e.target not in preds:
            continue
        preds[e.target].append(e.source)
        succs[e.source].append(e.target)
        indeg[e.target] += 1

    rank: Dict[str, int] = {}
    ready = [n for n in order if indeg[n] == 0]
    while len(rank) < len(order):
        if not ready:
            ready = [next(n for n in order if n not in rank)]
        n = ready.pop(0)
        if n in rank:
            continue
        rank[n] = max((rank[p] + 1 for p in preds[n] if p in rank), default=0)
        for s in succs[n]:
            indeg[s] -= 1
            if indeg[s] <= 0 and s not in rank:
                ready.append(s)
    return rank


class LayeredGraphConverter:
    def __init__(self, spacing: str = 'DEFAULT', measurer=None, ids: Optional[IdFactory] = None):
        preset = SPACING_PRESETS.get(str(spacing).upper())
        if preset is None:
            raise ValueError(
                f"Unknown spacing '{spacing}'. Expected one of {', '.join(SPACING_PRESETS)}"
            )
        self.node_spacing = preset['node_spacing']
        self.rank_spacing = preset['rank_spacing']
        self.measurer = measurer or AverageCharMeasurer(0.6)
        self.ids = ids or IdFactory()

    def _node_size(self, label: str) -> Tuple[str, float, float]:
        text = break_lines(label, LABEL_WORDS_PER_LINE)
        lines = text.split('\n')
        tw = max(self.measurer.text_width(ln, NODE_FONT_SIZE) for ln in lines)
        w = max(MIN_NODE_WIDTH, tw + 2 * NODE_PADDING)
        h = max(MIN_NODE_HEIGHT, len(lines) * NODE_FONT_SIZE * LINE_HEIGHT + NODE_PADDING)
        return text, w, h

    def convert(self, graph: DiagramGraph) -> ConvertedDiagram:
        if not graph.nodes:
            return ConvertedDiagram()
        horizontal = graph.direction in ('LR', 'RL')
        ranks = rank_nodes(graph)
        layers: Dict[int, List[str]] = {}
        for nid in graph.nodes:
            layers.setdefault(ranks[nid], []).append(nid)

        sizes = {nid: self._node_size(n.label) for nid, n in graph.nodes.items()}

        # main axis follows the flow, cross axis spreads a rank
        def main(nid):
            return sizes[nid][1] if horizontal else sizes[nid][2]

        def cross(nid):
            return sizes[nid][2] if horizontal else sizes[nid][1]

        layer_keys = sorted(layers)
        layer_main = {r: max(main(n) for n in layers[r]) for r in layer_keys}
        layer_cross = {
            r: sum(cross(n) for n in layers[r]) + self.node_spacing * (len(layers[r]) - 1)
            for r in layer_keys
        }
        widest = max(layer_cross.values())
        total_main = sum(layer_main.values()) + self.rank_spacing * (len(layer_keys) - 1)

        boxes: Dict[str, Tuple[float, float, float, float]] = {}
        m_pos = 0.0
        for r in layer_keys:
            c_pos = (widest - layer_cross[r]) / 2
            for nid in layers[r]:
                m_off = m_pos + (layer_main[r] - main(nid)) / 2
                if graph.direction in ('BT', 'RL'):
                    m_off = total_main - m_off - main(nid)
                w, h = sizes[nid][1], sizes[nid][2]
                if horizontal:
                    boxes[nid] = (m_off, c_pos, w, h)
                else:
                    boxes[nid] = (c_pos, m_off, w, h)
                c_pos += cross(nid) + self.node_spacing
            m_pos += layer_main[r] + self.rank_spacing

        out: List[Primitive] = []
        for nid in graph.nodes:
            x, y, w, h = boxes[nid]
            text = sizes[nid][0]
            out.append(
                RectanglePrimitive(
                    id=self.ids.next('node'),
                    x=x,
                    y=y,
                    width=w,
                    height=h,
                    stroke_color=NODE_STROKE,
                    stroke_width=2,
                )
            )
            th = (text.count('\n') + 1) * NODE_FONT_SIZE * LINE_HEIGHT
            out.append(
                TextPrimitive(
                    id=self.ids.next('node-label'),
                    x=x,
                    y=y + (h - th) / 2,
                    width=w,
                    height=th,
                    stroke_color=NODE_STROKE,
                    text=text,
                    font_size=NODE_FONT_SIZE,
                    text_align='center',
                    vertical_align='middle',
                )
            )

        for e in graph.edges:
            if e.source not in boxes or e.target not in boxes or e.source == e.target:
                continue
            sx, sy = self._anchor(boxes[e.source], boxes[e.target], horizontal)
            tx, ty = self._anchor(boxes[e.target], boxes[e.source], horizontal)
            out.append(
                LinePrimitive(
                    id=self.ids.next('edge'),
                    x=sx,
                    y=sy,
                    width=abs(tx - sx),
                    height=abs(ty - sy),
                    stroke_color=NODE_STROKE,
                    stroke_width=4 if e.style == 'thick' else 2,
                    points=((0, 0), (tx - sx, ty - sy)),
                )
            )
            if e.label:
                lw = self.measurer.text_width(e.label, EDGE_FONT_SIZE)
                lh = EDGE_FONT_SIZE * LINE_HEIGHT
                out.append(
                    TextPrimitive(
                        id=self.ids.next('edge-label'),
                        x=(sx + tx) / 2 - lw / 2,
                        y=(sy + ty) / 2 - lh / 2,
                        width=lw,
                        height=lh,
                        stroke_color=EDGE_LABEL_COLOR,
                        text=e.label,
                        font_size=EDGE_FONT_SIZE,
                        text_align='center',
                    )
                )
        return ConvertedDiagram(primitives=out)

    @staticmethod
    def _anchor(box, other, horizontal: bool) -> Tuple[float, float]:
        """Midpoint of the box side facing the other box."""
        x, y, w, h = box
        ox, oy, ow, oh = other
        if horizontal:
            if ox + ow / 2 >= x + w / 2:
                return x + w, y + h / 2
            return x, y + h / 2
        if oy + oh / 2 >= y + h / 2:
            return x + w / 2, y + h
        return x + w / 2, y
