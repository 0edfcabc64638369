"""Flowchart source to a node/edge graph.

Only flowchart headers are understood (``flowchart``/``graph`` with a
direction). Styling, class and subgraph statements are accepted and ignored so
that decorated diagrams still lay out.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..utils.text_helpers import decode_entities

HEADER_RE = re.compile(r'^(?:graph|flowchart)\s+(TD|TB|LR|BT|RL)\s*$', re.I)
BARE_HEADER_RE = re.compile(r'^(?:graph|flowchart)\s*$', re.I)
OTHER_TYPE_RE = re.compile(
    r'^(sequenceDiagram|classDiagram|erDiagram|gantt|journey|stateDiagram|pie|mindmap)\b'
)
ARROW_RE = re.compile(r'^(<)?(-->|-\.->|==>|---|-\.-|===)(?:\|([^|]*)\|)?')
LABELED_ARROW_RE = re.compile(r'^(<)?(--|==|-\.)\s*([^|>]+?)\s*(-->|---|==>|===|\.->|\.-)')

NODE_ID = r'\w+(?:-\w+)*'
NODE_PATTERNS = [
    (re.compile(rf'^({NODE_ID})\(\(\((.+?)\)\)\)'), 'doublecircle'),
    (re.compile(rf'^({NODE_ID})\(\[(.+?)\]\)'), 'stadium'),
    (re.compile(rf'^({NODE_ID})\(\((.+?)\)\)'), 'circle'),
    (re.compile(rf'^({NODE_ID})\[\[(.+?)\]\]'), 'subroutine'),
    (re.compile(rf'^({NODE_ID})\[\((.+?)\)\]'), 'cylinder'),
    (re.compile(rf'^({NODE_ID})\{{\{{(.+?)\}}\}}'), 'hexagon'),
    (re.compile(rf'^({NODE_ID})>(.+?)\]'), 'asymmetric'),
    (re.compile(rf'^({NODE_ID})\[(.+?)\]'), 'rectangle'),
    (re.compile(rf'^({NODE_ID})\((.+?)\)'), 'rounded'),
    (re.compile(rf'^({NODE_ID})\{{(.+?)\}}'), 'diamond'),
]
BARE_NODE_RE = re.compile(rf'^({NODE_ID})')
CLASS_SHORTHAND_RE = re.compile(r'^:::[\w][\w-]*')
IGNORED_STATEMENT_RE = re.compile(
    r'^(classDef|class|style|linkStyle|click|subgraph|direction|accTitle|accDescr)\b'
)


@dataclass
class DiagramNode:
    id: str
    label: str
    shape: str = 'rectangle'


@dataclass
class DiagramEdge:
    source: str
    target: str
    label: Optional[str] = None
    style: str = 'solid'
    arrow_start: bool = False
    arrow_end: bool = True


@dataclass
class DiagramGraph:
    direction: str = 'TD'
    nodes: Dict[str, DiagramNode] = field(default_factory=dict)
    edges: List[DiagramEdge] = field(default_factory=list)


def clean_label(raw: str) -> str:
    """Strip one layer of quotes and decode entities added during quoting."""
    s = raw.strip()
    if len(s) >= 2 and s[0] == s[-1] and s[0] in ('"', "'"):
        s = s[1:-1]
    s = s.replace('\\"', '"')
    return decode_entities(s).strip()


def _style_for(op: str) -> str:
    if '.' in op:
        return 'dotted'
    if '=' in op:
        return 'thick'
    return 'solid'


def _consume_node(text: str, graph: DiagramGraph) -> Optional[Tuple[str, str]]:
    for regex, shape in NODE_PATTERNS:
        m = regex.match(text)
        if m:
            node_id = m.group(1)
            label = clean_label(m.group(2)) or node_id
            existing = graph.nodes.get(node_id)
            # A later explicit label wins over an earlier bare reference
            if existing is None or existing.label == node_id:
                graph.nodes[node_id] = DiagramNode(node_id, label, shape)
            rest = text[m.end() :]
            break
    else:
        m = BARE_NODE_RE.match(text)
        if not m:
            return None
        node_id = m.group(1)
        if node_id not in graph.nodes:
            graph.nodes[node_id] = DiagramNode(node_id, node_id)
        rest = text[m.end() :]
    cm = CLASS_SHORTHAND_RE.match(rest)
    if cm:
        rest = rest[cm.end() :]
    return node_id, rest


def _consume_group(text: str, graph: DiagramGraph) -> Optional[Tuple[List[str], str]]:
    first = _consume_node(text, graph)
    if first is None:
        return None
    ids = [first[0]]
    rest = first[1].strip()
    while rest.startswith('&'):
        nxt = _consume_node(rest[1:].strip(), graph)
        if nxt is None:
            break
        ids.append(nxt[0])
        rest = nxt[1].strip()
    return ids, rest


def _match_arrow(text: str):
    """Return (label, style, arrow_start, arrow_end, consumed) or None."""
    m = ARROW_RE.match(text)
    if m:
        op = m.group(2)
        label = clean_label(m.group(3)) if m.group(3) else None
        return label or None, _style_for(op), bool(m.group(1)), op.endswith('>'), m.end()
    m = LABELED_ARROW_RE.match(text)
    if m:
        op = m.group(4)
        return clean_label(m.group(3)) or None, _style_for(m.group(2) + op), bool(m.group(1)), op.endswith('>'), m.end()
    return None


def parse_edge_line(line: str, graph: DiagramGraph) -> None:
    group = _consume_group(line.strip(), graph)
    if group is None:
        return
    prev_ids, rest = group
    while rest:
        arrow = _match_arrow(rest)
        if arrow is None:
            break
        label, style, start, end, consumed = arrow
        rest = rest[consumed:].strip()
        nxt = _consume_group(rest, graph)
        if nxt is None:
            break
        ids, rest = nxt
        for src in prev_ids:
            for tgt in ids:
                graph.edges.append(DiagramEdge(src, tgt, label, style, start, end))
        prev_ids = ids


def split_statements(code: str) -> List[str]:
    """Split source into statements at newlines and at top-level ``;``.

    A ``;`` inside a quoted span, a bracketed label or a ``|label|`` does not
    end a statement, so escaped labels such as ``["Salt &amp; Water"]`` stay
    whole.
    """
    statements: List[str] = []
    buf: List[str] = []
    quoted = False
    piped = False
    depth = 0
    prev = ''
    for ch in code or '':
        if ch == '\n' or (ch == ';' and not quoted and not piped and depth == 0):
            statements.append(''.join(buf))
            buf = []
            if ch == '\n':
                quoted = piped = False
                depth = 0
            prev = ch
            continue
        buf.append(ch)
        if ch == '"' and prev != '\\':
            quoted = not quoted
        elif not quoted:
            if ch in '[({':
                depth += 1
            elif ch in '])}':
                depth = max(0, depth - 1)
            elif ch == '|':
                piped = not piped
        prev = ch
    statements.append(''.join(buf))
    return statements


def parse_flowchart(code: str) -> DiagramGraph:
    """Parse flowchart source. Raises ValueError on empty or unsupported input."""
    lines = [
        ln.strip()
        for ln in split_statements(code)
        if ln.strip() and not ln.strip().startswith('%%')
    ]
    if not lines:
        raise ValueError('Empty diagram')
    header = lines[0]
    if OTHER_TYPE_RE.match(header):
        raise ValueError(f"Unsupported diagram type: {header.split()[0]}")
    m = HEADER_RE.match(header)
    if m:
        direction = m.group(1).upper()
    elif BARE_HEADER_RE.match(header):
        direction = 'TD'
    else:
        raise ValueError(
            f"Invalid diagram header: \"{header}\". Expected 'graph TD', 'flowchart LR', etc."
        )
    graph = DiagramGraph(direction='TD' if direction == 'TB' else direction)
    for line in lines[1:]:
        if line == 'end' or IGNORED_STATEMENT_RE.match(line):
            continue
        parse_edge_line(line, graph)
    return graph


class FlowchartParser:
    """Default diagram parser used by the walker."""

    async def parse(self, code: str) -> DiagramGraph:
        return parse_flowchart(code)
