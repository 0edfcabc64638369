"""Document tree node types.

The tree is a closed set of frozen dataclasses. Anything a tokenizer produces
that is not one of the named block kinds becomes a ``Generic`` node carrying its
original kind string, so the walker can still descend into it.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class Node:
    children: Tuple['Node', ...] = ()


@dataclass(frozen=True)
class Root(Node):
    pass


@dataclass(frozen=True)
class Heading(Node):
    depth: int = 1


@dataclass(frozen=True)
class Paragraph(Node):
    pass


@dataclass(frozen=True)
class ListNode(Node):
    ordered: bool = False
    start: Optional[int] = None


@dataclass(frozen=True)
class ListItem(Node):
    pass


@dataclass(frozen=True)
class Table(Node):
    pass


@dataclass(frozen=True)
class TableRow(Node):
    pass


@dataclass(frozen=True)
class TableCell(Node):
    pass


@dataclass(frozen=True)
class ThematicBreak(Node):
    pass


@dataclass(frozen=True)
class Html(Node):
    value: str = ''


@dataclass(frozen=True)
class Text(Node):
    value: str = ''


@dataclass(frozen=True)
class Generic(Node):
    kind: str = 'unknown'
    value: Optional[str] = None


NODE_CLASSES = (
    Root,
    Heading,
    Paragraph,
    ListNode,
    ListItem,
    Table,
    TableRow,
    TableCell,
    ThematicBreak,
    Html,
    Text,
    Generic,
)

# mdast type names for the named kinds
_KIND_BY_TYPE = {
    'root': Root,
    'heading': Heading,
    'paragraph': Paragraph,
    'list': ListNode,
    'listItem': ListItem,
    'table': Table,
    'tableRow': TableRow,
    'tableCell': TableCell,
    'thematicBreak': ThematicBreak,
    'html': Html,
    'text': Text,
}
_TYPE_BY_KIND = {cls: name for name, cls in _KIND_BY_TYPE.items()}


def kind_of(node: Node) -> str:
    """Return the mdast-style type name of a node."""
    if isinstance(node, Generic):
        return node.kind
    return _TYPE_BY_KIND.get(type(node), 'unknown')


def collect_text(node: Node) -> str:
    """Concatenate every descendant text value in document order.

    Inline code and other value-carrying generic nodes contribute their value.
    """
    if isinstance(node, (Text, Html)):
        return node.value
    if isinstance(node, Generic) and node.value is not None and not node.children:
        return node.value
    return ''.join(collect_text(c) for c in node.children)


def node_from_dict(data: Dict[str, Any]) -> Node:
    """Build a typed node tree from mdast-style JSON.

    Unknown ``type`` values become ``Generic`` nodes. Missing children are
    treated as an empty list.
    """
    if not isinstance(data, dict):
        raise ValueError(f"Node must be an object, got {type(data).__name__}")
    ntype = str(data.get('type') or 'unknown')
    raw_children = data.get('children') or []
    if not isinstance(raw_children, list):
        raise ValueError(f"Children of '{ntype}' node must be a list")
    children = tuple(node_from_dict(c) for c in raw_children)
    cls = _KIND_BY_TYPE.get(ntype)
    if cls is Heading:
        try:
            depth = int(data.get('depth', 1))
        except (TypeError, ValueError):
            depth = 1
        return Heading(children=children, depth=min(6, max(1, depth)))
    if cls is ListNode:
        start = data.get('start')
        try:
            start = int(start) if start is not None else None
        except (TypeError, ValueError):
            start = None
        return ListNode(children=children, ordered=bool(data.get('ordered')), start=start)
    if cls is Html:
        return Html(value=str(data.get('value') or ''))
    if cls is Text:
        return Text(value=str(data.get('value') or ''))
    if cls is not None:
        return cls(children=children)
    value = data.get('value')
    return Generic(children=children, kind=ntype, value=None if value is None else str(value))


def node_to_dict(node: Node) -> Dict[str, Any]:
    """Serialize a node tree back to mdast-style JSON."""
    out: Dict[str, Any] = {'type': kind_of(node)}
    if isinstance(node, Heading):
        out['depth'] = node.depth
    elif isinstance(node, ListNode):
        out['ordered'] = node.ordered
        out['start'] = node.start
    if isinstance(node, (Html, Text)):
        out['value'] = node.value
        return out
    if isinstance(node, Generic) and node.value is not None:
        out['value'] = node.value
    children: List[Dict[str, Any]] = [node_to_dict(c) for c in node.children]
    if children or not isinstance(node, (ThematicBreak, Generic)):
        out['children'] = children
    return out


@dataclass
class TreeStats:
    counts: Dict[str, int] = field(default_factory=dict)

    def add(self, node: Node) -> None:
        k = kind_of(node)
        self.counts[k] = self.counts.get(k, 0) + 1
        for c in node.children:
            self.add(c)
