"""Diagram handling: source cleanup, parsing, layout and placement.

- preprocess: label quoting and strict normalization of diagram source
- flowchart: default flowchart parser
- converter: layered layout into canvas primitives
- adapter: offsetting a converted block onto the canvas
- mindmap: mindmap JSON to flowchart source
"""

from .adapter import (
    DiagramConverter,
    DiagramLayoutAdapter,
    DiagramParser,
    PlacedDiagram,
)
from .converter import (
    SPACING_PRESETS,
    ConvertedDiagram,
    LayeredGraphConverter,
    rank_nodes,
)
from .flowchart import (
    DiagramEdge,
    DiagramGraph,
    DiagramNode,
    FlowchartParser,
    parse_flowchart,
    split_statements,
)
from .mindmap import mindmap_to_diagram
from .preprocess import (
    MAX_CHARS,
    MAX_LINES,
    DiagramTooLargeError,
    clean_diagram_code,
    fallback_diagram,
    normalize_diagram_code,
    preprocess_diagram_code,
)

__all__ = [
    # Placement
    'DiagramConverter',
    'DiagramLayoutAdapter',
    'DiagramParser',
    'PlacedDiagram',
    # Layout
    'SPACING_PRESETS',
    'ConvertedDiagram',
    'LayeredGraphConverter',
    'rank_nodes',
    # Parsing
    'DiagramEdge',
    'DiagramGraph',
    'DiagramNode',
    'FlowchartParser',
    'parse_flowchart',
    'split_statements',
    'mindmap_to_diagram',
    # Source cleanup
    'MAX_CHARS',
    'MAX_LINES',
    'DiagramTooLargeError',
    'clean_diagram_code',
    'fallback_diagram',
    'normalize_diagram_code',
    'preprocess_diagram_code',
]
