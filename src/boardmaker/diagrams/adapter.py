from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Protocol

from ..primitives import FileAsset, Primitive
from .converter import ConvertedDiagram

DEFAULT_ELEMENT_HEIGHT = 20


class DiagramParser(Protocol):
    async def parse(self, code: str) -> Any: ...


class DiagramConverter(Protocol):
    def convert(self, graph: Any) -> ConvertedDiagram: ...


@dataclass
class PlacedDiagram:
    primitives: List[Primitive] = field(default_factory=list)
    files: Dict[str, FileAsset] = field(default_factory=dict)
    bottom: float = 0.0


def _coord(value) -> float:
    return float(value) if value is not None else 0.0


class DiagramLayoutAdapter:
    """Move a converted diagram block to a canvas offset and measure it."""

    def __init__(self, converter: DiagramConverter):
        self.converter = converter

    def place(self, graph: Any, offset_x: float, offset_y: float) -> PlacedDiagram:
        """Convert ``graph`` and shift every primitive by the offset.

        ``bottom`` is the lowest edge of the placed block, never above
        ``offset_y``. Elements without a height count as 20 tall.
        """
        converted = self.converter.convert(graph)
        placed: List[Primitive] = []
        bottom = float(offset_y)
        for p in converted.primitives:
            x = _coord(getattr(p, 'x', None)) + offset_x
            y = _coord(getattr(p, 'y', None)) + offset_y
            placed.append(replace(p, x=x, y=y))
            h = getattr(p, 'height', None)
            bottom = max(bottom, y + (h if h is not None else DEFAULT_ELEMENT_HEIGHT))
        return PlacedDiagram(primitives=placed, files=dict(converted.files), bottom=bottom)
