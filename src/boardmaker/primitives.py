"""Positioned visual primitives and file assets emitted by a layout pass."""

import itertools
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

PRIMITIVE_TYPES = ('text', 'image', 'line', 'rectangle')


@dataclass(frozen=True)
class Primitive:
    id: str
    x: float
    y: float
    width: float
    height: float
    stroke_color: str = '#1e1e1e'
    background_color: str = 'transparent'
    stroke_width: float = 1
    opacity: float = 100

    type = 'unknown'

    def bottom(self) -> float:
        return self.y + self.height

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'id': self.id,
            'x': self.x,
            'y': self.y,
            'width': self.width,
            'height': self.height,
            'strokeColor': self.stroke_color,
            'backgroundColor': self.background_color,
            'strokeWidth': self.stroke_width,
            'opacity': self.opacity,
        }


@dataclass(frozen=True)
class TextPrimitive(Primitive):
    text: str = ''
    font_size: float = 16
    text_align: str = 'left'
    vertical_align: str = 'top'

    type = 'text'

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d.update(
            {
                'text': self.text,
                'fontSize': self.font_size,
                'textAlign': self.text_align,
                'verticalAlign': self.vertical_align,
            }
        )
        return d


@dataclass(frozen=True)
class ImagePrimitive(Primitive):
    file_id: str = ''

    type = 'image'

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d['fileId'] = self.file_id
        return d


@dataclass(frozen=True)
class LinePrimitive(Primitive):
    # Points are relative to (x, y)
    points: tuple = ((0, 0),)

    type = 'line'

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d['points'] = [list(p) for p in self.points]
        return d


@dataclass(frozen=True)
class RectanglePrimitive(Primitive):
    type = 'rectangle'


@dataclass(frozen=True)
class FileAsset:
    id: str
    data_url: str
    mime_type: str
    created: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'dataURL': self.data_url,
            'mimeType': self.mime_type,
            'created': self.created,
        }


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class IdFactory:
    """Deterministic id source for one layout pass.

    Ids look like ``<prefix>-<n>``; a fresh factory restarts numbering so two
    passes over the same document produce identical ids.
    """

    prefix: str = 'el'
    _counter: Any = field(default=None, repr=False)

    def __post_init__(self):
        self._counter = itertools.count(1)

    def next(self, kind: Optional[str] = None) -> str:
        n = next(self._counter)
        return f"{kind or self.prefix}-{n}"


def primitives_to_json(
    primitives: List[Primitive], files: Optional[Dict[str, FileAsset]] = None
) -> Dict[str, Any]:
    return {
        'elements': [p.to_dict() for p in primitives],
        'files': {k: f.to_dict() for k, f in (files or {}).items()},
    }


Clock = Callable[[], int]
