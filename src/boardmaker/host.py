"""Canvas host boundary.

The layout engine only needs four operations from a live canvas: read the
current scene, replace it, register image files and read the viewport state.
``SceneHost`` implements them in memory for the CLI and for tests.
"""

import random
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from .primitives import FileAsset, ImagePrimitive, LinePrimitive, Primitive, TextPrimitive

DEFAULT_VIEWPORT_WIDTH = 800
TEXT_COLUMN_HALF_WIDTH = 200
TOP_MARGIN = 50


class CanvasHost(Protocol):
    def get_scene_elements(self) -> List[Dict[str, Any]]: ...

    def update_scene(self, elements: List[Dict[str, Any]]) -> None: ...

    def add_files(self, files: Sequence[FileAsset]) -> None: ...

    def get_app_state(self) -> Dict[str, Any]: ...


class SceneHost:
    """In-memory canvas host."""

    def __init__(self, app_state: Optional[Dict[str, Any]] = None, elements=None):
        self.app_state = dict(app_state or {})
        self.elements: List[Dict[str, Any]] = list(elements or [])
        self.files: Dict[str, FileAsset] = {}
        self.update_count = 0

    def get_scene_elements(self) -> List[Dict[str, Any]]:
        return list(self.elements)

    def update_scene(self, elements: List[Dict[str, Any]]) -> None:
        self.elements = list(elements)
        self.update_count += 1

    def add_files(self, files: Sequence[FileAsset]) -> None:
        for f in files:
            self.files[f.id] = f

    def get_app_state(self) -> Dict[str, Any]:
        return dict(self.app_state)

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> 'SceneHost':
        """Load a saved scene (``elements``, ``appState``, ``files``)."""
        host = cls(app_state=data.get('appState'), elements=data.get('elements'))
        for file_id, f in (data.get('files') or {}).items():
            host.files[file_id] = FileAsset(
                id=f.get('id', file_id),
                data_url=f['dataURL'],
                mime_type=f.get('mimeType', ''),
                created=int(f.get('created', 0)),
            )
        return host

    def to_json(self) -> Dict[str, Any]:
        return {
            'type': 'excalidraw',
            'version': 2,
            'elements': self.elements,
            'appState': self.app_state,
            'files': {k: f.to_dict() for k, f in self.files.items()},
        }


def origin_from_app_state(app_state: Optional[Dict[str, Any]]) -> Tuple[float, float]:
    """Origin for new content: centered in the viewport, near its top."""
    state = app_state or {}
    width = state.get('width') or DEFAULT_VIEWPORT_WIDTH
    scroll_x = state.get('scrollX') or 0
    scroll_y = state.get('scrollY') or 0
    return scroll_x + width / 2 - TEXT_COLUMN_HALF_WIDTH, scroll_y + TOP_MARGIN


def to_native_elements(primitives: Sequence[Primitive], rng: Optional[random.Random] = None) -> List[Dict[str, Any]]:
    """Fill in the element fields a host scene expects but layout never sets."""
    rng = rng or random.Random(0)
    out = []
    for p in primitives:
        el = p.to_dict()
        el.update(
            {
                'angle': 0,
                'fillStyle': 'solid' if el['backgroundColor'] != 'transparent' else 'hachure',
                'strokeStyle': 'solid',
                'roughness': 1,
                'roundness': None,
                'seed': rng.randrange(1_000_000),
                'version': 1,
                'versionNonce': rng.randrange(1_000_000),
                'isDeleted': False,
                'groupIds': [],
                'frameId': None,
                'boundElements': None,
                'updated': 1,
                'link': None,
                'locked': False,
            }
        )
        if isinstance(p, TextPrimitive):
            el.update(
                {
                    'fontFamily': 1,
                    'originalText': p.text,
                    'containerId': None,
                    'lineHeight': 1.25,
                    'autoResize': True,
                }
            )
        elif isinstance(p, LinePrimitive):
            el.update(
                {
                    'roundness': {'type': 2},
                    'lastCommittedPoint': None,
                    'startBinding': None,
                    'endBinding': None,
                    'startArrowhead': None,
                    'endArrowhead': None,
                }
            )
        elif isinstance(p, ImagePrimitive):
            el.update({'status': 'saved', 'scale': [1, 1]})
        out.append(el)
    return out
