"""File operations and path handling utilities."""

import base64
import json
import pathlib
from typing import Any, Dict, List, Union

from ..primitives import FileAsset

_EXTENSIONS = {
    'image/svg+xml': '.svg',
    'image/png': '.png',
    'image/jpeg': '.jpg',
}


def ensure_export_dir(export_dir: Union[str, pathlib.Path]) -> pathlib.Path:
    """Ensure export directory exists and return Path object."""
    export_path = pathlib.Path(export_dir)
    export_path.mkdir(parents=True, exist_ok=True)
    return export_path


def resolve_output_path(
    output: Union[str, pathlib.Path], export_dir: Union[str, pathlib.Path]
) -> pathlib.Path:
    """Relative outputs land inside export_dir; absolute ones are kept."""
    out = pathlib.Path(output)
    if out.is_absolute():
        return out
    return pathlib.Path(export_dir) / out


def write_json(path: Union[str, pathlib.Path], data: Any) -> pathlib.Path:
    p = pathlib.Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(data, indent=2), encoding='utf-8')
    return p


def decode_data_url(data_url: str) -> bytes:
    """Payload bytes of a base64 ``data:`` URL."""
    header, sep, payload = data_url.partition(',')
    if not sep or not header.startswith('data:') or not header.endswith(';base64'):
        raise ValueError(f"Not a base64 data URL: {data_url[:40]}")
    return base64.b64decode(payload)


def export_file_assets(files: Dict[str, FileAsset], export_dir: Union[str, pathlib.Path]) -> List[pathlib.Path]:
    """Write each file asset next to the scene as ``<id><ext>``."""
    out_dir = ensure_export_dir(export_dir)
    written = []
    for file_id, asset in sorted(files.items()):
        ext = _EXTENSIONS.get(asset.mime_type, '.bin')
        path = out_dir / f"{file_id}{ext}"
        path.write_bytes(decode_data_url(asset.data_url))
        written.append(path)
    return written
