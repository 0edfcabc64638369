"""Shared utilities for boardmaker.

This package contains common functionality used across multiple modules:
- file_ops: Export directory, output paths and asset files
- text_helpers: Entities, tags, reasoning blocks and table placeholders
"""

from .file_ops import (
    decode_data_url,
    ensure_export_dir,
    export_file_assets,
    resolve_output_path,
    write_json,
)
from .text_helpers import (
    break_lines,
    collapse_ws,
    decode_entities,
    escape_entities,
    extract_table_blocks,
    filter_think_tags,
    placeholder_index,
    strip_tags,
)

__all__ = [
    # File operations
    'decode_data_url',
    'ensure_export_dir',
    'export_file_assets',
    'resolve_output_path',
    'write_json',
    # Text helpers
    'break_lines',
    'collapse_ws',
    'decode_entities',
    'escape_entities',
    'extract_table_blocks',
    'filter_think_tags',
    'placeholder_index',
    'strip_tags',
]
