#!/usr/bin/env python3
"""Unified CLI for boardmaker

Subcommands:
  layout             markdown -> positioned canvas scene (JSON)
  tree               parse markdown and emit the node tree JSON
  validate           lay out and validate the primitives
  normalize-diagram  clean up diagram source
  mindmap            mindmap JSON -> diagram source

"""

import argparse
import asyncio
import json
import pathlib
import sys
import warnings

from . import parse_document
from .diagrams.mindmap import mindmap_to_diagram
from .diagrams.preprocess import (
    MAX_CHARS,
    MAX_LINES,
    DiagramTooLargeError,
    fallback_diagram,
    normalize_diagram_code,
    preprocess_diagram_code,
)
from .generation import LayoutSettings, render_document
from .host import SceneHost
from .nodes import TreeStats, node_from_dict, node_to_dict
from .utils.file_ops import ensure_export_dir, export_file_assets, resolve_output_path, write_json
from .validation import check_vertical_flow, validate_primitives

DEFAULT_EXPORT_DIR = 'export'


def _read(path_str: str, what: str = 'input') -> str:
    path = pathlib.Path(path_str)
    if not path.exists():
        print(f"ERROR: {what} file not found: {path}", file=sys.stderr)
        sys.exit(1)
    return path.read_text(encoding='utf-8')


def _load_json(path_str: str, what: str = 'JSON'):
    try:
        return json.loads(_read(path_str, what))
    except json.JSONDecodeError as e:
        print(f"ERROR: invalid {what} in {path_str}: {e}", file=sys.stderr)
        sys.exit(1)


def _load_document(args):
    """Return (root, table_blocks) for the DOC argument."""
    if getattr(args, 'from_json', False):
        try:
            return node_from_dict(_load_json(args.doc, 'tree JSON')), []
        except ValueError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            sys.exit(1)
    return parse_document(_read(args.doc, 'document'))


def _parse_overrides(pairs) -> dict:
    meta = {}
    for pair in pairs or []:
        key, sep, value = pair.partition('=')
        if not sep or not key.strip():
            print(f"ERROR: expected KEY=VALUE, got '{pair}'", file=sys.stderr)
            sys.exit(1)
        meta[key.strip()] = value
    return meta


def _settings_from_args(args) -> LayoutSettings:
    meta = _parse_overrides(getattr(args, 'set', None))
    if getattr(args, 'start_x', None) is not None:
        meta['START_X'] = args.start_x
    if getattr(args, 'start_y', None) is not None:
        meta['START_Y'] = args.start_y
    if getattr(args, 'font_file', None):
        meta['FONT_FILE'] = args.font_file
    if getattr(args, 'spacing', None):
        meta['SPACING'] = args.spacing
    if getattr(args, 'no_equations', False):
        meta['EQUATIONS'] = 'false'
    return LayoutSettings.from_meta(meta)


def cmd_layout(args):
    root, blocks = _load_document(args)
    settings = _settings_from_args(args)
    host = SceneHost.from_json(_load_json(args.scene, 'scene')) if args.scene else SceneHost()
    result = asyncio.run(
        render_document(root, settings, table_blocks=blocks, host=host, use_viewport=args.viewport)
    )

    export_dir = ensure_export_dir(args.export_dir)
    out_path = resolve_output_path(args.output, export_dir)
    write_json(out_path, host.to_json())
    if args.result:
        write_json(resolve_output_path(args.result, export_dir), result.to_json())
    if args.export_assets:
        export_file_assets(result.files, export_dir)
    print(
        f"Laid out: {out_path} elements={len(result.primitives)} "
        f"files={len(result.files)} cursor={result.cursor:g}"
    )


def cmd_tree(args):
    root, blocks = _load_document(args)
    if args.stats:
        stats = TreeStats()
        stats.add(root)
        print(json.dumps({'counts': stats.counts, 'tableBlocks': len(blocks)}, indent=2, sort_keys=True))
        return
    print(json.dumps(node_to_dict(root), indent=2))


def cmd_validate(args):
    root, blocks = _load_document(args)
    settings = _settings_from_args(args)
    with warnings.catch_warnings():
        # Recorded issues are printed below
        warnings.simplefilter('ignore', UserWarning)
        result = asyncio.run(render_document(root, settings, table_blocks=blocks))
    checked = validate_primitives(result.primitives, result.files, strict_assets=args.strict_assets)
    checked.issues = result.issues + checked.issues + check_vertical_flow(result.section_starts)
    for issue in checked.issues:
        print(f"{issue.severity.upper()}: {issue.path}: {issue.message}")
    if checked.ok():
        print("Layout valid: no errors")
    if not checked.ok():
        sys.exit(1)


def cmd_normalize_diagram(args):
    raw = _read(args.file, 'diagram')
    if not args.strict:
        print(preprocess_diagram_code(raw))
        return
    try:
        print(normalize_diagram_code(raw, max_lines=args.max_lines, max_chars=args.max_chars))
    except DiagramTooLargeError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        if args.fallback:
            print(fallback_diagram(args.fallback))
            return
        sys.exit(1)


def cmd_mindmap(args):
    data = _load_json(args.json, 'mindmap JSON')
    try:
        print(mindmap_to_diagram(data))
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)


def _add_layout_options(p):
    p.add_argument('doc')
    p.add_argument(
        '--from-json', action='store_true', help='DOC is an mdast-style JSON tree instead of markdown'
    )
    p.add_argument('--start-x')
    p.add_argument('--start-y')
    p.add_argument('--font-file', help='TTF/OTF file used to measure table text')
    p.add_argument('--spacing', help='diagram spacing preset (DEFAULT, LOOSE, TIGHT, EXTRA_LOOSE)')
    p.add_argument('--no-equations', action='store_true', help='skip equation rendering')
    p.add_argument(
        '--set', action='append', metavar='KEY=VALUE', help='override a layout default (repeatable)'
    )


def build_parser():
    p = argparse.ArgumentParser(prog='boardmaker')
    sub = p.add_subparsers(dest='command', required=True)

    lay = sub.add_parser('layout', help='markdown -> canvas scene')
    _add_layout_options(lay)
    lay.add_argument('-o', '--output', default='board.excalidraw')
    lay.add_argument('--export-dir', default=DEFAULT_EXPORT_DIR)
    lay.add_argument('--scene', help='existing scene JSON to append to')
    lay.add_argument(
        '--viewport', action='store_true', help='place content relative to the scene viewport'
    )
    lay.add_argument('--result', help='also write the raw layout result JSON')
    lay.add_argument(
        '--export-assets', action='store_true', help='write rendered equation files to the export dir'
    )
    lay.set_defaults(func=cmd_layout)

    tree = sub.add_parser('tree', help='emit node tree JSON')
    tree.add_argument('doc')
    tree.add_argument('--from-json', action='store_true', help='DOC is an mdast-style JSON tree')
    tree.add_argument('--stats', action='store_true', help='print node kind counts instead')
    tree.set_defaults(func=cmd_tree)

    val = sub.add_parser('validate', help='lay out and validate primitives')
    _add_layout_options(val)
    val.add_argument(
        '--strict-assets', action='store_true', help='Treat images without file assets as errors'
    )
    val.set_defaults(func=cmd_validate)

    norm = sub.add_parser('normalize-diagram', help='clean up diagram source')
    norm.add_argument('file')
    norm.add_argument(
        '--strict', action='store_true', help='full normalization with size limits'
    )
    norm.add_argument('--max-lines', type=int, default=MAX_LINES)
    norm.add_argument('--max-chars', type=int, default=MAX_CHARS)
    norm.add_argument('--fallback', help='print a placeholder diagram with this label when too large')
    norm.set_defaults(func=cmd_normalize_diagram)

    mm = sub.add_parser('mindmap', help='mindmap JSON -> diagram source')
    mm.add_argument('json')
    mm.set_defaults(func=cmd_mindmap)

    return p


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    args.func(args)


if __name__ == '__main__':
    main()
