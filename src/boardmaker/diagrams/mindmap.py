from typing import Any, Dict

EMPTY_MINDMAP = 'flowchart TD\n    A[No content available]'


def mindmap_to_diagram(data: Dict[str, Any]) -> str:
    """Convert ``{"nodes": [...], "connections": [...]}`` to flowchart source.

    Nodes need ``id`` and ``label``; connections need ``from`` and ``to`` and
    may carry a ``label``. Blank labels become ``Node``; connections missing
    an endpoint are skipped.
    """
    if not isinstance(data, dict):
        raise ValueError('Mindmap data must be an object')
    nodes = data.get('nodes') or []
    connections = data.get('connections') or []
    if not nodes:
        return EMPTY_MINDMAP

    lines = ['flowchart TB']
    for node in nodes:
        label = str(node.get('label') or '').strip() or 'Node'
        label = label.replace('"', '\\"')
        lines.append(f"    {node.get('id')}[\"{label}\"]")
    lines.append('')
    for conn in connections:
        src = conn.get('from')
        dst = conn.get('to')
        if not src or not dst:
            continue
        label = conn.get('label')
        link = f" -- {label} ---" if label else '---'
        lines.append(f"    {src} {link} {dst}")
    return '\n'.join(lines) + '\n'
