"""Markdown to the document node tree, on top of markdown-it.

Equation spans, diagram and table html and ``__TABLE_BLOCK_n__`` placeholders
are swapped for private-use sentinels before markdown-it sees the text, so
their contents are never read as emphasis or html. A span alone on its lines
becomes its own block. Spans outside fenced or indented code are the only ones
swapped.
"""

import functools
import re
from typing import List, Set, Tuple

from markdown_it import MarkdownIt
from markdown_it.tree import SyntaxTreeNode

from .nodes import (
    Generic,
    Heading,
    Html,
    ListItem,
    ListNode,
    Node,
    Paragraph,
    Root,
    Table,
    TableCell,
    TableRow,
    Text,
    ThematicBreak,
)
from .utils.text_helpers import extract_table_blocks, filter_think_tags

SENTINEL_OPEN = '\ue000'
SENTINEL_CLOSE = '\ue001'
SENTINEL_RE = re.compile(f'{SENTINEL_OPEN}(\\d+){SENTINEL_CLOSE}')

# Span kinds: restored into text, split out as Html, own block, placeholder block
INLINE = 'inline'
HTML = 'html'
BLOCK = 'block'
PLACEHOLDER = 'placeholder'

INLINE_TYPES = {
    'strong': 'strong',
    'em': 'emphasis',
}


@functools.lru_cache(maxsize=None)
def _markdown() -> MarkdownIt:
    md = MarkdownIt('commonmark')
    md.enable('table')
    return md


@functools.lru_cache(maxsize=None)
def _span_re(equation_tag: str, diagram_tag: str) -> re.Pattern:
    eq = re.escape(equation_tag)
    dg = re.escape(diagram_tag)
    return re.compile(
        rf'<(?P<tag>{eq}|{dg}|table)\b[^>]*>[\s\S]*?</(?P=tag)\s*>|(?P<ph>__TABLE_BLOCK_\d+__)',
        re.I,
    )


def _code_lines(source: str) -> Set[int]:
    """Line numbers covered by fenced or indented code."""
    lines: Set[int] = set()
    for tok in _markdown().parse(source):
        if tok.type in ('fence', 'code_block') and tok.map:
            lines.update(range(tok.map[0], tok.map[1]))
    return lines


class _Spans:
    """Protected spans of one parse, indexed by sentinel number."""

    def __init__(self, equation_tag: str, diagram_tag: str):
        self.equation_tag = equation_tag.lower()
        self.pattern = _span_re(equation_tag, diagram_tag)
        self.items: List[Tuple[str, str]] = []

    def _add(self, kind: str, raw: str) -> str:
        self.items.append((kind, raw))
        return f'{SENTINEL_OPEN}{len(self.items) - 1}{SENTINEL_CLOSE}'

    def _kind(self, m: re.Match, alone: bool) -> str:
        if m.group('ph'):
            return PLACEHOLDER if alone else INLINE
        if m.group('tag').lower() == self.equation_tag:
            return BLOCK if alone else INLINE
        return BLOCK if alone else HTML

    def protect(self, source: str, allow_blocks: bool = True) -> str:
        skip = _code_lines(source) if allow_blocks else set()
        out: List[str] = []
        pos = 0
        for m in self.pattern.finditer(source):
            if source.count('\n', 0, m.start()) in skip:
                continue
            line_start = source.rfind('\n', 0, m.start()) + 1
            line_end = source.find('\n', m.end())
            if line_end == -1:
                line_end = len(source)
            lead = source[line_start : m.start()]
            alone = (
                allow_blocks
                and lead.strip() == ''
                and len(lead) <= 3
                and source[m.end() : line_end].strip() == ''
            )
            kind = self._kind(m, alone)
            if alone:
                out.append(source[pos:line_start])
                out.append(f'\n\n{lead}{self._add(kind, m.group(0))}\n\n')
            else:
                out.append(source[pos : m.start()])
                out.append(self._add(kind, m.group(0)))
            pos = m.end()
        out.append(source[pos:])
        return ''.join(out)

    def kind_of(self, text: str) -> str:
        """Kind of the span when ``text`` is exactly one sentinel, else ''."""
        m = SENTINEL_RE.fullmatch(text.strip())
        return self.items[int(m.group(1))][0] if m else ''

    def raw_of(self, text: str) -> str:
        return self.items[int(SENTINEL_RE.fullmatch(text.strip()).group(1))][1]

    def restore(self, text: str) -> str:
        return SENTINEL_RE.sub(lambda m: self.items[int(m.group(1))][1], text)

    def expand(self, text: str) -> List[Node]:
        """Restore a text run, splitting html spans out as their own nodes."""
        out: List[Node] = []
        pos = 0
        for m in SENTINEL_RE.finditer(text):
            kind, raw = self.items[int(m.group(1))]
            if kind != HTML:
                continue
            out.append(Text(value=self.restore(text[pos : m.start()])))
            out.append(Html(value=raw))
            pos = m.end()
        out.append(Text(value=self.restore(text[pos:])))
        return [n for n in out if not (isinstance(n, Text) and n.value == '')]


class _TreeBuilder:
    """Converts a markdown-it syntax tree into document nodes."""

    def __init__(self, spans: _Spans, diagram_tag: str):
        self.spans = spans
        self.diagram_tag = diagram_tag

    def inline(self, nodes) -> Tuple[Node, ...]:
        out: List[Node] = []
        buf: List[str] = []

        def flush():
            if buf:
                out.extend(self.spans.expand(''.join(buf)))
                buf.clear()

        for node in nodes:
            t = node.type
            if t in ('text', 'html_inline'):
                buf.append(node.content)
            elif t in ('softbreak', 'hardbreak'):
                buf.append('\n')
            else:
                flush()
                if t == 'code_inline':
                    out.append(Generic(kind='inlineCode', value=self.spans.restore(node.content)))
                elif t in INLINE_TYPES:
                    out.append(Generic(kind=INLINE_TYPES[t], children=self.inline(node.children)))
                elif t == 'link':
                    out.append(
                        Generic(kind='link', children=self.inline(node.children), value=node.attrs.get('href'))
                    )
                elif t == 'image':
                    out.append(Generic(kind='image', value=self.spans.restore(node.content)))
                else:
                    out.append(Generic(kind=t, children=self.inline(node.children)))
        flush()
        return tuple(out)

    def _inline_of(self, node) -> Tuple[Node, ...]:
        return tuple(n for child in node.children for n in self.inline(child.children))

    def _code(self, code: str, info: str = '') -> Node:
        code = self.spans.restore(code).rstrip('\n')
        lang = info.split()[0].lower() if info.strip() else ''
        if lang == self.diagram_tag.lower():
            return Html(value=f"<{self.diagram_tag}>\n{code}\n</{self.diagram_tag}>")
        return Paragraph(children=(Text(value=code),) if code.strip() else ())

    def blocks(self, nodes) -> Tuple[Node, ...]:
        return tuple(self.block(n) for n in nodes)

    def block(self, node) -> Node:
        t = node.type
        if t == 'paragraph':
            content = node.children[0].content if node.children else ''
            kind = self.spans.kind_of(content)
            if kind == BLOCK:
                return Html(value=self.spans.raw_of(content).strip())
            if kind == PLACEHOLDER:
                return Text(value=self.spans.raw_of(content))
            return Paragraph(children=self._inline_of(node))
        if t == 'heading':
            return Heading(depth=int(node.tag[1]), children=self._inline_of(node))
        if t in ('bullet_list', 'ordered_list'):
            ordered = t == 'ordered_list'
            return ListNode(
                children=self.blocks(node.children),
                ordered=ordered,
                start=int(node.attrs.get('start', 1)) if ordered else None,
            )
        if t == 'list_item':
            return ListItem(children=self.blocks(node.children))
        if t == 'table':
            rows = [row for section in node.children for row in section.children]
            return Table(
                children=tuple(
                    TableRow(children=tuple(TableCell(children=self._inline_of(cell)) for cell in row.children))
                    for row in rows
                )
            )
        if t == 'hr':
            return ThematicBreak()
        if t == 'html_block':
            return Html(value=self.spans.restore(node.content).strip())
        if t == 'fence':
            return self._code(node.content, node.info)
        if t == 'code_block':
            return self._code(node.content)
        if t == 'blockquote':
            return Generic(kind='blockquote', children=self.blocks(node.children))
        return Generic(kind=t, children=self.blocks(node.children))


def _normalize(text: str) -> str:
    text = (text or '').replace('\r\n', '\n').replace('\r', '\n')
    return text.replace(SENTINEL_OPEN, '').replace(SENTINEL_CLOSE, '')


def parse_inline(text: str, equation_tag: str = 'equation', diagram_tag: str = 'mermaid') -> Tuple[Node, ...]:
    """Split inline markdown into text, emphasis, strong, code, link and html nodes.

    Equation spans and table placeholders are kept verbatim inside text so
    their contents are never read as emphasis.
    """
    spans = _Spans(equation_tag, diagram_tag)
    protected = spans.protect(_normalize(text), allow_blocks=False)
    tree = SyntaxTreeNode(_markdown().parseInline(protected))
    builder = _TreeBuilder(spans, diagram_tag)
    return tuple(n for child in tree.children for n in builder.inline(child.children))


class MarkdownParser:
    """Block parser producing the document node tree."""

    def __init__(self, equation_tag: str = 'equation', diagram_tag: str = 'mermaid'):
        self.equation_tag = equation_tag
        self.diagram_tag = diagram_tag

    def inline(self, text: str) -> Tuple[Node, ...]:
        return parse_inline(text, self.equation_tag, self.diagram_tag)

    def parse(self, text: str) -> Root:
        spans = _Spans(self.equation_tag, self.diagram_tag)
        protected = spans.protect(_normalize(text))
        tree = SyntaxTreeNode(_markdown().parse(protected))
        return Root(children=_TreeBuilder(spans, self.diagram_tag).blocks(tree.children))


def parse_markdown(text: str, equation_tag: str = 'equation', diagram_tag: str = 'mermaid') -> Root:
    return MarkdownParser(equation_tag, diagram_tag).parse(text)


def prepare_content(text: str) -> Tuple[str, List[str]]:
    """Drop reasoning blocks and pull tables out into numbered placeholders."""
    return extract_table_blocks(filter_think_tags(text))


def parse_document(
    text: str, equation_tag: str = 'equation', diagram_tag: str = 'mermaid'
) -> Tuple[Root, List[str]]:
    """Prepare raw model output and parse it. Returns (tree, table_blocks)."""
    clean, blocks = prepare_content(text)
    return parse_markdown(clean, equation_tag, diagram_tag), blocks
