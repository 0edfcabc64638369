"""Text cleanup helpers shared by the table, diagram and html handlers."""

import re
from typing import List, Tuple

TAG_RE = re.compile(r'<[^>]*>')
WS_RE = re.compile(r'\s+')
THINK_RE = re.compile(r'<think>[\s\S]*?</think>', re.I)
TABLE_BLOCK_RE = re.compile(r'<table>([\s\S]*?)</table>', re.I)

PLACEHOLDER_PREFIX = '__TABLE_BLOCK_'
PLACEHOLDER_RE = re.compile(r'__TABLE_BLOCK_(\d+)__')
PLACEHOLDER_FULL_RE = re.compile(r'^\s*__TABLE_BLOCK_(\d+)__\s*$')

# Order matters: &amp; goes last so "&amp;lt;" decodes to "&lt;" and not "<"
_ENTITIES = (
    ('&nbsp;', ' '),
    ('&lt;', '<'),
    ('&gt;', '>'),
    ('&quot;', '"'),
    ('&#39;', "'"),
    ('&amp;', '&'),
)


def decode_entities(text: str) -> str:
    for ent, ch in _ENTITIES:
        text = text.replace(ent, ch)
    return text


def escape_entities(text: str) -> str:
    """Escape & < > " ' for embedding inside a quoted diagram label."""
    return (
        text.replace('&', '&amp;')
        .replace('<', '&lt;')
        .replace('>', '&gt;')
        .replace('"', '&quot;')
        .replace("'", '&#39;')
    )


def strip_tags(text: str) -> str:
    return TAG_RE.sub('', text or '')


def collapse_ws(text: str) -> str:
    return WS_RE.sub(' ', text).strip()


def filter_think_tags(text: str) -> str:
    """Drop model reasoning blocks (<think>...</think>)."""
    return THINK_RE.sub('', text or '').strip()


def extract_table_blocks(text: str) -> Tuple[str, List[str]]:
    """Swap each <table>...</table> for a numbered placeholder.

    Returns the rewritten text and the inner markup of every table, indexed by
    placeholder number.
    """
    blocks: List[str] = []

    def _sub(m):
        blocks.append(m.group(1).strip())
        return f"{PLACEHOLDER_PREFIX}{len(blocks) - 1}__"

    return TABLE_BLOCK_RE.sub(_sub, text or ''), blocks


def placeholder_index(text: str):
    """Return n when text is exactly one table placeholder, else None."""
    m = PLACEHOLDER_FULL_RE.match(text or '')
    return int(m.group(1)) if m else None


def break_lines(text: str, max_words_per_line: int = 8) -> str:
    words = text.split(' ')
    lines = [' '.join(words[i : i + max_words_per_line]) for i in range(0, len(words), max_words_per_line)]
    return '\n'.join(lines)
