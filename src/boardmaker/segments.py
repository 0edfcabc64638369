import re
from dataclasses import dataclass
from typing import Iterator

TEXT = 'text'
EQUATION = 'equation'


@dataclass(frozen=True)
class Segment:
    kind: str  # 'text' | 'equation'
    content: str


def marker_pattern(tag: str = 'equation') -> re.Pattern:
    t = re.escape(tag)
    return re.compile(rf'<{t}>(.*?)</{t}>', re.S)


def has_markers(text: str, tag: str = 'equation') -> bool:
    return bool(text) and marker_pattern(tag).search(text) is not None


class TextSegments:
    """Lazy, restartable sequence of text/equation segments.

    Each iteration rescans the source text, so the object can be walked more
    than once. Text without any marker, the empty string included, comes back
    whole as one segment. Otherwise whitespace-only text runs around markers
    are dropped and equation content is trimmed. An opening marker with no
    closing marker is left as literal text.
    """

    def __init__(self, text: str, tag: str = 'equation'):
        self.text = text or ''
        self.tag = tag
        self._pattern = marker_pattern(tag)

    def __iter__(self) -> Iterator[Segment]:
        if self._pattern.search(self.text) is None:
            yield Segment(TEXT, self.text)
            return
        pos = 0
        for m in self._pattern.finditer(self.text):
            before = self.text[pos : m.start()]
            if before.strip():
                yield Segment(TEXT, before)
            yield Segment(EQUATION, m.group(1).strip())
            pos = m.end()
        rest = self.text[pos:]
        if rest.strip():
            yield Segment(TEXT, rest)

    def __repr__(self):
        return f"TextSegments({self.text!r}, tag={self.tag!r})"


def segment_text(text: str, tag: str = 'equation') -> TextSegments:
    """Split a text blob into text and equation segments."""
    return TextSegments(text, tag)
