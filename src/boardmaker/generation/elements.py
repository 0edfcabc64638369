"""Primitive factories with the walker's default styling."""

from dataclasses import dataclass
from typing import Optional

from ..primitives import IdFactory, ImagePrimitive, LinePrimitive, TextPrimitive

TEXT_COLOR = '#000000'
ERROR_COLOR = '#ff0000'
NOTICE_COLOR = '#007acc'


@dataclass
class ElementFactory:
    ids: IdFactory

    def text(
        self,
        kind: str,
        x: float,
        y: float,
        text: str,
        width: float,
        height: float,
        font_size: float = 14,
        color: str = TEXT_COLOR,
    ) -> TextPrimitive:
        return TextPrimitive(
            id=self.ids.next(kind),
            x=x,
            y=y,
            width=width,
            height=height,
            stroke_color=color,
            text=text,
            font_size=font_size,
        )

    def error(self, kind: str, x: float, y: float, text: str, font_size: float = 16,
              width: float = 400, height: float = 30) -> TextPrimitive:
        return self.text(kind, x, y, text, width, height, font_size=font_size, color=ERROR_COLOR)

    def image(self, x: float, y: float, width: float, height: float, file_id: Optional[str] = None) -> ImagePrimitive:
        pid = self.ids.next('equation')
        return ImagePrimitive(
            id=pid,
            x=x,
            y=y,
            width=width,
            height=height,
            file_id=file_id or f"{pid}-file",
        )

    def rule(self, x: float, y: float, length: float = 300) -> LinePrimitive:
        return LinePrimitive(
            id=self.ids.next('line'),
            x=x,
            y=y,
            width=length,
            height=0,
            stroke_color=TEXT_COLOR,
            stroke_width=2,
            points=((0, 0), (length, 0)),
        )
