import pathlib
import warnings
from typing import Dict, Optional, Union

# Width of one character as a fraction of the font size when no font file is
# available. Table column sizing uses a generous 0.8, wrapping a tighter 0.6.
WIDTH_FACTOR = 0.8
WRAP_FACTOR = 0.6


class AverageCharMeasurer:
    """Estimate text width as characters x factor x font size."""

    def __init__(self, factor: float = WIDTH_FACTOR):
        self.factor = factor

    def text_width(self, text: str, font_size: float) -> float:
        return len(text) * self.factor * font_size


class FontMetricsMeasurer:
    """Measure text with real glyph advances read from a TTF/OTF file.

    Characters the font does not map fall back to the average-width estimate.
    """

    def __init__(
        self, font_path: Union[str, pathlib.Path], fallback_factor: float = WIDTH_FACTOR
    ):
        from fontTools.ttLib import TTFont

        self.font_path = pathlib.Path(font_path)
        self.fallback_factor = fallback_factor
        t = TTFont(str(self.font_path), lazy=True)
        try:
            self.units_per_em = float(t['head'].unitsPerEm)
            cmap = t.getBestCmap() or {}
            hmtx = t['hmtx']
            self._advances: Dict[int, float] = {}
            for codepoint, glyph in cmap.items():
                try:
                    self._advances[codepoint] = float(hmtx[glyph][0])
                except KeyError:
                    continue
            nm = t.get('name')
            self.family: Optional[str] = nm.getBestFamilyName() if nm else None
        finally:
            t.close()

    def char_width(self, ch: str, font_size: float) -> float:
        adv = self._advances.get(ord(ch))
        if adv is None:
            return self.fallback_factor * font_size
        return adv / self.units_per_em * font_size

    def text_width(self, text: str, font_size: float) -> float:
        return sum(self.char_width(ch, font_size) for ch in text)


def load_measurer(font_file: Optional[str]):
    """Return a font-backed measurer for font_file, or the average estimate.

    An unreadable font file is reported and replaced by the estimate.
    """
    if not font_file:
        return AverageCharMeasurer()
    try:
        return FontMetricsMeasurer(font_file)
    except Exception as e:
        warnings.warn(
            f"Could not read font metrics from {font_file}: {e}; using average widths",
            UserWarning,
        )
        return AverageCharMeasurer()
