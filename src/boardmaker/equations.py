"""LaTeX equation rasterization via matplotlib mathtext.

The math engine is an explicit handle rather than a global: callers build a
``MathEngine`` once and hand it to every ``EquationRasterizer`` that needs it.
Loading is lazy and happens at most once per engine, even when several
renders race to trigger it.
"""

import asyncio
import base64
import io
import threading
from typing import Optional

SVG_MIME = 'image/svg+xml'


class EquationRenderError(Exception):
    """Raised by the engine when markup cannot be turned into an image."""


class MathEngine:
    def __init__(self, fontset: str = 'cm', font_size: float = 16, dpi: int = 100):
        self.fontset = fontset
        self.font_size = font_size
        self.dpi = dpi
        self._lock = threading.Lock()
        self._ready = False
        self._mathtext = None
        self._prop = None
        self.load_count = 0

    @property
    def ready(self) -> bool:
        return self._ready

    def ensure_ready(self) -> None:
        """Load the mathtext machinery once. Safe to call from many threads."""
        if self._ready:
            return
        with self._lock:
            if self._ready:
                return
            from matplotlib import mathtext
            from matplotlib.font_manager import FontProperties

            self._prop = FontProperties(size=self.font_size, math_fontfamily=self.fontset)
            self._mathtext = mathtext
            self.load_count += 1
            self._ready = True

    def render_svg(self, markup: str) -> bytes:
        """Render markup (without surrounding dollars) to SVG bytes."""
        self.ensure_ready()
        if not markup or not markup.strip():
            raise EquationRenderError('empty equation')
        buf = io.BytesIO()
        try:
            self._mathtext.math_to_image(
                f"${markup.strip()}$", buf, prop=self._prop, dpi=self.dpi, format='svg'
            )
        except Exception as e:
            raise EquationRenderError(str(e)) from e
        data = buf.getvalue()
        if not data:
            raise EquationRenderError('renderer produced no output')
        return data


class EquationRasterizer:
    """Turn equation markup into image bytes, or None on any failure.

    Rendering runs in a worker thread and is bounded by ``timeout`` seconds.
    The reason for the most recent failure is kept in ``last_error`` so the
    caller can report it alongside its fallback.
    """

    def __init__(self, engine: MathEngine, timeout: Optional[float] = 10.0):
        self.engine = engine
        self.timeout = timeout
        self.mime_type = SVG_MIME
        self.last_error: Optional[str] = None

    async def render(self, markup: str) -> Optional[bytes]:
        self.last_error = None
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.engine.render_svg, markup), self.timeout
            )
        except asyncio.TimeoutError:
            self.last_error = f"timed out after {self.timeout}s"
        except Exception as e:
            self.last_error = str(e) or type(e).__name__
        return None


def to_data_url(data: bytes, mime_type: str = SVG_MIME) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"
