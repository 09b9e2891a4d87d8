"""Surfaces: rendered regions the watcher samples and captures."""

from __future__ import annotations

import base64
import logging
from typing import Optional, Protocol, runtime_checkable

from PIL import Image
from playwright.async_api import ElementHandle, Error as PlaywrightError

from canvaswatch.errors import NotReadable, SurfaceGone
from canvaswatch.models.catalog import Rect

logger = logging.getLogger(__name__)


@runtime_checkable
class Surface(Protocol):
    """A rendered region owned by the page, identified by a stable id."""

    @property
    def surface_id(self) -> str: ...

    async def dimensions(self) -> tuple[int, int]:
        """Current pixel width and height."""
        ...

    async def read_pixels(self, size: Optional[tuple[int, int]] = None) -> Image.Image:
        """Current content, optionally pre-scaled to ``size``.

        Raises NotReadable when access is restricted.
        """
        ...

    async def encode_png(self) -> bytes:
        """Current content encoded by the surface itself. May raise NotReadable."""
        ...

    async def bounding_rect(self) -> Rect:
        """Bounding rectangle in viewport CSS pixels."""
        ...

    async def scroll_into_view(self) -> None: ...


_DIMENSIONS_JS = "(c) => [c.width | 0, c.height | 0]"

# Mirrors a 2D drawImage downsample; getImageData throws on tainted canvases.
_READ_PIXELS_JS = """(c, size) => {
    const w = size ? size[0] : c.width;
    const h = size ? size[1] : c.height;
    const off = document.createElement('canvas');
    off.width = w;
    off.height = h;
    const ctx = off.getContext('2d', { willReadFrequently: true });
    try {
        ctx.drawImage(c, 0, 0, w, h);
        return { width: w, height: h, data: Array.from(ctx.getImageData(0, 0, w, h).data) };
    } catch (e) {
        return null;
    }
}"""

_ENCODE_PNG_JS = """(c) => {
    try {
        return c.toDataURL('image/png');
    } catch (e) {
        return null;
    }
}"""

_RECT_JS = """(el) => {
    const r = el.getBoundingClientRect();
    return { x: r.x, y: r.y, width: r.width, height: r.height };
}"""

_SCROLL_JS = "(el) => el.scrollIntoView({ block: 'center', inline: 'center' })"


def decode_data_url(data_url: str | None) -> bytes:
    """Decode a ``data:image/...;base64,`` URL, raising NotReadable if absent."""
    if not data_url or not data_url.startswith("data:image/"):
        raise NotReadable("Surface did not produce an image data URL")
    _, _, payload = data_url.partition(",")
    return base64.b64decode(payload)


class CanvasSurface:
    """A ``<canvas>`` element reached through a Playwright element handle."""

    def __init__(self, handle: ElementHandle, surface_id: str):
        self.handle = handle
        self._surface_id = surface_id

    @property
    def surface_id(self) -> str:
        return self._surface_id

    def __repr__(self) -> str:
        return f"CanvasSurface({self._surface_id!r})"

    async def _evaluate(self, script: str, arg=None):
        try:
            return await self.handle.evaluate(script, arg)
        except PlaywrightError as e:
            raise SurfaceGone(f"Canvas {self._surface_id} unavailable: {e}") from e

    async def dimensions(self) -> tuple[int, int]:
        width, height = await self._evaluate(_DIMENSIONS_JS)
        return int(width), int(height)

    async def read_pixels(self, size: Optional[tuple[int, int]] = None) -> Image.Image:
        result = await self._evaluate(_READ_PIXELS_JS, list(size) if size else None)
        if result is None:
            raise NotReadable(f"Canvas {self._surface_id} is tainted")
        return Image.frombytes("RGBA", (result["width"], result["height"]), bytes(result["data"]))

    async def encode_png(self) -> bytes:
        data_url = await self._evaluate(_ENCODE_PNG_JS)
        return decode_data_url(data_url)

    async def bounding_rect(self) -> Rect:
        r = await self._evaluate(_RECT_JS)
        return Rect(x=r["x"], y=r["y"], width=r["width"], height=r["height"])

    async def scroll_into_view(self) -> None:
        await self._evaluate(_SCROLL_JS)

    async def dispose(self) -> None:
        try:
            await self.handle.dispose()
        except PlaywrightError as e:
            logger.debug("Dispose of %s failed: %s", self._surface_id, e)
