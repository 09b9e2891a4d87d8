"""Page host: geometry, screenshots and surface discovery for a Playwright page."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from canvaswatch.capture.surface import CanvasSurface
from canvaswatch.errors import ScreenshotUnavailable

logger = logging.getLogger(__name__)


class ViewportGeometry(Protocol):
    async def viewport_size(self) -> tuple[float, float]: ...

    async def device_scale_factor(self) -> float: ...

    async def wait_for_paint(self, extra_ms: int = 0) -> None:
        """Wait for the next paint, then ``extra_ms`` more."""
        ...


class ScreenshotProvider(Protocol):
    async def capture_viewport(self, target_context: Optional[str] = None) -> bytes:
        """Encoded image of the whole visible viewport.

        Raises ScreenshotUnavailable when no image can be supplied.
        """
        ...


_NEXT_PAINT_JS = "() => new Promise((r) => requestAnimationFrame(() => requestAnimationFrame(() => r())))"
_VIEWPORT_JS = "() => [window.innerWidth, window.innerHeight]"
_DPR_JS = "() => window.devicePixelRatio || 1"

# Page-side ids live in a WeakMap so the watcher never keeps a canvas alive.
_SURFACE_ID_JS = """(el) => {
    const store = (window.__canvaswatch = window.__canvaswatch || { ids: new WeakMap(), next: 0 });
    let id = store.ids.get(el);
    if (!id) {
        id = 'canvas-' + (++store.next);
        store.ids.set(el, id);
    }
    return id;
}"""


class PageHost:
    """Implements the viewport geometry and screenshot collaborators."""

    def __init__(self, page: Page):
        self.page = page
        self._surfaces: dict[str, CanvasSurface] = {}

    async def viewport_size(self) -> tuple[float, float]:
        width, height = await self.page.evaluate(_VIEWPORT_JS)
        return float(width), float(height)

    async def device_scale_factor(self) -> float:
        return float(await self.page.evaluate(_DPR_JS))

    async def wait_for_paint(self, extra_ms: int = 0) -> None:
        await self.page.evaluate(_NEXT_PAINT_JS)
        if extra_ms:
            await self.page.wait_for_timeout(extra_ms)

    async def capture_viewport(self, target_context: Optional[str] = None) -> bytes:
        if self.page.is_closed():
            raise ScreenshotUnavailable("Page is closed")
        try:
            await self.page.bring_to_front()
            return await self.page.screenshot(type="png", full_page=False)
        except PlaywrightError as e:
            logger.warning("Viewport screenshot failed (context=%s): %s", target_context, e)
            raise ScreenshotUnavailable(str(e)) from e

    async def discover_surfaces(self, selector: str = "canvas") -> list[CanvasSurface]:
        """Current surfaces matching ``selector``, in document order.

        One CanvasSurface is kept per page-side id; handles for elements no
        longer in the DOM are disposed.
        """
        handles = await self.page.query_selector_all(selector)
        found: list[CanvasSurface] = []
        seen: set[str] = set()
        for handle in handles:
            try:
                surface_id = await handle.evaluate(_SURFACE_ID_JS)
            except PlaywrightError as e:
                logger.debug("Skipping detached element during discovery: %s", e)
                continue
            existing = self._surfaces.get(surface_id)
            if existing is None:
                existing = CanvasSurface(handle, surface_id)
                self._surfaces[surface_id] = existing
                logger.debug("Discovered surface %s", surface_id)
            else:
                await CanvasSurface(handle, surface_id).dispose()
            if surface_id not in seen:
                seen.add(surface_id)
                found.append(existing)

        for surface_id in [sid for sid in self._surfaces if sid not in seen]:
            logger.debug("Surface %s left the page", surface_id)
            await self._surfaces.pop(surface_id).dispose()
        return found

    def surface_source(self, selector: str = "canvas"):
        """Async callable re-enumerating surfaces, for CanvasWatcher.start()."""
        async def _source() -> list[CanvasSurface]:
            return await self.discover_surfaces(selector)
        return _source

    async def release(self) -> None:
        for surface in self._surfaces.values():
            await surface.dispose()
        self._surfaces.clear()
