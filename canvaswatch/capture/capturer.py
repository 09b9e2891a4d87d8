"""Two-tier capture: direct encode, falling back to screenshot-and-crop."""

from __future__ import annotations

import io
import logging
import math
from typing import Optional, Protocol, Sequence

from PIL import Image

from canvaswatch.capture.host import ScreenshotProvider, ViewportGeometry
from canvaswatch.capture.surface import Surface
from canvaswatch.errors import CaptureFailed, NotReadable, ScreenshotUnavailable, SurfaceGone
from canvaswatch.models.catalog import CapturedImage, CaptureMethod, Rect

logger = logging.getLogger(__name__)


class CaptureStrategy(Protocol):
    method: CaptureMethod

    async def capture(self, surface: Surface) -> CapturedImage: ...


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def source_crop(rect: Rect, scale: float) -> tuple[int, int, int, int]:
    """Map a viewport rect to an (x, y, width, height) crop in screenshot pixels.

    The origin is clamped to be non-negative and the size to at least 1×1.
    """
    return (
        max(0, _round_half_up(rect.x * scale)),
        max(0, _round_half_up(rect.y * scale)),
        max(1, _round_half_up(rect.width * scale)),
        max(1, _round_half_up(rect.height * scale)),
    )


def crop_png(screenshot: bytes, box: tuple[int, int, int, int]) -> tuple[bytes, int, int]:
    """Crop an encoded screenshot and re-encode the region as PNG."""
    x, y, width, height = box
    with Image.open(io.BytesIO(screenshot)) as shot:
        region = shot.crop((x, y, x + width, y + height))
    buf = io.BytesIO()
    region.save(buf, format="PNG")
    return buf.getvalue(), width, height


class DirectCapture:
    """Ask the surface to encode its own pixels."""

    method: CaptureMethod = "direct"

    async def capture(self, surface: Surface) -> CapturedImage:
        data = await surface.encode_png()
        try:
            with Image.open(io.BytesIO(data)) as img:
                width, height = img.size
        except Exception as e:
            raise CaptureFailed(f"Direct capture of {surface.surface_id} is not a decodable image: {e}") from e
        return CapturedImage(data=data, width=width, height=height, method=self.method)


class FallbackCapture:
    """Screenshot the viewport and crop it to the surface's bounds.

    May scroll the host page so the surface is fully visible before sampling.
    """

    method: CaptureMethod = "fallback"

    def __init__(
        self,
        geometry: ViewportGeometry,
        screenshots: ScreenshotProvider,
        target_context: Optional[str] = None,
        scroll_settle_ms: int = 150,
        capture_settle_ms: int = 140,
    ):
        self.geometry = geometry
        self.screenshots = screenshots
        self.target_context = target_context
        self.scroll_settle_ms = scroll_settle_ms
        self.capture_settle_ms = capture_settle_ms

    async def ensure_in_view(self, surface: Surface) -> bool:
        """Scroll the surface into view unless fully visible. Returns True if it scrolled."""
        rect = await surface.bounding_rect()
        vw, vh = await self.geometry.viewport_size()
        if rect.x >= 0 and rect.y >= 0 and rect.right <= vw and rect.bottom <= vh:
            return False
        logger.debug("Scrolling %s into view (rect=%s)", surface.surface_id, rect)
        await surface.scroll_into_view()
        await self.geometry.wait_for_paint(self.scroll_settle_ms)
        return True

    async def capture(self, surface: Surface) -> CapturedImage:
        await self.ensure_in_view(surface)
        await self.geometry.wait_for_paint(self.capture_settle_ms)
        rect = await surface.bounding_rect()

        try:
            screenshot = await self.screenshots.capture_viewport(self.target_context)
        except ScreenshotUnavailable as e:
            raise CaptureFailed(f"No viewport screenshot for {surface.surface_id}: {e}") from e
        if not screenshot:
            raise CaptureFailed(f"Empty viewport screenshot for {surface.surface_id}")

        scale = await self.geometry.device_scale_factor() or 1.0
        box = source_crop(rect, scale)
        try:
            data, width, height = crop_png(screenshot, box)
        except Exception as e:
            raise CaptureFailed(f"Could not crop screenshot for {surface.surface_id}: {e}") from e
        logger.debug("Fallback crop for %s: %s at scale %.2f", surface.surface_id, box, scale)
        return CapturedImage(data=data, width=width, height=height, method=self.method)


class TieredCapturer:
    """Try each capture strategy in order until one produces an image."""

    def __init__(self, strategies: Sequence[CaptureStrategy]):
        if not strategies:
            raise ValueError("At least one capture strategy is required")
        self.strategies = list(strategies)

    async def capture(self, surface: Surface) -> CapturedImage:
        errors: list[str] = []
        for strategy in self.strategies:
            try:
                return await strategy.capture(surface)
            except SurfaceGone:
                raise
            except (NotReadable, CaptureFailed) as e:
                logger.debug("%s capture of %s failed: %s", strategy.method, surface.surface_id, e)
                errors.append(f"{strategy.method}: {e}")
        raise CaptureFailed(f"All capture tiers failed for {surface.surface_id} ({'; '.join(errors)})")


def build_capturer(
    geometry: ViewportGeometry,
    screenshots: ScreenshotProvider | None,
    target_context: Optional[str] = None,
    scroll_settle_ms: int = 150,
    capture_settle_ms: int = 140,
) -> TieredCapturer:
    """Direct tier, plus the fallback tier when a screenshot provider exists."""
    strategies: list[CaptureStrategy] = [DirectCapture()]
    if screenshots is not None:
        strategies.append(FallbackCapture(
            geometry, screenshots,
            target_context=target_context,
            scroll_settle_ms=scroll_settle_ms,
            capture_settle_ms=capture_settle_ms,
        ))
    return TieredCapturer(strategies)
