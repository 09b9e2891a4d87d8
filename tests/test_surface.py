"""Tests for the Playwright-backed canvas surface."""

import base64
from unittest.mock import AsyncMock

import pytest
from playwright.async_api import Error as PlaywrightError

from canvaswatch.capture.surface import CanvasSurface, Surface, decode_data_url
from canvaswatch.errors import NotReadable, SurfaceGone
from canvaswatch.models.catalog import Rect

from fakes import FakeSurface, png_bytes, solid_image


@pytest.fixture
def handle() -> AsyncMock:
    handle = AsyncMock()
    handle.evaluate = AsyncMock()
    handle.dispose = AsyncMock()
    return handle


class TestDecodeDataUrl:
    def test_decodes_payload(self):
        data = png_bytes(solid_image())
        url = "data:image/png;base64," + base64.b64encode(data).decode()
        assert decode_data_url(url) == data

    def test_missing_url_not_readable(self):
        with pytest.raises(NotReadable):
            decode_data_url(None)

    def test_blank_canvas_url_not_readable(self):
        with pytest.raises(NotReadable):
            decode_data_url("data:,")


class TestCanvasSurface:
    """Tests for CanvasSurface."""

    def test_satisfies_protocol(self, handle):
        assert isinstance(CanvasSurface(handle, "canvas-1"), Surface)
        assert isinstance(FakeSurface("c1", solid_image()), Surface)

    @pytest.mark.asyncio
    async def test_dimensions(self, handle):
        handle.evaluate.return_value = [300, 150]
        assert await CanvasSurface(handle, "canvas-1").dimensions() == (300, 150)

    @pytest.mark.asyncio
    async def test_read_pixels_builds_image(self, handle):
        handle.evaluate.return_value = {"width": 2, "height": 1, "data": [255, 0, 0, 255, 0, 0, 255, 255]}
        img = await CanvasSurface(handle, "canvas-1").read_pixels((2, 1))

        assert img.size == (2, 1)
        assert img.getpixel((0, 0)) == (255, 0, 0, 255)
        assert img.getpixel((1, 0)) == (0, 0, 255, 255)
        assert handle.evaluate.call_args.args[1] == [2, 1]

    @pytest.mark.asyncio
    async def test_read_pixels_full_size(self, handle):
        handle.evaluate.return_value = {"width": 1, "height": 1, "data": [0, 0, 0, 255]}
        await CanvasSurface(handle, "canvas-1").read_pixels()
        assert handle.evaluate.call_args.args[1] is None

    @pytest.mark.asyncio
    async def test_tainted_read_raises_not_readable(self, handle):
        handle.evaluate.return_value = None
        with pytest.raises(NotReadable):
            await CanvasSurface(handle, "canvas-1").read_pixels((32, 32))

    @pytest.mark.asyncio
    async def test_encode_png(self, handle):
        data = png_bytes(solid_image())
        handle.evaluate.return_value = "data:image/png;base64," + base64.b64encode(data).decode()
        assert await CanvasSurface(handle, "canvas-1").encode_png() == data

    @pytest.mark.asyncio
    async def test_tainted_encode_raises_not_readable(self, handle):
        handle.evaluate.return_value = None
        with pytest.raises(NotReadable):
            await CanvasSurface(handle, "canvas-1").encode_png()

    @pytest.mark.asyncio
    async def test_bounding_rect(self, handle):
        handle.evaluate.return_value = {"x": 8, "y": 120.5, "width": 300, "height": 150}
        rect = await CanvasSurface(handle, "canvas-1").bounding_rect()
        assert rect == Rect(8, 120.5, 300, 150)
        assert rect.bottom == 270.5

    @pytest.mark.asyncio
    async def test_detached_handle_raises_surface_gone(self, handle):
        handle.evaluate.side_effect = PlaywrightError("Element is not attached to the DOM")
        surface = CanvasSurface(handle, "canvas-1")
        with pytest.raises(SurfaceGone):
            await surface.dimensions()
        with pytest.raises(SurfaceGone):
            await surface.scroll_into_view()

    @pytest.mark.asyncio
    async def test_dispose_tolerates_closed_page(self, handle):
        handle.dispose.side_effect = PlaywrightError("Target closed")
        await CanvasSurface(handle, "canvas-1").dispose()
        handle.dispose.assert_awaited_once()
