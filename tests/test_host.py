"""Tests for the Playwright page host and frame scheduler."""

import pytest
from playwright.async_api import Error as PlaywrightError

from canvaswatch.capture.host import PageHost
from canvaswatch.errors import ScreenshotUnavailable
from canvaswatch.watch.scheduler import PageFrameScheduler

from fakes import make_handle


class TestPageHostGeometry:
    """Tests for viewport geometry."""

    @pytest.mark.asyncio
    async def test_viewport_size(self, mock_page):
        mock_page.evaluate.return_value = [1024, 768]
        assert await PageHost(mock_page).viewport_size() == (1024.0, 768.0)

    @pytest.mark.asyncio
    async def test_device_scale_factor(self, mock_page):
        mock_page.evaluate.return_value = 2
        assert await PageHost(mock_page).device_scale_factor() == 2.0

    @pytest.mark.asyncio
    async def test_wait_for_paint_with_settle(self, mock_page):
        await PageHost(mock_page).wait_for_paint(150)
        mock_page.evaluate.assert_awaited_once()
        mock_page.wait_for_timeout.assert_awaited_once_with(150)

    @pytest.mark.asyncio
    async def test_wait_for_paint_without_settle(self, mock_page):
        await PageHost(mock_page).wait_for_paint()
        mock_page.wait_for_timeout.assert_not_awaited()


class TestPageHostScreenshots:
    """Tests for viewport screenshots."""

    @pytest.mark.asyncio
    async def test_capture_viewport(self, mock_page):
        mock_page.screenshot.return_value = b"\x89PNG"
        assert await PageHost(mock_page).capture_viewport() == b"\x89PNG"
        mock_page.bring_to_front.assert_awaited_once()
        mock_page.screenshot.assert_awaited_once_with(type="png", full_page=False)

    @pytest.mark.asyncio
    async def test_closed_page_unavailable(self, mock_page):
        mock_page.is_closed.return_value = True
        with pytest.raises(ScreenshotUnavailable):
            await PageHost(mock_page).capture_viewport()
        mock_page.screenshot.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_screenshot_error_unavailable(self, mock_page):
        mock_page.screenshot.side_effect = PlaywrightError("Target crashed")
        with pytest.raises(ScreenshotUnavailable):
            await PageHost(mock_page).capture_viewport("tab-1")


class TestSurfaceDiscovery:
    """Tests for discover_surfaces."""

    @pytest.mark.asyncio
    async def test_discovers_in_document_order(self, mock_page):
        mock_page.query_selector_all.return_value = [make_handle("canvas-2"), make_handle("canvas-1")]
        surfaces = await PageHost(mock_page).discover_surfaces()

        assert [s.surface_id for s in surfaces] == ["canvas-2", "canvas-1"]
        mock_page.query_selector_all.assert_awaited_once_with("canvas")

    @pytest.mark.asyncio
    async def test_reuses_known_surfaces(self, mock_page):
        host = PageHost(mock_page)
        first_handle = make_handle("canvas-1")
        mock_page.query_selector_all.return_value = [first_handle]
        (first,) = await host.discover_surfaces()

        second_handle = make_handle("canvas-1")
        mock_page.query_selector_all.return_value = [second_handle]
        (second,) = await host.discover_surfaces()

        assert second is first
        second_handle.dispose.assert_awaited_once()
        first_handle.dispose.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_disposes_removed_surfaces(self, mock_page):
        host = PageHost(mock_page)
        gone = make_handle("canvas-1")
        mock_page.query_selector_all.return_value = [gone]
        await host.discover_surfaces()

        mock_page.query_selector_all.return_value = []
        assert await host.discover_surfaces() == []
        gone.dispose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_skips_detached_elements(self, mock_page):
        detached = make_handle("canvas-1")
        detached.evaluate.side_effect = PlaywrightError("Element is not attached to the DOM")
        mock_page.query_selector_all.return_value = [detached, make_handle("canvas-2")]

        surfaces = await PageHost(mock_page).discover_surfaces()
        assert [s.surface_id for s in surfaces] == ["canvas-2"]

    @pytest.mark.asyncio
    async def test_surface_source_uses_selector(self, mock_page):
        mock_page.query_selector_all.return_value = [make_handle("canvas-1")]
        source = PageHost(mock_page).surface_source("#stage canvas")

        surfaces = await source()
        assert [s.surface_id for s in surfaces] == ["canvas-1"]
        mock_page.query_selector_all.assert_awaited_once_with("#stage canvas")

    @pytest.mark.asyncio
    async def test_release_disposes_all(self, mock_page):
        handles = [make_handle("canvas-1"), make_handle("canvas-2")]
        mock_page.query_selector_all.return_value = handles
        host = PageHost(mock_page)
        await host.discover_surfaces()

        await host.release()
        for handle in handles:
            handle.dispose.assert_awaited_once()


class TestPageFrameScheduler:
    @pytest.mark.asyncio
    async def test_waits_for_animation_frame(self, mock_page):
        await PageFrameScheduler(mock_page).wait_for_frame()
        script = mock_page.evaluate.call_args.args[0]
        assert "requestAnimationFrame" in script
