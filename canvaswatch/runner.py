"""Session runner: opens the target page, watches or scans it, exports the catalog."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path

from playwright.async_api import Page, async_playwright

from canvaswatch.capture.capturer import build_capturer
from canvaswatch.capture.host import PageHost
from canvaswatch.capture.scanner import scan_surfaces
from canvaswatch.catalog.registry import Catalog
from canvaswatch.models.catalog import CatalogEntry
from canvaswatch.models.config import RunConfig
from canvaswatch.output.export import export_catalog
from canvaswatch.output.sink import DirectorySink
from canvaswatch.utils.browser import create_context, launch_browser
from canvaswatch.watch.scheduler import PageFrameScheduler
from canvaswatch.watch.watcher import CanvasWatcher

logger = logging.getLogger(__name__)


class WatchRunner:
    """Drives a watch or scan session against a live page."""

    def __init__(self, config: RunConfig):
        self.config = config
        self.output_dir = Path(config.output_dir)

    def run_watch(self) -> dict:
        """Watch the page for the configured duration."""
        return asyncio.run(self._with_page(self._watch))

    def run_scan(self) -> dict:
        """Capture every matching surface once."""
        return asyncio.run(self._with_page(self._scan))

    async def _with_page(self, body) -> dict:
        start = time.time()
        async with async_playwright() as p:
            browser = await launch_browser(p, self.config.browser)
            try:
                context = await create_context(browser, self.config.browser)
                page = await context.new_page()
                logger.info("Opening %s", self.config.target_url)
                await page.goto(self.config.target_url, wait_until=self.config.browser.wait_until)
                host = PageHost(page)
                try:
                    entries = await body(page, host)
                finally:
                    await host.release()
            finally:
                await browser.close()

        manifest = export_catalog(
            entries,
            self.output_dir,
            rename_base=self.config.rename_base,
            rename_pad=self.config.rename_pad,
            extra={"target_url": self.config.target_url, "selector": self.config.selector},
        )
        duration = time.time() - start
        return {
            "duration": round(duration, 2),
            "frames": len(entries),
            "direct": sum(1 for e in entries if e.method == "direct"),
            "fallback": sum(1 for e in entries if e.method == "fallback"),
            "manifest": str(manifest),
        }

    def _capturer(self, host: PageHost):
        watch = self.config.watch
        return build_capturer(
            host, host,
            target_context=watch.target_context,
            scroll_settle_ms=watch.scroll_settle_ms,
            capture_settle_ms=watch.capture_settle_ms,
        )

    async def _watch(self, page: Page, host: PageHost) -> tuple[CatalogEntry, ...]:
        watch = self.config.watch
        sink = DirectorySink(self.output_dir, watch.delivery_subdir) if watch.auto_deliver else None
        watcher = CanvasWatcher(
            self._capturer(host),
            scheduler=PageFrameScheduler(page),
            sink=sink,
        )
        closed = asyncio.Event()
        page.on("close", lambda _: closed.set())

        watcher.start(host.surface_source(self.config.selector), watch)
        try:
            await asyncio.wait_for(closed.wait(), timeout=self.config.duration_seconds)
            logger.info("Page closed before the watch duration elapsed")
        except asyncio.TimeoutError:
            pass
        finally:
            watcher.stop()
            await watcher.wait_stopped()
        return watcher.catalog.snapshot()

    async def _scan(self, page: Page, host: PageHost) -> tuple[CatalogEntry, ...]:
        catalog = Catalog()
        surfaces = await host.discover_surfaces(self.config.selector)
        await scan_surfaces(surfaces, self._capturer(host), catalog)
        return catalog.snapshot()
