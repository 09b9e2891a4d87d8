"""Browser launch helpers for watch sessions."""

from __future__ import annotations

from playwright.async_api import Browser, BrowserContext, Playwright

from canvaswatch.models.config import BrowserConfig


async def launch_browser(playwright: Playwright, config: BrowserConfig) -> Browser:
    """Launch Chromium. Background throttling is disabled so animations keep painting."""
    return await playwright.chromium.launch(
        headless=config.headless,
        args=[
            "--disable-background-timer-throttling",
            "--disable-renderer-backgrounding",
        ],
    )


async def create_context(browser: Browser, config: BrowserConfig) -> BrowserContext:
    """Create a browser context with the configured viewport and pixel density."""
    context_kwargs = {
        "viewport": {"width": config.viewport.width, "height": config.viewport.height},
        "device_scale_factor": config.device_scale_factor,
    }
    if config.user_agent:
        context_kwargs["user_agent"] = config.user_agent
    return await browser.new_context(**context_kwargs)
