"""Paint-cycle scheduling for the watch loop."""

from __future__ import annotations

from typing import Protocol

from playwright.async_api import Page


class FrameScheduler(Protocol):
    async def wait_for_frame(self) -> None:
        """Resolve at the host's next paint opportunity."""
        ...


class PageFrameScheduler:
    """Ticks on the page's requestAnimationFrame, so a hidden page does not tick."""

    def __init__(self, page: Page):
        self.page = page

    async def wait_for_frame(self) -> None:
        await self.page.evaluate("() => new Promise((r) => requestAnimationFrame(() => r()))")
