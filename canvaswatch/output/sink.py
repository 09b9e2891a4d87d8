"""Delivery sinks: where auto-delivered captures go."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Protocol

from canvaswatch.models.catalog import CatalogEntry

logger = logging.getLogger(__name__)


class DeliverySink(Protocol):
    async def deliver(self, entry: CatalogEntry) -> None: ...


class DirectorySink:
    """Writes each delivered entry to ``root/subdir/<name>``."""

    def __init__(self, root: Path, subdir: str = "canvas_auto"):
        self.directory = Path(root) / subdir if subdir else Path(root)
        self.delivered: list[Path] = []

    async def deliver(self, entry: CatalogEntry) -> None:
        path = self.directory / entry.name
        await asyncio.to_thread(self._write, path, entry.data)
        self.delivered.append(path)
        logger.info("Delivered %s", path)

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
