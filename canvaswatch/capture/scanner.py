"""One-shot surface scan: capture every surface once, outside a watch."""

from __future__ import annotations

import logging
import time
from typing import Sequence

from canvaswatch.capture.capturer import TieredCapturer
from canvaswatch.capture.surface import Surface
from canvaswatch.catalog.registry import Catalog
from canvaswatch.errors import CaptureFailed, SurfaceGone
from canvaswatch.models.catalog import CatalogEntry

logger = logging.getLogger(__name__)


async def scan_surfaces(
    surfaces: Sequence[Surface],
    capturer: TieredCapturer,
    catalog: Catalog,
    name_template: str = "canvas_{n}.png",
) -> list[CatalogEntry]:
    """Capture each surface once and append the results to ``catalog``.

    Surfaces smaller than 1×1 are skipped. Tainted surfaces go through the
    capturer's fallback tier. ``{n}`` in the name template counts successful
    captures only, so failures leave no gaps.
    """
    entries: list[CatalogEntry] = []
    count = 1
    for surface in surfaces:
        try:
            width, height = await surface.dimensions()
            if width < 1 or height < 1:
                continue
            image = await capturer.capture(surface)
        except (CaptureFailed, SurfaceGone) as e:
            logger.warning("Scan skipped %s: %s", surface.surface_id, e)
            continue

        name = catalog.names.assign(name_template.format(n=count, surface_id=surface.surface_id))
        entry = CatalogEntry(
            name=name,
            data=image.data,
            width=width,
            height=height,
            method=image.method,
            source="scan",
            surface_id=surface.surface_id,
            sequence=count,
            captured_at=time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        )
        catalog.append(entry)
        entries.append(entry)
        count += 1

    logger.info("Scan captured %d of %d surfaces", len(entries), len(surfaces))
    return entries
