"""Catalog export: image files plus a JSON manifest."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Sequence

from canvaswatch.catalog.registry import sequential_names
from canvaswatch.models.catalog import CatalogEntry

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.json"


def export_catalog(
    entries: Sequence[CatalogEntry],
    output_dir: Path,
    rename_base: str | None = None,
    rename_pad: int = 0,
    extra: dict | None = None,
) -> Path:
    """Write each entry's image and a manifest. Returns the manifest path.

    With ``rename_base`` the files are renamed ``{base}_{n}.png`` in catalog
    order; the manifest keeps the catalog name alongside the file name.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    names = [e.name for e in entries]
    mapping = sequential_names(names, base=rename_base, pad=rename_pad) if rename_base else {}

    frames = []
    for entry in entries:
        filename = mapping.get(entry.name, entry.name)
        (output_dir / filename).write_bytes(entry.data)
        record = entry.metadata()
        record["file"] = filename
        frames.append(record)

    manifest = dict(extra or {})
    manifest["frame_count"] = len(frames)
    manifest["frames"] = frames

    manifest_path = output_dir / MANIFEST_NAME
    with open(manifest_path, "w") as f:
        json.dump(manifest, f, indent=2, default=str)
    logger.info("Exported %d frames to %s", len(frames), output_dir)
    return manifest_path
