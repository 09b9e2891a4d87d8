"""Name registry and capture catalog for a watch session."""

from __future__ import annotations

import logging
from typing import Iterable

from canvaswatch.models.catalog import CatalogEntry

logger = logging.getLogger(__name__)


def split_name(name: str) -> tuple[str, str]:
    """Split at the last dot into (stem, extension-with-dot)."""
    dot = name.rfind(".")
    if dot < 0:
        return name, ""
    return name[:dot], name[dot:]


class NameRegistry:
    """Issues names that are unique for the lifetime of a session."""

    def __init__(self):
        self._issued: set[str] = set()

    def assign(self, proposed: str) -> str:
        """Return ``proposed`` if unused, else the first free ``stem-N.ext`` (N >= 2)."""
        if proposed not in self._issued:
            self._issued.add(proposed)
            return proposed
        stem, ext = split_name(proposed)
        i = 2
        while f"{stem}-{i}{ext}" in self._issued:
            i += 1
        candidate = f"{stem}-{i}{ext}"
        self._issued.add(candidate)
        return candidate

    def reset(self) -> None:
        self._issued.clear()

    def __contains__(self, name: object) -> bool:
        return name in self._issued

    def __len__(self) -> int:
        return len(self._issued)


class Catalog:
    """Append-only, ordered collection of captured frames.

    Only the watch loop and the scanner write to it. Readers take a
    snapshot, which is an immutable tuple.
    """

    def __init__(self, names: NameRegistry | None = None):
        self.names = names if names is not None else NameRegistry()
        self._entries: list[CatalogEntry] = []

    def append(self, entry: CatalogEntry) -> None:
        self._entries.append(entry)
        logger.debug("Catalogued %s (%dx%d, %s)", entry.name, entry.width, entry.height, entry.method)

    def snapshot(self) -> tuple[CatalogEntry, ...]:
        return tuple(self._entries)

    def reset(self) -> None:
        """Start a new session: drop all entries and issued names."""
        self._entries = []
        self.names.reset()

    def __len__(self) -> int:
        return len(self._entries)


def sequential_names(
    names: Iterable[str],
    base: str = "image",
    start: int = 1,
    pad: int = 0,
    keep_ext: bool = True,
) -> dict[str, str]:
    """Map each name to ``{base}_{n}{ext}``, numbering from ``start`` in order.

    ``pad`` zero-pads the number; ``keep_ext`` retains each original extension.
    """
    start = max(1, int(start))
    mapping: dict[str, str] = {}
    for n, name in enumerate(names, start):
        number = str(n).zfill(pad) if pad > 0 else str(n)
        ext = split_name(name)[1] if keep_ext else ""
        mapping[name] = f"{base}_{number}{ext}"
    return mapping
