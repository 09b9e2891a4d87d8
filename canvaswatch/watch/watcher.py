"""Canvas watcher: samples surfaces every paint and captures changed frames.

Each tick, every registered surface is fingerprinted in turn. The first
fingerprint of a surface only sets its baseline. Later fingerprints are
compared against the baseline, and once the Hamming distance reaches the
threshold the surface is captured, the capture is named and appended to the
catalog, and the new fingerprint becomes the baseline. Sub-threshold changes
leave the baseline alone, so slow drift still adds up to a capture.

Stopping bumps a generation counter. A capture that was already in flight
when stop() was called finishes, but the generation check before the
append discards it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence, Union

from canvaswatch.capture.capturer import TieredCapturer
from canvaswatch.capture.surface import Surface
from canvaswatch.catalog.registry import Catalog
from canvaswatch.detection.fingerprint import Fingerprint, hamming_distance, hash_surface
from canvaswatch.errors import CaptureFailed, InvalidFingerprintComparison, NotReadable, SurfaceGone
from canvaswatch.models.catalog import CatalogEntry
from canvaswatch.models.config import WatchConfig
from canvaswatch.output.sink import DeliverySink
from canvaswatch.watch.scheduler import FrameScheduler

logger = logging.getLogger(__name__)

SurfaceSource = Callable[[], Awaitable[Sequence[Surface]]]
CaptureListener = Callable[[CatalogEntry], None]


@dataclass
class WatchEntry:
    """Per-surface state, keyed by surface id."""
    surface_id: str
    fingerprint: Optional[Fingerprint] = None
    sequence: int = 0


def _static_source(surfaces: Sequence[Surface]) -> SurfaceSource:
    fixed = list(surfaces)

    async def _source() -> Sequence[Surface]:
        return fixed
    return _source


class CanvasWatcher:
    """Watches a set of surfaces and catalogs frames whose content changed."""

    def __init__(
        self,
        capturer: TieredCapturer,
        scheduler: FrameScheduler | None = None,
        catalog: Catalog | None = None,
        sink: DeliverySink | None = None,
    ):
        self.capturer = capturer
        self.scheduler = scheduler
        self.catalog = catalog if catalog is not None else Catalog()
        self.sink = sink
        self.config = WatchConfig()
        self._entries: dict[str, WatchEntry] = {}
        self._listeners: list[CaptureListener] = []
        self._source: SurfaceSource | None = None
        self._running = False
        self._generation = 0
        self._task: asyncio.Task | None = None
        # Run tasks of earlier sessions still finishing a tick.
        self._draining: set[asyncio.Task] = set()
        self._ticking: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._running

    @property
    def generation(self) -> int:
        return self._generation

    def entry_for(self, surface_id: str) -> WatchEntry | None:
        return self._entries.get(surface_id)

    def on_capture(self, callback: CaptureListener) -> None:
        """Register a callback receiving each newly catalogued entry."""
        self._listeners.append(callback)

    def remove_listener(self, callback: CaptureListener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(
        self,
        surfaces: Union[Sequence[Surface], SurfaceSource],
        config: WatchConfig | None = None,
    ) -> None:
        """Begin a new session over ``surfaces``.

        ``surfaces`` is either a fixed sequence or an async callable that
        re-enumerates surfaces every tick. The catalog and name registry are
        reset. With a scheduler, ticks then run on every paint frame.
        """
        if self._running:
            logger.info("Watcher already running (generation %d)", self._generation)
            return
        self.config = config or WatchConfig()
        self.catalog.reset()
        self._entries = {}
        self._source = surfaces if callable(surfaces) else _static_source(surfaces)
        self._generation += 1
        self._running = True
        logger.info(
            "Watch session %d started (threshold=%d bits, grid=%dx%d)",
            self._generation, self.config.threshold_bits,
            self.config.grid_size, self.config.grid_size,
        )
        if self._task is not None and not self._task.done():
            self._draining.add(self._task)
        self._task = None
        if self.scheduler is not None:
            self._task = asyncio.get_running_loop().create_task(self._run(self._generation))

    def stop(self) -> None:
        """Stop the session. Idempotent; no tick starts after this returns."""
        if not self._running:
            return
        self._running = False
        self._generation += 1
        task = self._task
        if task is not None and not task.done() and task not in self._ticking:
            # Only the frame wait is cancelled; a tick in progress runs to
            # its append check and then exits.
            task.cancel()
        logger.info("Watch session stopped (%d frames catalogued)", len(self.catalog))

    async def wait_stopped(self) -> None:
        """Wait for the run task, and any earlier session still finishing a tick, to exit.

        Re-raises a contract violation from a tick.
        """
        tasks = set(self._draining)
        if self._task is not None:
            tasks.add(self._task)
        if not tasks:
            return
        await asyncio.wait(tasks)
        self._draining -= tasks
        if self._task in tasks:
            self._task = None
        for task in tasks:
            if not task.cancelled() and task.exception() is not None:
                raise task.exception()

    async def _run(self, generation: int) -> None:
        while self._running and generation == self._generation:
            try:
                await self.scheduler.wait_for_frame()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning("Paint signal lost, stopping watcher: %s", e)
                self._running = False
                self._generation += 1
                return
            if not self._running or generation != self._generation:
                return
            task = asyncio.current_task()
            self._ticking.add(task)
            try:
                await self.tick()
            finally:
                self._ticking.discard(task)

    # ------------------------------------------------------------------
    # Sampling
    # ------------------------------------------------------------------

    async def tick(self) -> int:
        """Sample every surface once. Returns the number of frames catalogued."""
        if not self._running or self._source is None:
            return 0
        generation = self._generation
        try:
            surfaces = list(await self._source())
        except Exception as e:
            logger.warning("Could not enumerate surfaces: %s", e)
            return 0

        captured = 0
        seen: set[str] = set()
        for surface in surfaces:
            if generation != self._generation:
                break
            surface_id = surface.surface_id
            seen.add(surface_id)
            try:
                if await self._sample(surface, generation):
                    captured += 1
            except SurfaceGone as e:
                logger.debug("Dropping state for %s: %s", surface_id, e)
                if generation == self._generation:
                    self._entries.pop(surface_id, None)
            except CaptureFailed as e:
                logger.warning("Capture failed for %s: %s", surface_id, e)
            except InvalidFingerprintComparison:
                raise
            except Exception as e:
                logger.warning("Error sampling %s: %s", surface_id, e)

        if generation == self._generation:
            for surface_id in [sid for sid in self._entries if sid not in seen]:
                logger.debug("Surface %s no longer present, dropping state", surface_id)
                del self._entries[surface_id]
        return captured

    async def _sample(self, surface: Surface, generation: int) -> bool:
        width, height = await surface.dimensions()
        if width < 1 or height < 1:
            return False

        try:
            current = await hash_surface(surface, self.config.grid_size)
        except NotReadable:
            logger.debug("Surface %s not readable this tick", surface.surface_id)
            return False
        if generation != self._generation:
            return False

        entry = self._entries.get(surface.surface_id)
        if entry is None:
            entry = self._entries[surface.surface_id] = WatchEntry(surface.surface_id)
        if entry.fingerprint is None:
            entry.fingerprint = current
            logger.debug("Baseline for %s: %s", surface.surface_id, current.hex()[:16])
            return False

        distance = hamming_distance(entry.fingerprint, current)
        if distance < self.config.threshold_bits:
            return False

        entry.fingerprint = current
        entry.sequence += 1
        sequence = entry.sequence
        logger.debug("Change on %s: distance %d >= %d (frame %d)",
                     surface.surface_id, distance, self.config.threshold_bits, sequence)

        image = await self.capturer.capture(surface)
        if generation != self._generation:
            logger.info("Discarding frame %d of %s: session ended during capture",
                        sequence, surface.surface_id)
            return False

        name = self.catalog.names.assign(
            self.config.name_template.format(seq=sequence, surface_id=surface.surface_id)
        )
        catalog_entry = CatalogEntry(
            name=name,
            data=image.data,
            width=width,
            height=height,
            method=image.method,
            source="watch",
            surface_id=surface.surface_id,
            sequence=sequence,
            captured_at=time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        )
        self.catalog.append(catalog_entry)
        logger.info("Captured %s from %s (%s)", name, surface.surface_id, image.method)

        self._notify(catalog_entry)
        if self.config.auto_deliver and self.sink is not None:
            await self._deliver(catalog_entry)
        return True

    def _notify(self, entry: CatalogEntry) -> None:
        for listener in list(self._listeners):
            try:
                listener(entry)
            except Exception as e:
                logger.warning("Capture listener failed for %s: %s", entry.name, e)

    async def _deliver(self, entry: CatalogEntry) -> None:
        try:
            await self.sink.deliver(entry)
        except Exception as e:
            logger.warning("Delivery of %s failed: %s", entry.name, e)
