"""Error taxonomy for surface watching and capture."""

from __future__ import annotations


class CanvasWatchError(Exception):
    """Base class for all canvaswatch errors."""


class NotReadable(CanvasWatchError):
    """The surface's pixels cannot be read (cross-origin taint).

    Expected during normal operation: hashing skips the surface and capture
    falls through to the screenshot tier.
    """


class SurfaceGone(CanvasWatchError):
    """The surface handle is no longer valid (element detached, page navigated)."""


class ScreenshotUnavailable(CanvasWatchError):
    """The screenshot provider could not supply a viewport image."""


class CaptureFailed(CanvasWatchError):
    """Every capture tier failed for one surface on one tick."""


class InvalidFingerprintComparison(CanvasWatchError, ValueError):
    """Two fingerprints of different lengths were compared."""
