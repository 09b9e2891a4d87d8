"""Perceptual fingerprints: average-luminance hash and Hamming distance.

A surface is reduced to an N×N grid of luminance values. Each cell becomes
one bit: set when the cell is brighter than the grid's mean. Two
fingerprints taken at different instants are compared by counting the bits
that differ, so the distance is small for anti-aliasing jitter and large
when the drawn content is replaced.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from PIL import Image

from canvaswatch.capture.surface import Surface
from canvaswatch.errors import InvalidFingerprintComparison

logger = logging.getLogger(__name__)

DEFAULT_GRID_SIZE = 32

# Resampling filter used for every downsample; must never vary between calls.
_RESAMPLE = Image.Resampling.BILINEAR


@dataclass(frozen=True)
class Fingerprint:
    """Packed bit vector, least-significant bit first within each byte."""
    bits: bytes
    grid_size: int

    @property
    def bit_length(self) -> int:
        return self.grid_size * self.grid_size

    def hex(self) -> str:
        return self.bits.hex()

    def __str__(self) -> str:
        return self.hex()


def luminance(r: int, g: int, b: int) -> int:
    """Integer-truncated 0.299R + 0.587G + 0.114B."""
    return (r * 299 + g * 587 + b * 114) // 1000


def compute_fingerprint(image: Image.Image, grid_size: int = DEFAULT_GRID_SIZE) -> Fingerprint:
    """Fingerprint an image on a ``grid_size`` × ``grid_size`` grid."""
    if grid_size < 1:
        raise ValueError(f"grid_size must be >= 1, got {grid_size}")

    rgb = image.convert("RGB")
    if rgb.size != (grid_size, grid_size):
        rgb = rgb.resize((grid_size, grid_size), _RESAMPLE)

    data = rgb.tobytes()
    gray = [luminance(data[i], data[i + 1], data[i + 2]) for i in range(0, len(data), 3)]
    mean = sum(gray) // len(gray)

    packed = bytearray((len(gray) + 7) >> 3)
    for i, value in enumerate(gray):
        if value > mean:
            packed[i >> 3] |= 1 << (i & 7)
    return Fingerprint(bits=bytes(packed), grid_size=grid_size)


async def hash_surface(surface: Surface, grid_size: int = DEFAULT_GRID_SIZE) -> Fingerprint:
    """Fingerprint a surface's current content.

    Raises NotReadable when the surface is tainted and SurfaceGone when its
    handle has died; both are left to the caller.
    """
    image = await surface.read_pixels((grid_size, grid_size))
    return compute_fingerprint(image, grid_size)


def hamming_distance(a: Fingerprint, b: Fingerprint) -> int:
    """Number of differing bits between two fingerprints of equal length."""
    if a.grid_size != b.grid_size or len(a.bits) != len(b.bits):
        raise InvalidFingerprintComparison(
            f"Cannot compare fingerprints of {a.bit_length} and {b.bit_length} bits"
        )
    diff = int.from_bytes(a.bits, "little") ^ int.from_bytes(b.bits, "little")
    return diff.bit_count()
