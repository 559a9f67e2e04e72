"""Hilbert curve spatial key index."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from core.errors import InvalidBoundsError
from core.keys import KeyBounds, SpatialKey
from core.types import IndexRange
from index.decomposition import bits_for_extent, decompose_cells
from index.key_index import KeyIndex, register_key_index


def hilbert_index(point: Sequence[int], bits: int) -> int:
    """Return the Hilbert curve distance of a 2D point.

    Args:
        point: Non-negative ``(x, y)`` coordinates below ``2**bits``.
        bits: Curve order.

    Returns:
        Distance along the curve.
    """
    side = 1 << bits
    x, y = point
    distance = 0
    step = side >> 1
    while step > 0:
        rx = 1 if x & step else 0
        ry = 1 if y & step else 0
        distance += step * step * ((3 * rx) ^ ry)
        if ry == 0:
            if rx == 1:
                x = side - 1 - x
                y = side - 1 - y
            x, y = y, x
        step >>= 1
    return distance


@register_key_index
class HilbertSpatialKeyIndex(KeyIndex[SpatialKey]):
    """Hilbert curve over column and row.

    Neighbouring positions on the curve are always neighbouring tiles,
    which keeps decompositions shorter than Z-order for square queries.
    """

    index_type = "hilbert"
    key_type = SpatialKey

    def __init__(self, key_bounds: KeyBounds[SpatialKey]) -> None:
        super().__init__(key_bounds)
        low, high = key_bounds.min_key, key_bounds.max_key
        self._bits = max(
            bits_for_extent(high.col - low.col + 1), bits_for_extent(high.row - low.row + 1)
        )
        if self._bits * 2 > 62:
            raise InvalidBoundsError(
                f"Key space {low} .. {high} does not fit a 64-bit hilbert index."
            )

    def _coordinates(self, key: SpatialKey) -> tuple[int, int]:
        origin = self.key_bounds.min_key
        return (key.col - origin.col, key.row - origin.row)

    def _index(self, key: SpatialKey) -> int:
        return hilbert_index(self._coordinates(key), self._bits)

    def _decompose(self, bounds: KeyBounds[SpatialKey]) -> list[IndexRange]:
        return decompose_cells(
            self._coordinates(bounds.min_key),
            self._coordinates(bounds.max_key),
            self._bits,
            lambda point: hilbert_index(point, self._bits),
        )


@dataclass(frozen=True)
class HilbertMethod:
    """Builds Hilbert indexes for spatial key spaces."""

    def __call__(self, key_bounds: KeyBounds[SpatialKey]) -> HilbertSpatialKeyIndex:
        return HilbertSpatialKeyIndex(key_bounds)
