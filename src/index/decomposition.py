"""Aligned-cell range decomposition for space-filling curves.

On both the Z-order and Hilbert curves an aligned cell of side ``2**k``
covers one contiguous, aligned block of ``2**(k * dims)`` curve positions.
Decomposition walks the cell tree from the whole key space down,
emitting the block of every cell fully inside the query and splitting
cells that only partially overlap it.
"""

from __future__ import annotations

from itertools import product
from typing import Callable, Sequence

from core.types import IndexRange

CurveIndexFn = Callable[[Sequence[int]], int]


def bits_for_extent(extent: int) -> int:
    """Return the number of bits needed to address ``extent`` positions.

    Args:
        extent: Count of positions along an axis, at least 1.

    Returns:
        Bit count, zero for a single position.
    """
    return max(extent - 1, 0).bit_length()


def decompose_cells(
    query_lows: Sequence[int],
    query_highs: Sequence[int],
    bits: int,
    curve_index: CurveIndexFn,
) -> list[IndexRange]:
    """Decompose an axis-aligned query into exact curve index ranges.

    Args:
        query_lows: Inclusive lower corner in curve coordinates.
        query_highs: Inclusive upper corner in curve coordinates.
        bits: Bits per axis of the curve.
        curve_index: Maps a point in curve coordinates to its index.

    Returns:
        Index ranges sorted by start, covering exactly the query cells.
    """
    dims = len(query_lows)
    ranges: list[IndexRange] = []
    stack: list[tuple[tuple[int, ...], int]] = [(tuple(0 for _ in range(dims)), bits)]
    while stack:
        origin, level = stack.pop()
        side = 1 << level
        cell_highs = tuple(low + side - 1 for low in origin)
        if any(
            cell_high < query_low or cell_low > query_high
            for cell_low, cell_high, query_low, query_high in zip(
                origin, cell_highs, query_lows, query_highs
            )
        ):
            continue
        if all(
            query_low <= cell_low and cell_high <= query_high
            for cell_low, cell_high, query_low, query_high in zip(
                origin, cell_highs, query_lows, query_highs
            )
        ):
            shift = level * dims
            start = (curve_index(origin) >> shift) << shift
            ranges.append(IndexRange(start, start + (1 << shift) - 1))
            continue
        half = side >> 1
        for offsets in product((0, half), repeat=dims):
            child = tuple(low + offset for low, offset in zip(origin, offsets))
            stack.append((child, level - 1))
    ranges.sort()
    return ranges
