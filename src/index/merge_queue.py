"""Interval merge engine.

This module coalesces index ranges produced by key index decomposition
into the minimal sorted set of disjoint scan ranges. Ranges whose gap is
within ``fudge`` of each other are merged into one scan.
"""

from __future__ import annotations

from typing import Iterable

from core.constants import DEFAULT_MERGE_FUDGE
from core.types import IndexRange, index_range


class MergeQueue:
    """Accumulates index ranges and emits their merged form."""

    def __init__(self, fudge: int = DEFAULT_MERGE_FUDGE) -> None:
        if fudge < 0:
            raise ValueError(f"Merge fudge must be non-negative, got {fudge}.")
        self._fudge = fudge
        self._ranges: set[IndexRange] = set()

    def add(self, start: int, end: int) -> None:
        """Add one inclusive range.

        Raises:
            InvalidBoundsError: If start exceeds end.
        """
        self._ranges.add(index_range(start, end))

    def extend(self, ranges: Iterable[tuple[int, int]]) -> None:
        """Add many inclusive ranges."""
        for start, end in ranges:
            self.add(start, end)

    def __len__(self) -> int:
        return len(self._ranges)

    def to_list(self) -> list[IndexRange]:
        """Return merged ranges sorted ascending by start.

        Ranges are visited by descending end. Each one either extends the
        run below the current one or, when its end plus fudge falls short
        of the current start, opens a new run.
        """
        ordered = sorted(self._ranges, key=lambda item: (item.end, item.start), reverse=True)
        merged: list[IndexRange] = []
        for start, end in ordered:
            if not merged:
                merged.append(IndexRange(start, end))
                continue
            current_start, current_end = merged[-1]
            if end + self._fudge >= current_start:
                if start < current_start:
                    merged[-1] = IndexRange(start, current_end)
            else:
                merged.append(IndexRange(start, end))
        merged.reverse()
        return merged


def merge_ranges(
    ranges: Iterable[tuple[int, int]],
    fudge: int = DEFAULT_MERGE_FUDGE,
) -> list[IndexRange]:
    """Merge inclusive index ranges into disjoint scan ranges.

    Args:
        ranges: Inclusive ``(start, end)`` pairs in any order.
        fudge: Maximum distance between two ranges that still merges them.

    Returns:
        Disjoint ranges sorted by start covering every input range.

    Raises:
        InvalidBoundsError: If any range has start greater than end.
    """
    queue = MergeQueue(fudge=fudge)
    queue.extend(ranges)
    return queue.to_list()
