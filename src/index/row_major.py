"""Row-major spatial key index."""

from __future__ import annotations

from dataclasses import dataclass

from core.constants import MAX_INT64
from core.errors import InvalidBoundsError
from core.keys import KeyBounds, SpatialKey
from core.types import IndexRange
from index.key_index import KeyIndex, register_key_index


@register_key_index
class RowMajorSpatialKeyIndex(KeyIndex[SpatialKey]):
    """Orders keys row by row across the layer's column extent."""

    index_type = "row-major"
    key_type = SpatialKey

    def __init__(self, key_bounds: KeyBounds[SpatialKey]) -> None:
        super().__init__(key_bounds)
        self._width = key_bounds.max_key.col - key_bounds.min_key.col + 1
        height = key_bounds.max_key.row - key_bounds.min_key.row + 1
        if self._width * height - 1 > MAX_INT64:
            raise InvalidBoundsError(
                f"Key space {self._width}x{height} does not fit a 64-bit row-major index."
            )

    def _index(self, key: SpatialKey) -> int:
        origin = self.key_bounds.min_key
        return (key.row - origin.row) * self._width + (key.col - origin.col)

    def _decompose(self, bounds: KeyBounds[SpatialKey]) -> list[IndexRange]:
        low, high = bounds.min_key, bounds.max_key
        if high.col - low.col + 1 == self._width:
            return [IndexRange(self._index(low), self._index(high))]
        return [
            IndexRange(
                self._index(SpatialKey(low.col, row)),
                self._index(SpatialKey(high.col, row)),
            )
            for row in range(low.row, high.row + 1)
        ]


@dataclass(frozen=True)
class RowMajorMethod:
    """Builds row-major indexes for spatial key spaces."""

    def __call__(self, key_bounds: KeyBounds[SpatialKey]) -> RowMajorSpatialKeyIndex:
        return RowMajorSpatialKeyIndex(key_bounds)
