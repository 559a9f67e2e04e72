"""Z-order (Morton) key indexes for spatial and space-time keys.

Coordinates are taken relative to the key space's lower corner and bit
interleaved with the column in the lowest bit, then row, then time.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from core.constants import DEFAULT_TEMPORAL_RESOLUTION_MILLIS
from core.errors import InvalidBoundsError
from core.keys import KeyBounds, SpaceTimeKey, SpatialKey
from core.types import IndexRange
from index.decomposition import bits_for_extent, decompose_cells
from index.key_index import KeyIndex, register_key_index

_INDEX_BITS = 63


def interleave_bits(coordinates: Sequence[int], bits: int) -> int:
    """Interleave coordinate bits into a Morton code.

    Args:
        coordinates: Non-negative coordinates, lowest-order axis first.
        bits: Bits per coordinate.

    Returns:
        Morton code.
    """
    dims = len(coordinates)
    code = 0
    for bit in range(bits):
        for axis, value in enumerate(coordinates):
            code |= ((value >> bit) & 1) << (bit * dims + axis)
    return code


def _curve_bits(extents: Sequence[int], index_name: str) -> int:
    bits = max(bits_for_extent(extent) for extent in extents)
    if bits * len(extents) > _INDEX_BITS:
        raise InvalidBoundsError(
            f"Key space extents {tuple(extents)} do not fit a 64-bit {index_name} index."
        )
    return bits


@register_key_index
class ZSpatialKeyIndex(KeyIndex[SpatialKey]):
    """Z-order curve over column and row."""

    index_type = "zorder"
    key_type = SpatialKey

    def __init__(self, key_bounds: KeyBounds[SpatialKey]) -> None:
        super().__init__(key_bounds)
        low, high = key_bounds.min_key, key_bounds.max_key
        self._bits = _curve_bits(
            (high.col - low.col + 1, high.row - low.row + 1), self.index_type
        )

    def _coordinates(self, key: SpatialKey) -> tuple[int, int]:
        origin = self.key_bounds.min_key
        return (key.col - origin.col, key.row - origin.row)

    def _index(self, key: SpatialKey) -> int:
        return interleave_bits(self._coordinates(key), self._bits)

    def _decompose(self, bounds: KeyBounds[SpatialKey]) -> list[IndexRange]:
        return decompose_cells(
            self._coordinates(bounds.min_key),
            self._coordinates(bounds.max_key),
            self._bits,
            lambda point: interleave_bits(point, self._bits),
        )


@register_key_index
class ZSpaceTimeKeyIndex(KeyIndex[SpaceTimeKey]):
    """Z-order curve over column, row, and binned time.

    Instants are binned by ``temporal_resolution`` milliseconds from the
    key space's earliest instant, so keys sharing a bin share an index.
    """

    index_type = "zorder-spacetime"
    key_type = SpaceTimeKey

    def __init__(
        self,
        key_bounds: KeyBounds[SpaceTimeKey],
        temporal_resolution: int = DEFAULT_TEMPORAL_RESOLUTION_MILLIS,
    ) -> None:
        super().__init__(key_bounds)
        if temporal_resolution <= 0:
            raise ValueError(
                f"Temporal resolution must be positive milliseconds, got {temporal_resolution}."
            )
        self._temporal_resolution = temporal_resolution
        low, high = key_bounds.min_key, key_bounds.max_key
        self._bits = _curve_bits(
            (
                high.col - low.col + 1,
                high.row - low.row + 1,
                self._time_bin(high.instant) + 1,
            ),
            self.index_type,
        )

    @property
    def temporal_resolution(self) -> int:
        """Return the time bin width in milliseconds."""
        return self._temporal_resolution

    @classmethod
    def from_properties(
        cls, key_bounds: KeyBounds[SpaceTimeKey], properties: dict[str, Any]
    ) -> "ZSpaceTimeKeyIndex":
        return cls(key_bounds, int(properties["temporal_resolution"]))

    def _properties(self) -> dict[str, Any]:
        return {"temporal_resolution": self._temporal_resolution}

    def _time_bin(self, instant: int) -> int:
        return (instant - self.key_bounds.min_key.instant) // self._temporal_resolution

    def _coordinates(self, key: SpaceTimeKey) -> tuple[int, int, int]:
        origin = self.key_bounds.min_key
        return (key.col - origin.col, key.row - origin.row, self._time_bin(key.instant))

    def _index(self, key: SpaceTimeKey) -> int:
        return interleave_bits(self._coordinates(key), self._bits)

    def _decompose(self, bounds: KeyBounds[SpaceTimeKey]) -> list[IndexRange]:
        return decompose_cells(
            self._coordinates(bounds.min_key),
            self._coordinates(bounds.max_key),
            self._bits,
            lambda point: interleave_bits(point, self._bits),
        )


@dataclass(frozen=True)
class ZCurveMethod:
    """Builds Z-order indexes for spatial key spaces."""

    def __call__(self, key_bounds: KeyBounds[SpatialKey]) -> ZSpatialKeyIndex:
        return ZSpatialKeyIndex(key_bounds)


@dataclass(frozen=True)
class ZCurveSpaceTimeMethod:
    """Builds Z-order indexes for space-time key spaces.

    Attributes:
        temporal_resolution: Time bin width in milliseconds.
    """

    temporal_resolution: int = DEFAULT_TEMPORAL_RESOLUTION_MILLIS

    def __call__(self, key_bounds: KeyBounds[SpaceTimeKey]) -> ZSpaceTimeKeyIndex:
        return ZSpaceTimeKeyIndex(key_bounds, self.temporal_resolution)
