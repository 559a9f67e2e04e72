"""Shared typed models.

This module defines immutable data models used by the index engine,
catalog, backing stores, and SDK to keep interfaces explicit and stable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, Mapping, NamedTuple

from core.constants import MAX_INT64, MIN_INT64
from core.errors import InvalidBoundsError
from core.keys import K, KeyBounds

if TYPE_CHECKING:
    from index.key_index import KeyIndex


class IndexRange(NamedTuple):
    """Inclusive interval of positions in the one-dimensional index space."""

    start: int
    end: int


def index_range(start: int, end: int) -> IndexRange:
    """Build a validated index range.

    Args:
        start: First index, inclusive.
        end: Last index, inclusive.

    Returns:
        Index range tuple.

    Raises:
        InvalidBoundsError: If start exceeds end or either is outside int64.
    """
    if start > end:
        raise InvalidBoundsError(f"Invalid index range ({start}, {end}): start exceeds end.")
    if start < MIN_INT64 or end > MAX_INT64:
        raise InvalidBoundsError(
            f"Invalid index range ({start}, {end}): outside the signed 64-bit index space."
        )
    return IndexRange(start, end)


@dataclass(frozen=True, order=True)
class LayerId:
    """Logical layer identifier.

    Attributes:
        name: Layer name.
        zoom: Discrete resolution level.
    """

    name: str
    zoom: int

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Layer name must be a non-empty string.")
        if self.name in {".", ".."}:
            raise ValueError(f"Layer name {self.name!r} is reserved.")
        if self.zoom < 0:
            raise ValueError(f"Layer zoom must be non-negative, got {self.zoom}.")

    def __str__(self) -> str:
        return f"{self.name}:{self.zoom}"


@dataclass(frozen=True)
class PartitionSelector:
    """Backing store partition that holds one layer's tiles.

    Attributes:
        table: Table or directory name derived from the layer id.
        column_family: Column family inside the table.
    """

    table: str
    column_family: str


@dataclass(frozen=True)
class LayerHeader:
    """Storage location of a layer's tile data.

    Attributes:
        backend: Backing store kind (``lance`` or ``memory``).
        location: Root path or URI of the tile data.
        partition: Partition selector used for scans and writes.
    """

    backend: str
    location: str
    partition: PartitionSelector


@dataclass(frozen=True)
class LayerMetadata(Generic[K]):
    """Catalog entry for one layer.

    Attributes:
        header: Storage location of the tile data.
        key_bounds: Full extent of keys actually written.
        key_index: Index strategy used to write the tiles.
        schema: Opaque value codec descriptor.
    """

    header: LayerHeader
    key_bounds: KeyBounds[K]
    key_index: "KeyIndex[K]"
    schema: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TileLayer(Generic[K]):
    """In-memory tiled dataset.

    Attributes:
        records: Key/value pairs of the layer.
        key_bounds: Bounds of the record keys, or None when empty.
    """

    records: tuple[tuple[K, Any], ...]
    key_bounds: KeyBounds[K] | None = None

    @classmethod
    def from_records(cls, records: Mapping[K, Any] | list[tuple[K, Any]]) -> "TileLayer[K]":
        """Build a layer and compute bounds from its keys.

        Args:
            records: Mapping or list of key/value pairs.

        Returns:
            Tile layer with computed bounds.
        """
        pairs = tuple(records.items()) if isinstance(records, Mapping) else tuple(records)
        if not pairs:
            return cls(records=(), key_bounds=None)
        return cls(records=pairs, key_bounds=KeyBounds.from_keys(key for key, _ in pairs))

    @classmethod
    def empty(cls) -> "TileLayer[K]":
        """Return an empty layer."""
        return cls(records=(), key_bounds=None)

    def __len__(self) -> int:
        return len(self.records)

    def to_dict(self) -> dict[K, Any]:
        """Return records keyed by tile key."""
        return dict(self.records)
