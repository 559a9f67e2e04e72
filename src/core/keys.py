"""Grid keys and key bounds.

This module defines the immutable spatial and space-time keys that
address tiles in a layer, the inclusive bounds over them, and their
JSON payload encoding used by metadata and tile payloads.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Iterable, TypeVar, Union

from core.errors import InvalidBoundsError


@dataclass(frozen=True, order=True)
class SpatialKey:
    """Column/row address of a tile in a layout grid.

    Attributes:
        col: Grid column.
        row: Grid row.
    """

    col: int
    row: int

    def components(self) -> tuple[int, ...]:
        """Return key axes in index order."""
        return (self.col, self.row)

    @classmethod
    def from_components(cls, components: tuple[int, ...]) -> "SpatialKey":
        """Build a key from axis values."""
        col, row = components
        return cls(col=col, row=row)


@dataclass(frozen=True, order=True)
class SpaceTimeKey:
    """Column/row/instant address of a tile in a time series layout.

    Attributes:
        col: Grid column.
        row: Grid row.
        instant: Epoch milliseconds of the tile acquisition.
    """

    col: int
    row: int
    instant: int

    def components(self) -> tuple[int, ...]:
        """Return key axes in index order."""
        return (self.col, self.row, self.instant)

    @classmethod
    def from_components(cls, components: tuple[int, ...]) -> "SpaceTimeKey":
        """Build a key from axis values."""
        col, row, instant = components
        return cls(col=col, row=row, instant=instant)

    @property
    def spatial_key(self) -> SpatialKey:
        """Return the spatial part of this key."""
        return SpatialKey(col=self.col, row=self.row)


GridKey = Union[SpatialKey, SpaceTimeKey]
K = TypeVar("K", SpatialKey, SpaceTimeKey)

_KEY_TYPES: dict[str, type] = {
    "spatial": SpatialKey,
    "spacetime": SpaceTimeKey,
}


@dataclass(frozen=True)
class KeyBounds(Generic[K]):
    """Inclusive axis-aligned region of key space.

    Attributes:
        min_key: Lower corner, inclusive.
        max_key: Upper corner, inclusive.
    """

    min_key: K
    max_key: K

    def __post_init__(self) -> None:
        if type(self.min_key) is not type(self.max_key):
            raise InvalidBoundsError(
                f"Key bounds mix key types {type(self.min_key).__name__} and "
                f"{type(self.max_key).__name__}."
            )
        for low, high in zip(self.min_key.components(), self.max_key.components()):
            if low > high:
                raise InvalidBoundsError(
                    f"Invalid key bounds {self.min_key} .. {self.max_key}: "
                    "min exceeds max on at least one axis."
                )

    @classmethod
    def from_keys(cls, keys: Iterable[K]) -> "KeyBounds[K]":
        """Return the minimal bounds enclosing all keys.

        Args:
            keys: Non-empty keys of one type.

        Returns:
            Bounding key region.

        Raises:
            InvalidBoundsError: If no keys are given.
        """
        lows: list[int] | None = None
        highs: list[int] | None = None
        key_type: Any = None
        for key in keys:
            components = key.components()
            if lows is None or highs is None:
                key_type = type(key)
                lows = list(components)
                highs = list(components)
                continue
            if type(key) is not key_type:
                raise InvalidBoundsError(
                    f"Cannot bound mixed key types {key_type.__name__} and "
                    f"{type(key).__name__}."
                )
            lows = [min(low, value) for low, value in zip(lows, components)]
            highs = [max(high, value) for high, value in zip(highs, components)]
        if lows is None or highs is None:
            raise InvalidBoundsError("Cannot compute key bounds of an empty key set.")
        return cls(
            min_key=key_type.from_components(tuple(lows)),
            max_key=key_type.from_components(tuple(highs)),
        )

    @property
    def key_type(self) -> type:
        """Return the key class bounded by this region."""
        return type(self.min_key)

    def contains(self, key: K) -> bool:
        """Return whether key lies inside these inclusive bounds."""
        if type(key) is not self.key_type:
            return False
        return all(
            low <= value <= high
            for low, value, high in zip(
                self.min_key.components(), key.components(), self.max_key.components()
            )
        )

    def covers(self, other: "KeyBounds[K]") -> bool:
        """Return whether other lies entirely inside these bounds."""
        return self.contains(other.min_key) and self.contains(other.max_key)

    def intersect(self, other: "KeyBounds[K]") -> "KeyBounds[K] | None":
        """Return the overlapping region, or None when disjoint.

        Raises:
            InvalidBoundsError: If the bounds use different key types.
        """
        if other.key_type is not self.key_type:
            raise InvalidBoundsError(
                f"Cannot intersect {self.key_type.__name__} bounds with "
                f"{other.key_type.__name__} bounds."
            )
        lows = tuple(
            max(a, b) for a, b in zip(self.min_key.components(), other.min_key.components())
        )
        highs = tuple(
            min(a, b) for a, b in zip(self.max_key.components(), other.max_key.components())
        )
        if any(low > high for low, high in zip(lows, highs)):
            return None
        key_type: Any = self.key_type
        return KeyBounds(key_type.from_components(lows), key_type.from_components(highs))

    def combine(self, other: "KeyBounds[K]") -> "KeyBounds[K]":
        """Return the minimal bounds enclosing both regions."""
        return KeyBounds.from_keys([self.min_key, self.max_key, other.min_key, other.max_key])


def key_type_name(key_type: type) -> str:
    """Return the payload tag for a key class.

    Raises:
        InvalidBoundsError: If the class is not a known key type.
    """
    for name, candidate in _KEY_TYPES.items():
        if candidate is key_type:
            return name
    raise InvalidBoundsError(f"Unsupported key type {key_type.__name__}.")


def key_to_payload(key: GridKey) -> dict[str, int]:
    """Serialize a key to a JSON-safe dictionary.

    Args:
        key: Spatial or space-time key.

    Returns:
        Dictionary payload.
    """
    if isinstance(key, SpaceTimeKey):
        return {"col": key.col, "row": key.row, "instant": key.instant}
    return {"col": key.col, "row": key.row}


def key_from_payload(payload: dict[str, Any]) -> GridKey:
    """Deserialize a key payload.

    Args:
        payload: Key dictionary from ``key_to_payload``.

    Returns:
        Spatial key, or space-time key when an instant is present.
    """
    if "instant" in payload:
        return SpaceTimeKey(
            col=int(payload["col"]), row=int(payload["row"]), instant=int(payload["instant"])
        )
    return SpatialKey(col=int(payload["col"]), row=int(payload["row"]))


def key_bounds_to_payload(bounds: KeyBounds[Any]) -> dict[str, Any]:
    """Serialize key bounds to a JSON-safe dictionary."""
    return {
        "key_type": key_type_name(bounds.key_type),
        "min_key": key_to_payload(bounds.min_key),
        "max_key": key_to_payload(bounds.max_key),
    }


def key_bounds_from_payload(payload: dict[str, Any]) -> KeyBounds[Any]:
    """Deserialize key bounds payload.

    Raises:
        InvalidBoundsError: If the key type is unknown or bounds are malformed.
    """
    key_type = str(payload["key_type"])
    if key_type not in _KEY_TYPES:
        raise InvalidBoundsError(f"Unsupported key type '{key_type}' in key bounds payload.")
    min_key = key_from_payload(dict(payload["min_key"]))
    max_key = key_from_payload(dict(payload["max_key"]))
    if type(min_key) is not _KEY_TYPES[key_type]:
        raise InvalidBoundsError(
            f"Key bounds payload declares '{key_type}' keys but holds {type(min_key).__name__}."
        )
    return KeyBounds(min_key=min_key, max_key=max_key)
