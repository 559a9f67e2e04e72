"""Key index strategy base and registry.

A key index maps the keys of one layer's key space to positions in a
one-dimensional index space and decomposes key bounds queries into the
index ranges that hold them. Concrete strategies register a type tag so
the exact strategy and parameters persist with layer metadata.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, ClassVar, Generic

from core.errors import InvalidBoundsError, KeyOutOfBoundsError, UnknownKeyIndexError
from core.keys import K, KeyBounds, key_bounds_from_payload, key_bounds_to_payload
from core.types import IndexRange

_REGISTRY: dict[str, type["KeyIndex[Any]"]] = {}


def register_key_index(cls: type["KeyIndex[Any]"]) -> type["KeyIndex[Any]"]:
    """Class decorator registering a strategy under its ``index_type`` tag."""
    _REGISTRY[cls.index_type] = cls
    return cls


class KeyIndex(ABC, Generic[K]):
    """Immutable key to index mapping over a fixed key space."""

    index_type: ClassVar[str]
    key_type: ClassVar[type]

    def __init__(self, key_bounds: KeyBounds[K]) -> None:
        if key_bounds.key_type is not self.key_type:
            raise InvalidBoundsError(
                f"{type(self).__name__} indexes {self.key_type.__name__} keys, "
                f"got {key_bounds.key_type.__name__} bounds."
            )
        self._key_bounds = key_bounds

    @property
    def key_bounds(self) -> KeyBounds[K]:
        """Return the key space this index covers."""
        return self._key_bounds

    def to_index(self, key: K) -> int:
        """Return the index position of a key.

        Raises:
            KeyOutOfBoundsError: If the key is outside the index key space.
        """
        if not self._key_bounds.contains(key):
            raise KeyOutOfBoundsError(
                f"Key {key} is outside the key space {self._key_bounds.min_key} .. "
                f"{self._key_bounds.max_key} of this {self.index_type} index."
            )
        return self._index(key)

    def index_ranges(self, bounds: KeyBounds[K]) -> list[IndexRange]:
        """Decompose a query region into index ranges.

        The union of the returned ranges holds the index of every key in
        ``bounds`` that lies inside this index's key space.

        Args:
            bounds: Inclusive query region.

        Returns:
            Index ranges sorted by start; empty when the query misses the
            key space.

        Raises:
            InvalidBoundsError: If the query uses another key type.
        """
        clipped = self._key_bounds.intersect(bounds)
        if clipped is None:
            return []
        return self._decompose(clipped)

    def to_payload(self) -> dict[str, Any]:
        """Serialize strategy tag, key space, and parameters."""
        return {
            "type": self.index_type,
            "key_bounds": key_bounds_to_payload(self._key_bounds),
            "properties": self._properties(),
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KeyIndex):
            return NotImplemented
        return self.to_payload() == other.to_payload()

    def __hash__(self) -> int:
        return hash((self.index_type, self._key_bounds))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._key_bounds.min_key} .. {self._key_bounds.max_key})"

    @classmethod
    def from_properties(
        cls, key_bounds: KeyBounds[K], properties: dict[str, Any]
    ) -> "KeyIndex[K]":
        """Rebuild the strategy from persisted properties."""
        return cls(key_bounds)

    def _properties(self) -> dict[str, Any]:
        """Return strategy parameters beyond the key space."""
        return {}

    @abstractmethod
    def _index(self, key: K) -> int:
        """Map an in-bounds key to its index."""

    @abstractmethod
    def _decompose(self, bounds: KeyBounds[K]) -> list[IndexRange]:
        """Decompose bounds already clipped to the key space."""


def key_index_from_payload(payload: dict[str, Any]) -> KeyIndex[Any]:
    """Rebuild a key index from its persisted payload.

    Args:
        payload: Dictionary from ``KeyIndex.to_payload``.

    Returns:
        Key index with the persisted strategy and parameters.

    Raises:
        UnknownKeyIndexError: If the strategy tag is not registered.
    """
    index_type = str(payload["type"])
    index_cls = _REGISTRY.get(index_type)
    if index_cls is None:
        raise UnknownKeyIndexError(
            f"Unknown key index type '{index_type}'. "
            f"Registered types: {', '.join(sorted(_REGISTRY))}."
        )
    key_bounds = key_bounds_from_payload(dict(payload["key_bounds"]))
    return index_cls.from_properties(key_bounds, dict(payload.get("properties", {})))


def registered_key_index_types() -> tuple[str, ...]:
    """Return registered strategy tags."""
    return tuple(sorted(_REGISTRY))


KeyIndexMethod = Callable[[KeyBounds[Any]], KeyIndex[Any]]
