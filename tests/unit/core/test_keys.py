"""Unit tests for grid keys and key bounds."""

from __future__ import annotations

import pytest

from core.errors import InvalidBoundsError
from core.keys import (
    KeyBounds,
    SpaceTimeKey,
    SpatialKey,
    key_bounds_from_payload,
    key_bounds_to_payload,
    key_from_payload,
    key_to_payload,
)
from core.types import LayerId, TileLayer, index_range


def test_key_bounds_rejects_min_above_max() -> None:
    """Bounds with min greater than max on any axis should raise."""
    with pytest.raises(InvalidBoundsError):
        KeyBounds(SpatialKey(3, 0), SpatialKey(2, 5))


def test_key_bounds_rejects_mixed_key_types() -> None:
    """Bounds should not mix spatial and space-time keys."""
    with pytest.raises(InvalidBoundsError):
        KeyBounds(SpatialKey(0, 0), SpaceTimeKey(1, 1, 1))


def test_key_bounds_from_keys_encloses_all_keys() -> None:
    """Computed bounds should be the per-axis min and max."""
    keys = [SpatialKey(4, 1), SpatialKey(-2, 7), SpatialKey(0, 3)]

    bounds = KeyBounds.from_keys(keys)

    assert bounds == KeyBounds(SpatialKey(-2, 1), SpatialKey(4, 7))


def test_key_bounds_from_no_keys_raises() -> None:
    """Empty key sets have no bounds."""
    with pytest.raises(InvalidBoundsError):
        KeyBounds.from_keys([])


def test_key_bounds_intersect_returns_overlap() -> None:
    """Overlapping bounds should intersect to the shared region."""
    left = KeyBounds(SpatialKey(0, 0), SpatialKey(5, 5))
    right = KeyBounds(SpatialKey(3, 4), SpatialKey(9, 9))

    overlap = left.intersect(right)

    assert overlap == KeyBounds(SpatialKey(3, 4), SpatialKey(5, 5))


def test_key_bounds_intersect_returns_none_when_disjoint() -> None:
    """Disjoint bounds should have no intersection."""
    left = KeyBounds(SpatialKey(0, 0), SpatialKey(1, 1))
    right = KeyBounds(SpatialKey(2, 0), SpatialKey(3, 1))

    assert left.intersect(right) is None


def test_key_bounds_intersect_rejects_other_key_type() -> None:
    """Intersecting spatial with space-time bounds should raise."""
    spatial = KeyBounds(SpatialKey(0, 0), SpatialKey(1, 1))
    spacetime = KeyBounds(SpaceTimeKey(0, 0, 0), SpaceTimeKey(1, 1, 1))

    with pytest.raises(InvalidBoundsError):
        spatial.intersect(spacetime)


def test_key_bounds_contains_is_inclusive() -> None:
    """Both corners should be inside the bounds."""
    bounds = KeyBounds(SpaceTimeKey(0, 0, 10), SpaceTimeKey(2, 2, 20))

    assert bounds.contains(SpaceTimeKey(0, 0, 10))
    assert bounds.contains(SpaceTimeKey(2, 2, 20))
    assert not bounds.contains(SpaceTimeKey(2, 2, 21))


def test_key_bounds_combine_encloses_both() -> None:
    """Combined bounds should cover both inputs."""
    left = KeyBounds(SpatialKey(0, 0), SpatialKey(1, 1))
    right = KeyBounds(SpatialKey(5, -3), SpatialKey(6, 0))

    combined = left.combine(right)

    assert combined.covers(left) and combined.covers(right)


def test_key_payloads_restore_keys_and_bounds() -> None:
    """Keys and bounds should survive payload encoding."""
    key = SpaceTimeKey(3, 4, 1_700_000_000_000)
    bounds = KeyBounds(SpatialKey(-1, -1), SpatialKey(8, 8))

    assert key_from_payload(key_to_payload(key)) == key
    assert key_bounds_from_payload(key_bounds_to_payload(bounds)) == bounds


def test_key_bounds_payload_rejects_unknown_key_type() -> None:
    """Unknown key type tags should raise."""
    payload = key_bounds_to_payload(KeyBounds(SpatialKey(0, 0), SpatialKey(1, 1)))
    payload["key_type"] = "hexagonal"

    with pytest.raises(InvalidBoundsError):
        key_bounds_from_payload(payload)


def test_index_range_rejects_inverted_and_overflowing_ranges() -> None:
    """Index ranges must be ordered and fit in signed 64 bits."""
    with pytest.raises(InvalidBoundsError):
        index_range(5, 4)
    with pytest.raises(InvalidBoundsError):
        index_range(0, 2**63)


def test_layer_id_requires_name_and_non_negative_zoom() -> None:
    """Layer ids should validate their fields."""
    with pytest.raises(ValueError):
        LayerId(name="", zoom=0)
    with pytest.raises(ValueError):
        LayerId(name="elevation", zoom=-1)

    assert str(LayerId(name="elevation", zoom=3)) == "elevation:3"


def test_tile_layer_from_records_computes_bounds() -> None:
    """Tile layers built from records should carry key bounds."""
    layer = TileLayer.from_records({SpatialKey(1, 2): "a", SpatialKey(3, 0): "b"})

    assert len(layer) == 2
    assert layer.key_bounds == KeyBounds(SpatialKey(1, 0), SpatialKey(3, 2))
    assert TileLayer.from_records([]).key_bounds is None
