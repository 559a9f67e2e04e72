"""Unit tests for range-scan backing stores."""

from __future__ import annotations

import pytest

from core.errors import BackingStoreError
from core.types import IndexRange, PartitionSelector
from store.backing_store import InMemoryBackingStore, LanceBackingStore, _range_filter

SELECTOR = PartitionSelector(table="dem/3", column_family="tiles")


def test_memory_store_scans_inclusive_ranges() -> None:
    """Scans should yield entries at both range ends in index order."""
    store = InMemoryBackingStore()
    store.write(SELECTOR, [(9, b"i"), (1, b"a"), (4, b"d"), (5, b"e")])

    entries = list(store.scan(SELECTOR, [IndexRange(1, 4), IndexRange(9, 12)]))

    assert entries == [(1, b"a"), (4, b"d"), (9, b"i")]


def test_memory_store_write_replaces_partition() -> None:
    """A second write should drop entries of the first."""
    store = InMemoryBackingStore()
    store.write(SELECTOR, [(1, b"old"), (2, b"old")])

    store.write(SELECTOR, [(2, b"new")])

    assert list(store.scan(SELECTOR, [IndexRange(0, 10)])) == [(2, b"new")]


def test_memory_store_raises_for_missing_partition() -> None:
    """Scanning an unwritten partition should raise."""
    store = InMemoryBackingStore()

    with pytest.raises(BackingStoreError):
        list(store.scan(SELECTOR, [IndexRange(0, 1)]))


def test_range_filter_renders_inclusive_clauses() -> None:
    """Lance filters should OR one inclusive clause per range."""
    expression = _range_filter([IndexRange(0, 3), IndexRange(7, 7)])

    assert expression == (
        "(tile_index >= 0 AND tile_index <= 3) OR (tile_index >= 7 AND tile_index <= 7)"
    )


def test_lance_store_scans_written_partition(tmp_path) -> None:
    """Lance datasets should return entries inside the scanned ranges."""
    pytest.importorskip("lance")
    store = LanceBackingStore(tmp_path)
    store.write(SELECTOR, [(3, b"c"), (0, b"a"), (8, b"h")])

    entries = list(store.scan(SELECTOR, [IndexRange(0, 3)]))

    assert entries == [(0, b"a"), (3, b"c")]
    assert (tmp_path / "dem" / "3" / "tiles.lance").exists()


def test_lance_store_raises_for_missing_partition(tmp_path) -> None:
    """Scanning a partition that was never written should raise."""
    pytest.importorskip("lance")
    store = LanceBackingStore(tmp_path)

    with pytest.raises(BackingStoreError):
        list(store.scan(SELECTOR, [IndexRange(0, 1)]))


@pytest.mark.parametrize("table", ["../outside", "dem/../../outside"])
def test_lance_store_rejects_partitions_outside_root(tmp_path, table) -> None:
    """Partition tables must not resolve outside the store root."""
    store = LanceBackingStore(tmp_path / "root")
    selector = PartitionSelector(table=table, column_family="tiles")

    with pytest.raises(BackingStoreError):
        list(store.scan(selector, [IndexRange(0, 1)]))
    with pytest.raises(BackingStoreError):
        store.write(selector, [(0, b"a")])

    assert not (tmp_path / "outside").exists()
