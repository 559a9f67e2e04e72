"""Unit tests for the cached layer metadata catalog."""

from __future__ import annotations

import json
import threading
from typing import Any, Mapping

import pytest

from core.errors import AttributeCorruptError, LayerNotFoundError
from core.keys import KeyBounds, SpatialKey
from core.types import LayerHeader, LayerId, LayerMetadata, PartitionSelector
from index import HilbertSpatialKeyIndex, ZSpatialKeyIndex
from store.attribute_store import FileAttributeStore
from store.layer_catalog import LayerCatalog
from store.metadata_cache import MetadataCache


class _CountingAttributeStore:
    def __init__(self, inner: FileAttributeStore) -> None:
        self._inner = inner
        self.reads = 0
        self.listings = 0

    def read_attributes(self, layer_id: LayerId) -> dict[str, Any]:
        self.reads += 1
        return self._inner.read_attributes(layer_id)

    def write_attributes(self, layer_id: LayerId, attributes: Mapping[str, Any]) -> None:
        self._inner.write_attributes(layer_id, attributes)

    def delete_attributes(self, layer_id: LayerId) -> None:
        self._inner.delete_attributes(layer_id)

    def exists(self, layer_id: LayerId) -> bool:
        return self._inner.exists(layer_id)

    def layer_ids(self) -> list[LayerId]:
        self.listings += 1
        return self._inner.layer_ids()


def _metadata(max_col: int = 7, key_index_cls=ZSpatialKeyIndex) -> LayerMetadata[SpatialKey]:
    bounds = KeyBounds(SpatialKey(0, 0), SpatialKey(max_col, 7))
    return LayerMetadata(
        header=LayerHeader(
            backend="memory",
            location="memory://",
            partition=PartitionSelector(table="dem/3", column_family="tiles"),
        ),
        key_bounds=bounds,
        key_index=key_index_cls(bounds),
        schema={"codec": "json"},
    )


def test_catalog_returns_written_metadata(tmp_path) -> None:
    """Read should return what write recorded."""
    catalog = LayerCatalog(FileAttributeStore(tmp_path))
    layer_id = LayerId(name="dem", zoom=3)
    metadata = _metadata()

    catalog.write(layer_id, metadata)

    assert catalog.read(layer_id) == metadata


def test_catalog_write_replaces_cached_metadata(tmp_path) -> None:
    """A read after an overwrite should observe the new entry, not the cached one."""
    catalog = LayerCatalog(FileAttributeStore(tmp_path))
    layer_id = LayerId(name="dem", zoom=3)
    catalog.write(layer_id, _metadata(max_col=7))
    catalog.read(layer_id)

    catalog.write(layer_id, _metadata(max_col=15, key_index_cls=HilbertSpatialKeyIndex))
    metadata = catalog.read(layer_id)

    assert metadata.key_bounds.max_key == SpatialKey(15, 7)
    assert metadata.key_index.index_type == "hilbert"


def test_catalog_serves_repeat_reads_from_cache(tmp_path) -> None:
    """Repeated reads should hit the attribute store once."""
    store = _CountingAttributeStore(FileAttributeStore(tmp_path))
    catalog = LayerCatalog(store)
    layer_id = LayerId(name="dem", zoom=3)
    catalog.write(layer_id, _metadata())

    for _ in range(3):
        catalog.read(layer_id)

    assert store.reads == 1
    assert catalog.cache_read(layer_id, "schema") == {"codec": "json"}


def test_catalog_raises_for_missing_layer(tmp_path) -> None:
    """Unknown layers should raise not-found."""
    catalog = LayerCatalog(FileAttributeStore(tmp_path))

    with pytest.raises(LayerNotFoundError):
        catalog.read(LayerId(name="missing", zoom=0))


def test_catalog_raises_for_unknown_key_index(tmp_path) -> None:
    """A persisted key index with an unknown tag should read as corrupt."""
    catalog = LayerCatalog(FileAttributeStore(tmp_path))
    layer_id = LayerId(name="dem", zoom=3)
    catalog.write(layer_id, _metadata())
    path = tmp_path / "attributes" / "dem" / "3.json"
    document = json.loads(path.read_text(encoding="utf-8"))
    document["key_index"]["type"] = "peano"
    path.write_text(json.dumps(document), encoding="utf-8")

    with pytest.raises(AttributeCorruptError):
        LayerCatalog(FileAttributeStore(tmp_path)).read(layer_id)


def test_catalog_raises_for_missing_attribute(tmp_path) -> None:
    """Documents lacking an attribute should read as corrupt."""
    store = FileAttributeStore(tmp_path)
    layer_id = LayerId(name="dem", zoom=3)
    store.write_attributes(layer_id, {"schema": {"codec": "json"}})

    with pytest.raises(AttributeCorruptError):
        LayerCatalog(store).read(layer_id)


def test_catalog_lists_and_checks_layers(tmp_path) -> None:
    """Catalog should report which layers exist."""
    catalog = LayerCatalog(FileAttributeStore(tmp_path))
    catalog.write(LayerId(name="dem", zoom=3), _metadata())

    assert catalog.layer_ids() == [LayerId(name="dem", zoom=3)]
    assert catalog.layer_exists(LayerId(name="dem", zoom=3))
    assert not catalog.layer_exists(LayerId(name="dem", zoom=4))


def test_catalog_readers_never_see_mixed_entries(tmp_path) -> None:
    """Concurrent reads during overwrites should see one whole entry."""
    catalog = LayerCatalog(FileAttributeStore(tmp_path))
    layer_id = LayerId(name="dem", zoom=3)
    versions = [_metadata(max_col=7), _metadata(max_col=15, key_index_cls=HilbertSpatialKeyIndex)]
    catalog.write(layer_id, versions[0])
    observed: list[LayerMetadata[SpatialKey]] = []

    def _read_many() -> None:
        for _ in range(50):
            observed.append(catalog.read(layer_id))

    readers = [threading.Thread(target=_read_many) for _ in range(4)]
    for reader in readers:
        reader.start()
    for round_index in range(20):
        catalog.write(layer_id, versions[round_index % 2])
    for reader in readers:
        reader.join()

    assert observed and all(metadata in versions for metadata in observed)


def test_metadata_cache_evicts_least_recently_used() -> None:
    """The cache should drop the oldest entry once full."""
    cache = MetadataCache(max_entries=2)
    cache.put("a", "header", 1)
    cache.put("b", "header", 2)
    cache.get("a", "header")

    cache.put("c", "header", 3)

    assert cache.get("a", "header") == (True, 1)
    assert cache.get("b", "header") == (False, None)
    assert len(cache) == 2


def test_catalog_layer_exists_checks_one_entry(tmp_path) -> None:
    """Existence checks should not list the whole catalog."""
    store = _CountingAttributeStore(FileAttributeStore(tmp_path))
    catalog = LayerCatalog(store)
    catalog.write(LayerId(name="dem", zoom=3), _metadata())

    assert catalog.layer_exists(LayerId(name="dem", zoom=3))
    catalog.read(LayerId(name="dem", zoom=3))
    assert catalog.layer_exists(LayerId(name="dem", zoom=3))
    assert not catalog.layer_exists(LayerId(name="ndvi", zoom=3))
    assert store.listings == 0


def test_catalog_delete_removes_entry_and_cache(tmp_path) -> None:
    """Deleted layers should be absent even after a cached read."""
    catalog = LayerCatalog(FileAttributeStore(tmp_path))
    layer_id = LayerId(name="dem", zoom=3)
    catalog.write(layer_id, _metadata())
    catalog.read(layer_id)

    catalog.delete(layer_id)
    catalog.delete(layer_id)

    assert not catalog.layer_exists(layer_id)
    assert catalog.layer_ids() == []
    with pytest.raises(LayerNotFoundError):
        catalog.read(layer_id)
