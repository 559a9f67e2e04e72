"""Unit tests for layer write orchestration."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

import pytest

from core.errors import (
    BackingStoreError,
    LayerExistsError,
    LayerMetadataWriteError,
    LayerReadError,
    LayerWriteError,
    TesseraError,
)
from core.keys import KeyBounds, SpaceTimeKey, SpatialKey
from core.types import LayerId, PartitionSelector, TileLayer
from index import HilbertMethod, RowMajorMethod, ZSpatialKeyIndex
from store.attribute_store import FileAttributeStore
from store.backing_store import InMemoryBackingStore
from store.layer_catalog import LayerCatalog
from store.layer_reader import LayerReader
from store.layer_writer import LayerWriter, partition_selector


class _FailingBackingStore(InMemoryBackingStore):
    def write(self, selector: PartitionSelector, entries: Iterable[tuple[int, bytes]]) -> None:
        raise BackingStoreError("disk full")


class _FailingAttributeStore(FileAttributeStore):
    def write_attributes(self, layer_id: LayerId, attributes: Mapping[str, Any]) -> None:
        raise TesseraError("metadata store unavailable")


class _SecondWriteFailingAttributeStore(FileAttributeStore):
    writes = 0

    def write_attributes(self, layer_id: LayerId, attributes: Mapping[str, Any]) -> None:
        self.writes += 1
        if self.writes > 1:
            raise TesseraError("metadata store unavailable")
        super().write_attributes(layer_id, attributes)


def _layer() -> TileLayer[SpatialKey]:
    return TileLayer.from_records(
        {SpatialKey(col, row): {"value": col * 10 + row} for col in range(4) for row in range(3)}
    )


def test_writer_records_metadata_for_written_tiles(tmp_path) -> None:
    """Writes should store tiles and record bounds, index, and schema."""
    catalog = LayerCatalog(FileAttributeStore(tmp_path))
    store = InMemoryBackingStore()
    writer = LayerWriter(catalog, store)
    layer_id = LayerId(name="dem", zoom=2)

    metadata = writer.write(layer_id, _layer())

    assert catalog.read(layer_id) == metadata
    assert metadata.key_bounds == KeyBounds(SpatialKey(0, 0), SpatialKey(3, 2))
    assert metadata.key_index.index_type == "zorder"
    assert metadata.schema == {"codec": "json"}
    assert store.partitions() == (PartitionSelector(table="dem/2", column_family="tiles"),)


@pytest.mark.parametrize(
    ("method", "index_type"), [(RowMajorMethod(), "row-major"), (HilbertMethod(), "hilbert")]
)
def test_writer_uses_requested_key_index_method(tmp_path, method, index_type) -> None:
    """An explicit index method should decide the persisted strategy."""
    writer = LayerWriter(LayerCatalog(FileAttributeStore(tmp_path)), InMemoryBackingStore())

    metadata = writer.write(LayerId(name="dem", zoom=2), _layer(), key_index_method=method)

    assert metadata.key_index.index_type == index_type


def test_writer_defaults_to_spacetime_index_for_spacetime_keys(tmp_path) -> None:
    """Space-time layers should get a space-time Z-order index."""
    writer = LayerWriter(LayerCatalog(FileAttributeStore(tmp_path)), InMemoryBackingStore())
    layer = TileLayer.from_records({SpaceTimeKey(0, 0, 0): 1, SpaceTimeKey(1, 1, 5_000): 2})

    metadata = writer.write(LayerId(name="ndvi", zoom=0), layer)

    assert metadata.key_index.index_type == "zorder-spacetime"


def test_writer_reuses_covering_key_index(tmp_path) -> None:
    """A supplied index covering the layer should be persisted as-is."""
    writer = LayerWriter(LayerCatalog(FileAttributeStore(tmp_path)), InMemoryBackingStore())
    key_index = ZSpatialKeyIndex(KeyBounds(SpatialKey(0, 0), SpatialKey(15, 15)))

    metadata = writer.write(LayerId(name="dem", zoom=2), _layer(), key_index=key_index)

    assert metadata.key_index == key_index


def test_writer_rejects_key_index_not_covering_layer(tmp_path) -> None:
    """A supplied index smaller than the layer should fail the write."""
    catalog = LayerCatalog(FileAttributeStore(tmp_path))
    writer = LayerWriter(catalog, InMemoryBackingStore())
    key_index = ZSpatialKeyIndex(KeyBounds(SpatialKey(0, 0), SpatialKey(1, 1)))

    with pytest.raises(LayerWriteError):
        writer.write(LayerId(name="dem", zoom=2), _layer(), key_index=key_index)

    assert not catalog.layer_exists(LayerId(name="dem", zoom=2))


def test_writer_rejects_empty_layer(tmp_path) -> None:
    """Layers without tiles cannot be written."""
    writer = LayerWriter(LayerCatalog(FileAttributeStore(tmp_path)), InMemoryBackingStore())

    with pytest.raises(LayerWriteError):
        writer.write(LayerId(name="dem", zoom=2), TileLayer.empty())


def test_writer_leaves_no_entry_when_data_write_fails(tmp_path) -> None:
    """A failed tile write should not create a catalog entry."""
    catalog = LayerCatalog(FileAttributeStore(tmp_path))
    writer = LayerWriter(catalog, _FailingBackingStore())
    layer_id = LayerId(name="dem", zoom=2)

    with pytest.raises(LayerWriteError) as error_info:
        writer.write(layer_id, _layer())

    assert error_info.value.layer_id == layer_id
    assert isinstance(error_info.value.__cause__, BackingStoreError)
    assert catalog.layer_ids() == []


def test_writer_reports_metadata_failure_after_data_write(tmp_path) -> None:
    """A failed metadata write should raise a distinct error with data already stored."""
    store = InMemoryBackingStore()
    catalog = LayerCatalog(_FailingAttributeStore(tmp_path))
    writer = LayerWriter(catalog, store)

    with pytest.raises(LayerMetadataWriteError):
        writer.write(LayerId(name="dem", zoom=2), _layer())

    assert store.partitions() == (PartitionSelector(table="dem/2", column_family="tiles"),)
    assert catalog.layer_ids() == []


def test_writer_refuses_to_clobber_when_asked(tmp_path) -> None:
    """Non-clobbering writes should fail for existing layers."""
    writer = LayerWriter(LayerCatalog(FileAttributeStore(tmp_path)), InMemoryBackingStore())
    layer_id = LayerId(name="dem", zoom=2)
    writer.write(layer_id, _layer())

    with pytest.raises(LayerExistsError):
        writer.write(layer_id, _layer(), clobber=False)


def test_partition_selector_formats_layer_data_dir() -> None:
    """Partition tables should follow the configured template."""
    selector = partition_selector(LayerId(name="dem", zoom=9), "layers/{name}-z{zoom}")

    assert selector == PartitionSelector(table="layers/dem-z9", column_family="tiles")


def test_failed_rewrite_leaves_layer_absent(tmp_path) -> None:
    """A re-write whose metadata fails should not leave the old entry over new tiles."""
    store = InMemoryBackingStore()
    catalog = LayerCatalog(_SecondWriteFailingAttributeStore(tmp_path))
    writer = LayerWriter(catalog, store)
    layer_id = LayerId(name="dem", zoom=2)
    writer.write(layer_id, _layer())
    shifted = TileLayer.from_records(
        {SpatialKey(col, row): col + row for col in range(10, 14) for row in range(10, 12)}
    )

    with pytest.raises(LayerMetadataWriteError):
        writer.write(layer_id, shifted)

    assert catalog.layer_ids() == []
    assert not catalog.layer_exists(layer_id)
    with pytest.raises(LayerReadError):
        LayerReader(catalog, store).read(layer_id)


def test_failed_rewrite_of_tiles_leaves_layer_absent(tmp_path) -> None:
    """A re-write whose tile write fails should drop the replaced entry."""
    catalog = LayerCatalog(FileAttributeStore(tmp_path))
    layer_id = LayerId(name="dem", zoom=2)
    LayerWriter(catalog, InMemoryBackingStore()).write(layer_id, _layer())

    with pytest.raises(LayerWriteError):
        LayerWriter(catalog, _FailingBackingStore()).write(layer_id, _layer())

    assert not catalog.layer_exists(layer_id)


def test_partition_selector_escapes_layer_name() -> None:
    """Names with path separators should map to a single table segment."""
    selector = partition_selector(LayerId(name="ndvi/2024", zoom=2))

    assert selector.table == "ndvi%2F2024/2"


@pytest.mark.parametrize("name", [".", ".."])
def test_layer_id_rejects_relative_path_names(name) -> None:
    """Dot names should not be accepted as layer names."""
    with pytest.raises(ValueError):
        LayerId(name=name, zoom=0)
