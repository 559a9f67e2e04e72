"""Python SDK for layer operations.

This module exposes high-level APIs for writing, reading, and inspecting
tile layers backed by the catalog and a range-scan backing store.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any

from core.config import TesseraConfig
from core.constants import TILES_DIR_NAME
from core.keys import GridKey, KeyBounds
from core.types import IndexRange, LayerId, LayerMetadata, TileLayer
from index.key_index import KeyIndex, KeyIndexMethod
from store.attribute_store import AttributeStore, FileAttributeStore
from store.backing_store import BackingStore, LanceBackingStore
from store.layer_catalog import LayerCatalog
from store.layer_reader import LayerReader
from store.layer_writer import LayerWriter
from store.record_payload import ValueCodec


class TesseraClient:
    """Primary SDK entry point for layer storage."""

    def __init__(
        self,
        config: TesseraConfig | None = None,
        attribute_store: AttributeStore | None = None,
        backing_store: BackingStore | None = None,
    ) -> None:
        """Create SDK client.

        Args:
            config: Optional runtime configuration.
            attribute_store: Metadata store; files under the data root by default.
            backing_store: Tile store; Lance datasets under the data root by default.
        """
        self._config = config or TesseraConfig.from_env()
        self._attribute_store = attribute_store or FileAttributeStore(self._config.data_root)
        self._backing_store = backing_store or LanceBackingStore(
            self._config.data_root / TILES_DIR_NAME
        )
        self._catalog = LayerCatalog(self._attribute_store, self._config.metadata_cache_size)
        self._writer = LayerWriter(
            self._catalog, self._backing_store, self._config.layer_data_dir
        )
        self._reader = LayerReader(
            self._catalog, self._backing_store, self._config.max_scan_workers
        )

    @property
    def catalog(self) -> LayerCatalog:
        """Return the layer metadata catalog."""
        return self._catalog

    def layer(self, name: str, zoom: int) -> "Layer":
        """Get layer handle by name and zoom.

        Args:
            name: Layer name.
            zoom: Zoom level.

        Returns:
            Layer handle.
        """
        return Layer(LayerId(name=name, zoom=zoom), self._writer, self._reader, self._catalog)

    def list_layers(self) -> list[LayerId]:
        """List cataloged layer ids in name/zoom order."""
        return self._catalog.layer_ids()

    def with_data_root(self, data_root: str) -> "TesseraClient":
        """Clone the client with a different local data root.

        Args:
            data_root: New data root path.

        Returns:
            New SDK client instance with default stores.
        """
        resolved_root = Path(data_root).expanduser().resolve()
        return TesseraClient(replace(self._config, data_root=resolved_root))


class Layer:
    """SDK handle for one layer id."""

    def __init__(
        self,
        layer_id: LayerId,
        writer: LayerWriter,
        reader: LayerReader,
        catalog: LayerCatalog,
    ) -> None:
        self._layer_id = layer_id
        self._writer = writer
        self._reader = reader
        self._catalog = catalog

    @property
    def layer_id(self) -> LayerId:
        """Return layer identifier."""
        return self._layer_id

    def exists(self) -> bool:
        """Return whether the layer is cataloged."""
        return self._catalog.layer_exists(self._layer_id)

    def write(
        self,
        records: TileLayer[Any] | dict[GridKey, Any],
        key_index_method: KeyIndexMethod | None = None,
        key_index: KeyIndex[Any] | None = None,
        codec: ValueCodec | None = None,
        clobber: bool = True,
    ) -> LayerMetadata[Any]:
        """Write tiles to this layer.

        Args:
            records: Tile layer or mapping of key to tile.
            key_index_method: Optional index strategy factory.
            key_index: Optional existing index to reuse.
            codec: Optional value codec.
            clobber: Whether an existing layer may be replaced.

        Returns:
            Recorded layer metadata.
        """
        layer = records if isinstance(records, TileLayer) else TileLayer.from_records(records)
        return self._writer.write(
            self._layer_id,
            layer,
            key_index_method=key_index_method,
            key_index=key_index,
            codec=codec,
            clobber=clobber,
        )

    def read(self, query_bounds: KeyBounds[Any] | None = None) -> TileLayer[Any]:
        """Read tiles inside query bounds, or the whole layer."""
        return self._reader.read(self._layer_id, query_bounds)

    def read_tile(self, key: GridKey) -> Any:
        """Read one tile by key."""
        return self._reader.read_tile(self._layer_id, key)

    def metadata(self) -> LayerMetadata[Any]:
        """Return the layer's catalog entry."""
        return self._reader.read_metadata(self._layer_id)

    def scan_ranges(self, query_bounds: KeyBounds[Any] | None = None) -> list[IndexRange]:
        """Return the merged scan ranges a read of query bounds would issue."""
        return self._reader.scan_ranges(self._layer_id, query_bounds)
