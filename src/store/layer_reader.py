"""Layer read orchestration.

Reads resolve layer metadata, decompose the query bounds with the
layer's key index, merge the index ranges into scan ranges, and decode
the scanned tile entries back into a tile layer.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Any

from core.constants import DEFAULT_MAX_SCAN_WORKERS
from core.errors import LayerReadError, TesseraError, TileNotFoundError
from core.keys import GridKey, KeyBounds
from core.logging_config import get_logger
from core.types import IndexRange, LayerId, LayerMetadata, PartitionSelector, TileLayer
from index.merge_queue import merge_ranges
from store.backing_store import BackingStore
from store.layer_catalog import LayerCatalog
from store.record_payload import ValueCodec, codec_from_schema, decode_entries

_LOGGER = get_logger(__name__)


class LayerReader:
    """Reads tile layers through the catalog and a backing store."""

    def __init__(
        self,
        catalog: LayerCatalog,
        backing_store: BackingStore,
        max_scan_workers: int = DEFAULT_MAX_SCAN_WORKERS,
    ) -> None:
        """Initialize reader.

        Args:
            catalog: Layer metadata catalog.
            backing_store: Tile backing store holding the layers.
            max_scan_workers: Threads used to issue range scans.
        """
        self._catalog = catalog
        self._backing_store = backing_store
        self._max_scan_workers = max_scan_workers

    def read(
        self,
        layer_id: LayerId,
        query_bounds: KeyBounds[Any] | None = None,
    ) -> TileLayer[Any]:
        """Read the tiles of a layer inside query bounds.

        Args:
            layer_id: Layer identifier.
            query_bounds: Inclusive query region; the full extent when omitted.

        Returns:
            Tiles whose keys fall inside the query; empty when the query
            is disjoint from the layer.

        Raises:
            InvalidBoundsError: If the query uses another key type.
            LayerReadError: If metadata, scans, or decoding fail.
        """
        metadata = self._read_metadata(layer_id)
        self._check_backend(layer_id, metadata)
        query, scan_ranges = _plan_scan(metadata, query_bounds)
        if query is None:
            _LOGGER.info("layer_read", layer=str(layer_id), tile_count=0, scan_ranges=0)
            return TileLayer.empty()
        _LOGGER.debug(
            "scan_ranges_planned",
            layer=str(layer_id),
            scan_ranges=len(scan_ranges),
            first_index=scan_ranges[0].start if scan_ranges else None,
            last_index=scan_ranges[-1].end if scan_ranges else None,
        )
        try:
            codec = codec_from_schema(metadata.schema)
            records = self._scan_records(metadata.header.partition, scan_ranges, codec)
        except TesseraError as error:
            raise LayerReadError(
                layer_id, f"Failed to scan tiles of layer {layer_id}: {error}"
            ) from error
        selected = [(key, value) for key, value in records if query.contains(key)]
        _LOGGER.info(
            "layer_read",
            layer=str(layer_id),
            tile_count=len(selected),
            scan_ranges=len(scan_ranges),
        )
        return TileLayer.from_records(selected)

    def read_tile(self, layer_id: LayerId, key: GridKey) -> Any:
        """Read one tile by key.

        Args:
            layer_id: Layer identifier.
            key: Tile key.

        Returns:
            Decoded tile value.

        Raises:
            TileNotFoundError: If the layer holds no tile at key.
            LayerReadError: If metadata, scans, or decoding fail.
        """
        metadata = self._read_metadata(layer_id)
        self._check_backend(layer_id, metadata)
        if not metadata.key_bounds.contains(key):
            raise TileNotFoundError(
                f"Tile {key} is outside the extent of layer {layer_id}."
            )
        position = metadata.key_index.to_index(key)
        try:
            codec = codec_from_schema(metadata.schema)
            records = self._scan_records(
                metadata.header.partition, [IndexRange(position, position)], codec
            )
        except TesseraError as error:
            raise LayerReadError(
                layer_id, f"Failed to read tile {key} of layer {layer_id}: {error}"
            ) from error
        for record_key, value in records:
            if record_key == key:
                return value
        raise TileNotFoundError(f"Layer {layer_id} holds no tile at {key}.")

    def scan_ranges(
        self,
        layer_id: LayerId,
        query_bounds: KeyBounds[Any] | None = None,
    ) -> list[IndexRange]:
        """Return the merged scan ranges a read of query bounds would issue."""
        _, scan_ranges = _plan_scan(self._read_metadata(layer_id), query_bounds)
        return scan_ranges

    def read_metadata(self, layer_id: LayerId) -> LayerMetadata[Any]:
        """Return the catalog entry of a layer.

        Raises:
            LayerReadError: If the entry is missing or corrupt.
        """
        return self._read_metadata(layer_id)

    def _read_metadata(self, layer_id: LayerId) -> LayerMetadata[Any]:
        try:
            metadata = self._catalog.read(layer_id)
        except TesseraError as error:
            raise LayerReadError(
                layer_id, f"Failed to read metadata of layer {layer_id}: {error}"
            ) from error
        return metadata

    def _check_backend(self, layer_id: LayerId, metadata: LayerMetadata[Any]) -> None:
        if metadata.header.backend != self._backing_store.backend:
            raise LayerReadError(
                layer_id,
                f"Layer {layer_id} was written to a {metadata.header.backend} store but this "
                f"reader scans a {self._backing_store.backend} store.",
            )

    def _scan_records(
        self,
        selector: PartitionSelector,
        scan_ranges: list[IndexRange],
        codec: ValueCodec,
    ) -> list[tuple[GridKey, Any]]:
        """Issue one scan per range and decode the entries in range order."""

        def _scan_one(scan_range: IndexRange) -> list[tuple[GridKey, Any]]:
            decoded: list[tuple[GridKey, Any]] = []
            for _, payload in self._backing_store.scan(selector, [scan_range]):
                decoded.extend(decode_entries(payload, codec))
            return decoded

        if self._max_scan_workers <= 1 or len(scan_ranges) <= 1:
            batches = [_scan_one(scan_range) for scan_range in scan_ranges]
        else:
            with ThreadPoolExecutor(max_workers=self._max_scan_workers) as pool:
                batches = list(pool.map(_scan_one, scan_ranges))
        return [record for batch in batches for record in batch]


def _plan_scan(
    metadata: LayerMetadata[Any],
    query_bounds: KeyBounds[Any] | None,
) -> tuple[KeyBounds[Any] | None, list[IndexRange]]:
    """Clip a query to the layer extent and plan its merged scan ranges.

    Returns:
        Clipped query, or None when disjoint, and the scan ranges.
    """
    if query_bounds is None:
        query: KeyBounds[Any] | None = metadata.key_bounds
    else:
        query = metadata.key_bounds.intersect(query_bounds)
    if query is None:
        return None, []
    return query, merge_ranges(metadata.key_index.index_ranges(query))
