"""Layer write orchestration.

Tile data is written to the backing store first and layer metadata
last, so a failed data write never leaves a catalog entry pointing at
incomplete tiles. Re-writing a layer drops its catalog entry before the
partition is replaced, so a failed re-write leaves the layer absent.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

from core.constants import DEFAULT_COLUMN_FAMILY, DEFAULT_LAYER_DATA_DIR
from core.errors import LayerExistsError, LayerMetadataWriteError, LayerWriteError, TesseraError
from core.keys import GridKey, KeyBounds, SpaceTimeKey
from core.logging_config import get_logger
from core.types import LayerHeader, LayerId, LayerMetadata, PartitionSelector, TileLayer
from index.key_index import KeyIndex, KeyIndexMethod
from index.z_curve import ZCurveMethod, ZCurveSpaceTimeMethod
from store.backing_store import BackingStore
from store.layer_catalog import LayerCatalog
from store.record_payload import ValueCodec, encode_entries, infer_codec

_LOGGER = get_logger(__name__)


def partition_selector(
    layer_id: LayerId,
    layer_data_dir: str = DEFAULT_LAYER_DATA_DIR,
) -> PartitionSelector:
    """Derive the backing store partition of a layer.

    Args:
        layer_id: Layer identifier.
        layer_data_dir: Template formatted with ``name`` and ``zoom``.

    Returns:
        Partition selector for the layer's tiles; the name is percent-escaped
        so it never adds path segments.
    """
    return PartitionSelector(
        table=layer_data_dir.format(name=quote(layer_id.name, safe=""), zoom=layer_id.zoom),
        column_family=DEFAULT_COLUMN_FAMILY,
    )


def default_key_index_method(key_bounds: KeyBounds[Any]) -> KeyIndexMethod:
    """Return the Z-order method matching the bounds' key type."""
    if key_bounds.key_type is SpaceTimeKey:
        return ZCurveSpaceTimeMethod()
    return ZCurveMethod()


class LayerWriter:
    """Writes tile layers to a backing store and records their metadata."""

    def __init__(
        self,
        catalog: LayerCatalog,
        backing_store: BackingStore,
        layer_data_dir: str = DEFAULT_LAYER_DATA_DIR,
    ) -> None:
        """Initialize writer.

        Args:
            catalog: Layer metadata catalog.
            backing_store: Tile backing store.
            layer_data_dir: Template mapping layer ids to partitions.
        """
        self._catalog = catalog
        self._backing_store = backing_store
        self._layer_data_dir = layer_data_dir

    def write(
        self,
        layer_id: LayerId,
        layer: TileLayer[Any],
        key_index_method: KeyIndexMethod | None = None,
        key_index: KeyIndex[Any] | None = None,
        codec: ValueCodec | None = None,
        clobber: bool = True,
    ) -> LayerMetadata[Any]:
        """Write a layer and its catalog entry.

        Args:
            layer_id: Layer identifier.
            layer: Tiles to write.
            key_index_method: Builds the key index from the layer bounds;
                Z-order for the layer's key type when omitted.
            key_index: Existing key index to reuse; must cover the layer.
            codec: Value codec; inferred from the first value when omitted.
            clobber: Whether an existing layer may be replaced.

        Returns:
            Metadata recorded for the layer.

        Raises:
            LayerExistsError: If clobber is false and the layer exists.
            LayerWriteError: If tile data cannot be written.
            LayerMetadataWriteError: If tiles were written but metadata was not.
        """
        exists = self._catalog.layer_exists(layer_id)
        if exists and not clobber:
            raise LayerExistsError(
                f"Layer {layer_id} already exists. Pass clobber=True to replace it."
            )
        if not layer.records:
            raise LayerWriteError(layer_id, f"Cannot write layer {layer_id}: it has no tiles.")
        selector = partition_selector(layer_id, self._layer_data_dir)
        try:
            key_bounds = KeyBounds.from_keys(key for key, _ in layer.records)
            layer_index = _resolve_key_index(key_bounds, key_index_method, key_index)
            value_codec = codec or infer_codec([value for _, value in layer.records])
            entries = _encode_layer(layer, layer_index, value_codec)
            if exists:
                self._catalog.delete(layer_id)
            self._backing_store.write(selector, entries)
        except Exception as error:
            raise LayerWriteError(
                layer_id, f"Failed to write tiles of layer {layer_id}: {error}"
            ) from error

        metadata = LayerMetadata(
            header=LayerHeader(
                backend=self._backing_store.backend,
                location=self._backing_store.location(),
                partition=selector,
            ),
            key_bounds=key_bounds,
            key_index=layer_index,
            schema=value_codec.schema(),
        )
        try:
            self._catalog.write(layer_id, metadata)
        except TesseraError as error:
            _LOGGER.warning(
                "layer_metadata_write_failed",
                layer=str(layer_id),
                table=selector.table,
                error=str(error),
            )
            raise LayerMetadataWriteError(
                layer_id,
                f"Tiles of layer {layer_id} were written to {selector.table} but its "
                f"catalog entry was not: {error}. The orphaned tiles are unreachable.",
            ) from error
        _LOGGER.info(
            "layer_written",
            layer=str(layer_id),
            tile_count=len(layer.records),
            index_positions=len(entries),
            key_index=layer_index.index_type,
            table=selector.table,
        )
        return metadata


def _resolve_key_index(
    key_bounds: KeyBounds[Any],
    key_index_method: KeyIndexMethod | None,
    key_index: KeyIndex[Any] | None,
) -> KeyIndex[Any]:
    """Reuse a covering key index or build one for the bounds.

    Raises:
        TesseraError: If the reused index does not cover the bounds.
    """
    if key_index is not None:
        if key_index.key_bounds.key_type is key_bounds.key_type and key_index.key_bounds.covers(
            key_bounds
        ):
            return key_index
        raise TesseraError(
            f"Key index over {key_index.key_bounds.min_key} .. {key_index.key_bounds.max_key} "
            f"does not cover layer bounds {key_bounds.min_key} .. {key_bounds.max_key}."
        )
    method = key_index_method or default_key_index_method(key_bounds)
    return method(key_bounds)


def _encode_layer(
    layer: TileLayer[Any],
    key_index: KeyIndex[Any],
    codec: ValueCodec,
) -> list[tuple[int, bytes]]:
    """Group tiles by index position and encode each group."""
    groups: dict[int, dict[GridKey, Any]] = {}
    for key, value in layer.records:
        groups.setdefault(key_index.to_index(key), {})[key] = value
    return [
        (position, encode_entries(sorted(group.items(), key=lambda item: item[0]), codec))
        for position, group in sorted(groups.items())
    ]
