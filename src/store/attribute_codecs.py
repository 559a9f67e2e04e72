"""Catalog attribute encoding.

This module isolates JSON encoding of the header, key bounds, key index,
and schema attributes so the catalog stays focused on caching and
consistency.
"""

from __future__ import annotations

from typing import Any, Callable, TypeVar

from core.constants import (
    HEADER_ATTRIBUTE,
    KEY_BOUNDS_ATTRIBUTE,
    KEY_INDEX_ATTRIBUTE,
    SCHEMA_ATTRIBUTE,
)
from core.errors import AttributeCorruptError, TesseraError
from core.keys import KeyBounds, key_bounds_from_payload, key_bounds_to_payload
from core.types import LayerHeader, LayerId, LayerMetadata, PartitionSelector
from index.key_index import KeyIndex, key_index_from_payload

T = TypeVar("T")


def encode_layer_attributes(metadata: LayerMetadata[Any]) -> dict[str, Any]:
    """Encode layer metadata into its four attribute payloads.

    Args:
        metadata: Layer metadata to persist.

    Returns:
        Attribute name to JSON-safe payload mapping.
    """
    header = metadata.header
    return {
        HEADER_ATTRIBUTE: {
            "backend": header.backend,
            "location": header.location,
            "table": header.partition.table,
            "column_family": header.partition.column_family,
        },
        KEY_BOUNDS_ATTRIBUTE: key_bounds_to_payload(metadata.key_bounds),
        KEY_INDEX_ATTRIBUTE: metadata.key_index.to_payload(),
        SCHEMA_ATTRIBUTE: dict(metadata.schema),
    }


def decode_layer_attributes(layer_id: LayerId, attributes: dict[str, Any]) -> LayerMetadata[Any]:
    """Decode the four attribute payloads of a layer.

    Args:
        layer_id: Layer id for error context.
        attributes: Attribute name to payload mapping.

    Returns:
        Typed layer metadata.

    Raises:
        AttributeCorruptError: If any attribute is missing or malformed.
    """
    header = _decode(layer_id, attributes, HEADER_ATTRIBUTE, _header_from_payload)
    key_bounds: KeyBounds[Any] = _decode(
        layer_id, attributes, KEY_BOUNDS_ATTRIBUTE, key_bounds_from_payload
    )
    key_index: KeyIndex[Any] = _decode(
        layer_id, attributes, KEY_INDEX_ATTRIBUTE, key_index_from_payload
    )
    schema = _decode(layer_id, attributes, SCHEMA_ATTRIBUTE, dict)
    if key_index.key_bounds.key_type is not key_bounds.key_type:
        raise AttributeCorruptError(
            f"Metadata of layer {layer_id} pairs {key_bounds.key_type.__name__} bounds "
            f"with a {key_index.key_bounds.key_type.__name__} key index."
        )
    return LayerMetadata(header=header, key_bounds=key_bounds, key_index=key_index, schema=schema)


def _decode(
    layer_id: LayerId,
    attributes: dict[str, Any],
    name: str,
    parse: Callable[[Any], T],
) -> T:
    """Decode one attribute payload.

    Raises:
        AttributeCorruptError: If the attribute is missing or malformed.
    """
    if name not in attributes:
        raise AttributeCorruptError(
            f"Attribute '{name}' missing from metadata of layer {layer_id}. "
            "Rewrite the layer to restore its catalog entry."
        )
    payload = attributes[name]
    if not isinstance(payload, dict):
        raise AttributeCorruptError(
            f"Attribute '{name}' of layer {layer_id} is not a JSON object."
        )
    try:
        return parse(payload)
    except (KeyError, TypeError, ValueError, TesseraError) as error:
        raise AttributeCorruptError(
            f"Failed to decode attribute '{name}' of layer {layer_id}: {error}."
        ) from error


def _header_from_payload(payload: dict[str, Any]) -> LayerHeader:
    """Deserialize header payload."""
    return LayerHeader(
        backend=str(payload["backend"]),
        location=str(payload["location"]),
        partition=PartitionSelector(
            table=str(payload["table"]),
            column_family=str(payload["column_family"]),
        ),
    )
