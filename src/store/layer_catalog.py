"""Layer metadata catalog.

This module maps layer ids to their header, key bounds, key index, and
schema. Reads go through a bounded cache keyed by layer and attribute;
writes replace all four attributes at once and invalidate the cache.
"""

from __future__ import annotations

from typing import Any

from core.constants import DEFAULT_METADATA_CACHE_SIZE, HEADER_ATTRIBUTE, LAYER_ATTRIBUTES
from core.errors import AttributeCorruptError
from core.logging_config import get_logger
from core.types import LayerId, LayerMetadata
from store.attribute_codecs import decode_layer_attributes, encode_layer_attributes
from store.attribute_store import AttributeStore
from store.metadata_cache import MetadataCache

_LOGGER = get_logger(__name__)


class LayerCatalog:
    """Catalog of layer metadata backed by an attribute store.

    A write followed by any later read, from any thread, observes the
    new metadata; readers racing a write see either the old or the new
    attribute set, never a mix of both.
    """

    def __init__(
        self,
        attribute_store: AttributeStore,
        cache_size: int = DEFAULT_METADATA_CACHE_SIZE,
    ) -> None:
        """Initialize catalog.

        Args:
            attribute_store: Physical metadata store.
            cache_size: Maximum cached ``(layer, attribute)`` entries.
        """
        self._store = attribute_store
        self._cache = MetadataCache(cache_size)

    def write(self, layer_id: LayerId, metadata: LayerMetadata[Any]) -> None:
        """Persist layer metadata, replacing any prior entry.

        Args:
            layer_id: Layer identifier.
            metadata: Metadata to persist.
        """
        attributes = encode_layer_attributes(metadata)
        with self._cache.lock.write_locked():
            self._store.write_attributes(layer_id, attributes)
            self._cache.invalidate(layer_id)
        _LOGGER.info(
            "catalog_entry_written",
            layer=str(layer_id),
            key_index=metadata.key_index.index_type,
            backend=metadata.header.backend,
        )

    def read(self, layer_id: LayerId) -> LayerMetadata[Any]:
        """Read layer metadata.

        Args:
            layer_id: Layer identifier.

        Returns:
            Typed layer metadata.

        Raises:
            LayerNotFoundError: If the layer has no catalog entry.
            AttributeCorruptError: If a stored attribute cannot be decoded.
        """
        with self._cache.lock.read_locked():
            attributes = {
                name: self._cache_read(layer_id, name) for name in LAYER_ATTRIBUTES
            }
        return decode_layer_attributes(layer_id, attributes)

    def cache_read(self, layer_id: LayerId, attribute: str) -> Any:
        """Read one raw attribute payload through the cache.

        Raises:
            LayerNotFoundError: If the layer has no catalog entry.
            AttributeCorruptError: If the attribute is missing.
        """
        with self._cache.lock.read_locked():
            return self._cache_read(layer_id, attribute)

    def delete(self, layer_id: LayerId) -> None:
        """Remove a layer's catalog entry; unknown layers are a no-op."""
        with self._cache.lock.write_locked():
            self._store.delete_attributes(layer_id)
            self._cache.invalidate(layer_id)
        _LOGGER.info("catalog_entry_deleted", layer=str(layer_id))

    def layer_exists(self, layer_id: LayerId) -> bool:
        """Return whether the catalog holds an entry for the layer.

        Cached entries answer without touching the store; otherwise only
        the layer's own document is checked.
        """
        with self._cache.lock.read_locked():
            hit, _ = self._cache.get(layer_id, HEADER_ATTRIBUTE)
            if hit:
                return True
            return self._store.exists(layer_id)

    def layer_ids(self) -> list[LayerId]:
        """Return ids of every cataloged layer."""
        with self._cache.lock.read_locked():
            return self._store.layer_ids()

    def _cache_read(self, layer_id: LayerId, attribute: str) -> Any:
        """Read an attribute with the read lock already held."""
        hit, payload = self._cache.get(layer_id, attribute)
        if hit:
            return payload
        attributes = self._store.read_attributes(layer_id)
        for name in LAYER_ATTRIBUTES:
            if name in attributes:
                self._cache.put(layer_id, name, attributes[name])
        if attribute not in attributes:
            raise AttributeCorruptError(
                f"Attribute '{attribute}' missing from metadata of layer {layer_id}. "
                "Rewrite the layer to restore its catalog entry."
            )
        return attributes[attribute]
