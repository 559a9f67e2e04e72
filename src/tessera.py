"""Public SDK surface for Tessera.

This module provides a stable import path for layer storage users.
It re-exports the primary client, key models, and index strategies.
"""

from __future__ import annotations

from core.config import TesseraConfig
from core.keys import KeyBounds, SpaceTimeKey, SpatialKey
from core.types import IndexRange, LayerId, LayerMetadata, TileLayer
from index import (
    HilbertMethod,
    KeyIndex,
    RowMajorMethod,
    ZCurveMethod,
    ZCurveSpaceTimeMethod,
    merge_ranges,
)
from store.backing_store import InMemoryBackingStore, LanceBackingStore
from store.layer_sdk import Layer, TesseraClient
from store.record_payload import BytesCodec, JsonValueCodec, NDArrayCodec

__all__ = [
    "BytesCodec",
    "HilbertMethod",
    "IndexRange",
    "InMemoryBackingStore",
    "JsonValueCodec",
    "KeyBounds",
    "KeyIndex",
    "LanceBackingStore",
    "Layer",
    "LayerId",
    "LayerMetadata",
    "NDArrayCodec",
    "RowMajorMethod",
    "SpaceTimeKey",
    "SpatialKey",
    "TesseraClient",
    "TesseraConfig",
    "TileLayer",
    "ZCurveMethod",
    "ZCurveSpaceTimeMethod",
    "merge_ranges",
]
