"""Core constants used across Tessera modules.

This module centralizes non-domain-specific constants.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_DATA_ROOT = Path(".tessera")
ATTRIBUTES_DIR_NAME = "attributes"
TILES_DIR_NAME = "tiles"
LANCE_SUFFIX = ".lance"
DEFAULT_LAYER_DATA_DIR = "{name}/{zoom}"
DEFAULT_COLUMN_FAMILY = "tiles"
DEFAULT_METADATA_CACHE_SIZE = 256
DEFAULT_MAX_SCAN_WORKERS = 1
DEFAULT_MERGE_FUDGE = 1
DEFAULT_TEMPORAL_RESOLUTION_MILLIS = 24 * 60 * 60 * 1000
MIN_INT64 = -(2**63)
MAX_INT64 = 2**63 - 1

HEADER_ATTRIBUTE = "header"
KEY_BOUNDS_ATTRIBUTE = "key_bounds"
KEY_INDEX_ATTRIBUTE = "key_index"
SCHEMA_ATTRIBUTE = "schema"
LAYER_ATTRIBUTES = (
    HEADER_ATTRIBUTE,
    KEY_BOUNDS_ATTRIBUTE,
    KEY_INDEX_ATTRIBUTE,
    SCHEMA_ATTRIBUTE,
)

LANCE_BACKEND = "lance"
MEMORY_BACKEND = "memory"
