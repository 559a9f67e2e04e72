"""Tessera exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each subsystem raises a specific error type for debuggability.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from core.types import LayerId


class TesseraError(Exception):
    """Base exception for all Tessera failures."""


class TesseraConfigError(TesseraError):
    """Raised for invalid runtime configuration."""


class TesseraDependencyError(TesseraError):
    """Raised when an optional runtime dependency is missing."""


class InvalidBoundsError(TesseraError, ValueError):
    """Raised for malformed key bounds or index ranges (min > max)."""


class KeyOutOfBoundsError(TesseraError, ValueError):
    """Raised when a key falls outside the key space of an index."""


class UnknownKeyIndexError(TesseraError):
    """Raised when a persisted key index names an unregistered strategy."""


class LayerNotFoundError(TesseraError):
    """Raised when the catalog holds no entry for a layer id."""


class AttributeCorruptError(TesseraError):
    """Raised when a stored metadata attribute cannot be decoded."""


class LayerExistsError(TesseraError):
    """Raised when a non-clobbering write targets an existing layer."""


class TileNotFoundError(TesseraError):
    """Raised when a single-key lookup finds no stored tile."""


class BackingStoreError(TesseraError):
    """Raised for tile backing store scan and write failures."""


class RecordCodecError(TesseraError):
    """Raised when tile payload bytes cannot be encoded or decoded."""


class _LayerError(TesseraError):
    """Layer-scoped failure carrying the offending layer id."""

    _verb = "Layer operation"

    def __init__(self, layer_id: "LayerId", message: str | None = None) -> None:
        self.layer_id = layer_id
        super().__init__(message or f"{self._verb} failed for layer {layer_id}.")


class LayerReadError(_LayerError):
    """Raised when reading a layer fails; the cause is chained."""

    _verb = "Read"


class LayerWriteError(_LayerError):
    """Raised when writing layer data fails; no catalog entry is written."""

    _verb = "Write"


class LayerMetadataWriteError(_LayerError):
    """Raised when layer data was written but its catalog entry was not.

    The tile data is left orphaned with no catalog entry, so the layer
    appears absent rather than corrupt.
    """

    _verb = "Metadata write"
