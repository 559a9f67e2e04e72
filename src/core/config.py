"""Runtime configuration model for Tessera.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from core.constants import (
    DEFAULT_DATA_ROOT,
    DEFAULT_LAYER_DATA_DIR,
    DEFAULT_MAX_SCAN_WORKERS,
    DEFAULT_METADATA_CACHE_SIZE,
)
from core.errors import TesseraConfigError


@dataclass(frozen=True)
class TesseraConfig:
    """Validated runtime configuration.

    Attributes:
        data_root: Local root directory for layer attributes and tiles.
        metadata_cache_size: Maximum cached (layer, attribute) entries.
        max_scan_workers: Worker threads used to dispatch range scans.
        layer_data_dir: Template mapping a layer id to its data directory.
        s3_region: Optional default AWS region for S3 attribute stores.
        s3_profile: Optional AWS profile for boto3 session initialization.
    """

    data_root: Path
    metadata_cache_size: int = DEFAULT_METADATA_CACHE_SIZE
    max_scan_workers: int = DEFAULT_MAX_SCAN_WORKERS
    layer_data_dir: str = DEFAULT_LAYER_DATA_DIR
    s3_region: str | None = None
    s3_profile: str | None = None

    @classmethod
    def from_env(cls) -> "TesseraConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            TesseraConfigError: If environment values are invalid.
        """
        data_root_value = os.getenv("TESSERA_DATA_ROOT", str(DEFAULT_DATA_ROOT))
        cache_size = _parse_positive_int(
            "TESSERA_METADATA_CACHE_SIZE",
            os.getenv("TESSERA_METADATA_CACHE_SIZE", str(DEFAULT_METADATA_CACHE_SIZE)),
        )
        max_scan_workers = _parse_positive_int(
            "TESSERA_MAX_SCAN_WORKERS",
            os.getenv("TESSERA_MAX_SCAN_WORKERS", str(DEFAULT_MAX_SCAN_WORKERS)),
        )
        layer_data_dir = _parse_layer_data_dir(
            os.getenv("TESSERA_LAYER_DATA_DIR", DEFAULT_LAYER_DATA_DIR)
        )
        return cls(
            data_root=Path(data_root_value).expanduser().resolve(),
            metadata_cache_size=cache_size,
            max_scan_workers=max_scan_workers,
            layer_data_dir=layer_data_dir,
            s3_region=os.getenv("TESSERA_S3_REGION"),
            s3_profile=os.getenv("TESSERA_S3_PROFILE"),
        )


def _parse_positive_int(variable: str, raw_value: str) -> int:
    """Parse a positive integer environment value.

    Args:
        variable: Environment variable name for error context.
        raw_value: Raw string from environment.

    Returns:
        Parsed integer.

    Raises:
        TesseraConfigError: If value is not a positive integer.
    """
    try:
        value = int(raw_value)
    except ValueError as error:
        raise TesseraConfigError(
            f"Invalid {variable} value: expected integer, got '{raw_value}'. "
            f"Set {variable} to a positive number."
        ) from error
    if value <= 0:
        raise TesseraConfigError(
            f"Invalid {variable} value: expected a positive integer, got {value}."
        )
    return value


def _parse_layer_data_dir(raw_value: str) -> str:
    """Validate the layer data directory template.

    Args:
        raw_value: Raw template string.

    Returns:
        Template that formats with ``name`` and ``zoom``.

    Raises:
        TesseraConfigError: If template references unknown fields.
    """
    try:
        raw_value.format(name="layer", zoom=0)
    except (KeyError, IndexError, ValueError) as error:
        raise TesseraConfigError(
            f"Invalid TESSERA_LAYER_DATA_DIR template '{raw_value}': {error}. "
            "Use only the {name} and {zoom} placeholders."
        ) from error
    return raw_value
