"""Physical stores for layer metadata attributes.

Each store keeps all attributes of one layer in a single JSON document
so a write replaces the whole attribute set at once. Attributes are
read and written by ``(LayerId, attribute name)``.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Mapping, Protocol
from urllib.parse import quote, unquote

from core.config import TesseraConfig
from core.constants import ATTRIBUTES_DIR_NAME
from core.errors import (
    AttributeCorruptError,
    LayerNotFoundError,
    TesseraDependencyError,
    TesseraError,
)
from core.types import LayerId


class AttributeStore(Protocol):
    """Get/put of metadata attribute documents per layer."""

    def read_attributes(self, layer_id: LayerId) -> dict[str, Any]:
        """Return every attribute of a layer.

        Raises:
            LayerNotFoundError: If no attributes exist for the layer.
            AttributeCorruptError: If the stored document is not valid JSON.
        """

    def write_attributes(self, layer_id: LayerId, attributes: Mapping[str, Any]) -> None:
        """Replace every attribute of a layer at once."""

    def delete_attributes(self, layer_id: LayerId) -> None:
        """Remove a layer's attributes; missing layers are ignored."""

    def exists(self, layer_id: LayerId) -> bool:
        """Return whether attributes are stored for the layer."""

    def layer_ids(self) -> list[LayerId]:
        """Return ids of layers with stored attributes."""


class FileAttributeStore:
    """Filesystem attribute store with one JSON file per layer.

    Documents live at ``<data_root>/attributes/<name>/<zoom>.json`` and
    are replaced through a temporary file and ``os.replace``.
    """

    def __init__(self, data_root: Path) -> None:
        self._root = data_root / ATTRIBUTES_DIR_NAME
        self._root.mkdir(parents=True, exist_ok=True)

    def read_attributes(self, layer_id: LayerId) -> dict[str, Any]:
        path = self._layer_path(layer_id)
        try:
            raw_payload = path.read_text(encoding="utf-8")
        except FileNotFoundError as error:
            raise LayerNotFoundError(
                f"Layer {layer_id} not found in catalog at {self._root}. "
                "Write the layer before reading it."
            ) from error
        return _parse_document(raw_payload, str(path))

    def write_attributes(self, layer_id: LayerId, attributes: Mapping[str, Any]) -> None:
        path = self._layer_path(layer_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        document = json.dumps(dict(attributes), indent=2, sort_keys=True) + "\n"
        handle, temp_name = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".tmp")
        try:
            with os.fdopen(handle, "w", encoding="utf-8") as temp_file:
                temp_file.write(document)
            os.replace(temp_name, path)
        except OSError as error:
            Path(temp_name).unlink(missing_ok=True)
            raise TesseraError(
                f"Failed to persist metadata for layer {layer_id} at {path}: {error}. "
                "Check write permissions and available disk space."
            ) from error

    def delete_attributes(self, layer_id: LayerId) -> None:
        path = self._layer_path(layer_id)
        try:
            path.unlink(missing_ok=True)
        except OSError as error:
            raise TesseraError(
                f"Failed to delete metadata for layer {layer_id} at {path}: {error}. "
                "Check write permissions on the catalog directory."
            ) from error

    def exists(self, layer_id: LayerId) -> bool:
        return self._layer_path(layer_id).is_file()

    def layer_ids(self) -> list[LayerId]:
        layer_ids: list[LayerId] = []
        for path in sorted(self._root.glob("*/*.json")):
            if not path.stem.isdigit():
                continue
            layer_ids.append(LayerId(name=unquote(path.parent.name), zoom=int(path.stem)))
        return sorted(layer_ids)

    def _layer_path(self, layer_id: LayerId) -> Path:
        return self._root / quote(layer_id.name, safe="") / f"{layer_id.zoom}.json"


class S3AttributeStore:
    """S3 attribute store with one JSON object per layer.

    Objects live at ``s3://<bucket>/<prefix>/<name>/<zoom>.json``; a single
    ``put_object`` replaces a layer's attributes.
    """

    def __init__(self, bucket: str, prefix: str, s3_client: Any) -> None:
        self._bucket = bucket
        self._prefix = prefix.strip("/")
        self._s3 = s3_client

    @classmethod
    def from_config(cls, bucket: str, prefix: str, config: TesseraConfig) -> "S3AttributeStore":
        """Create a store with a boto3 client built from config."""
        return cls(bucket, prefix, _create_s3_client(config))

    def read_attributes(self, layer_id: LayerId) -> dict[str, Any]:
        object_key = self._object_key(layer_id)
        try:
            response = self._s3.get_object(Bucket=self._bucket, Key=object_key)
        except Exception as error:
            if _is_not_found(error):
                raise LayerNotFoundError(
                    f"Layer {layer_id} not found in catalog at s3://{self._bucket}/{object_key}. "
                    "Write the layer before reading it."
                ) from error
            raise TesseraError(
                f"Failed to read metadata for layer {layer_id} from "
                f"s3://{self._bucket}/{object_key}: {error}."
            ) from error
        raw_payload = response["Body"].read().decode("utf-8")
        return _parse_document(raw_payload, f"s3://{self._bucket}/{object_key}")

    def write_attributes(self, layer_id: LayerId, attributes: Mapping[str, Any]) -> None:
        object_key = self._object_key(layer_id)
        document = json.dumps(dict(attributes), sort_keys=True).encode("utf-8")
        try:
            self._s3.put_object(
                Bucket=self._bucket,
                Key=object_key,
                Body=document,
                ContentType="application/json",
            )
        except Exception as error:
            raise TesseraError(
                f"Failed to persist metadata for layer {layer_id} to "
                f"s3://{self._bucket}/{object_key}: {error}. Check AWS credentials and retry."
            ) from error

    def delete_attributes(self, layer_id: LayerId) -> None:
        object_key = self._object_key(layer_id)
        try:
            self._s3.delete_object(Bucket=self._bucket, Key=object_key)
        except Exception as error:
            if _is_not_found(error):
                return
            raise TesseraError(
                f"Failed to delete metadata for layer {layer_id} at "
                f"s3://{self._bucket}/{object_key}: {error}. Check AWS credentials and retry."
            ) from error

    def exists(self, layer_id: LayerId) -> bool:
        object_key = self._object_key(layer_id)
        try:
            self._s3.head_object(Bucket=self._bucket, Key=object_key)
        except Exception as error:
            if _is_not_found(error):
                return False
            raise TesseraError(
                f"Failed to check metadata for layer {layer_id} at "
                f"s3://{self._bucket}/{object_key}: {error}."
            ) from error
        return True

    def layer_ids(self) -> list[LayerId]:
        layer_ids: list[LayerId] = []
        paginator = self._s3.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self._bucket, Prefix=f"{self._prefix}/"):
            for item in page.get("Contents", []):
                relative_key = str(item["Key"])[len(self._prefix) + 1 :]
                name, _, file_name = relative_key.rpartition("/")
                zoom = file_name.removesuffix(".json")
                if name and "/" not in name and zoom.isdigit():
                    layer_ids.append(LayerId(name=unquote(name), zoom=int(zoom)))
        return sorted(layer_ids)

    def _object_key(self, layer_id: LayerId) -> str:
        return f"{self._prefix}/{quote(layer_id.name, safe='')}/{layer_id.zoom}.json"


def _parse_document(raw_payload: str, source: str) -> dict[str, Any]:
    """Parse an attribute document.

    Raises:
        AttributeCorruptError: If the document is not a JSON object.
    """
    try:
        payload = json.loads(raw_payload)
    except json.JSONDecodeError as error:
        raise AttributeCorruptError(
            f"Failed to parse layer metadata at {source}: {error.msg}. "
            "Rewrite the layer to restore its catalog entry."
        ) from error
    if not isinstance(payload, dict):
        raise AttributeCorruptError(
            f"Failed to parse layer metadata at {source}: expected JSON object at top level."
        )
    return payload


def _is_not_found(error: Exception) -> bool:
    """Return whether a boto3 error reports a missing object."""
    response = getattr(error, "response", None)
    if not isinstance(response, dict):
        return False
    code = str(response.get("Error", {}).get("Code", ""))
    return code in {"NoSuchKey", "404", "NotFound"}


def _create_s3_client(config: TesseraConfig) -> Any:
    """Create boto3 S3 client for attribute storage.

    Args:
        config: Runtime config with optional session settings.

    Returns:
        Boto3 S3 client.

    Raises:
        TesseraDependencyError: If boto3 is missing.
    """
    try:
        import boto3
    except ImportError as error:
        raise TesseraDependencyError(
            "S3 attribute storage requires boto3, but it is not installed. "
            "Install boto3 to keep layer metadata in s3:// buckets."
        ) from error
    session_kwargs: dict[str, str] = {}
    if config.s3_profile:
        session_kwargs["profile_name"] = config.s3_profile
    if config.s3_region:
        session_kwargs["region_name"] = config.s3_region
    session = boto3.session.Session(**session_kwargs)
    return session.client("s3")
