"""Tile value codecs and per-index entry payloads.

This module centralizes tile value serialization. Each value codec
describes itself with a JSON schema persisted in layer metadata, and
entries sharing one index position are packed into a single blob.
"""

from __future__ import annotations

import json
import struct
from typing import Any, Mapping, Protocol, Sequence

import numpy as np

from core.errors import RecordCodecError
from core.keys import GridKey, key_from_payload, key_to_payload

_LENGTH = struct.Struct(">I")


class ValueCodec(Protocol):
    """Encodes tile values to bytes against a persisted schema."""

    def schema(self) -> dict[str, Any]:
        """Return the JSON schema describing this codec."""

    def encode(self, value: Any) -> bytes:
        """Encode one tile value."""

    def decode(self, payload: bytes) -> Any:
        """Decode one tile value."""


class BytesCodec:
    """Pass-through codec for raw byte values."""

    def schema(self) -> dict[str, Any]:
        return {"codec": "bytes"}

    def encode(self, value: Any) -> bytes:
        if not isinstance(value, (bytes, bytearray)):
            raise RecordCodecError(
                f"Bytes codec expects bytes values, got {type(value).__name__}."
            )
        return bytes(value)

    def decode(self, payload: bytes) -> Any:
        return payload


class JsonValueCodec:
    """Codec for JSON-compatible values."""

    def schema(self) -> dict[str, Any]:
        return {"codec": "json"}

    def encode(self, value: Any) -> bytes:
        try:
            return json.dumps(value, sort_keys=True).encode("utf-8")
        except (TypeError, ValueError) as error:
            raise RecordCodecError(f"Failed to encode tile value as JSON: {error}.") from error

    def decode(self, payload: bytes) -> Any:
        try:
            return json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as error:
            raise RecordCodecError(f"Failed to decode JSON tile value: {error}.") from error


class NDArrayCodec:
    """Codec for fixed dtype and shape numpy tiles.

    Attributes:
        dtype: Numpy dtype string, e.g. ``"float32"``.
        shape: Tile shape, e.g. ``(256, 256)``.
    """

    def __init__(self, dtype: str, shape: Sequence[int]) -> None:
        self.dtype = np.dtype(dtype).str
        self.shape = tuple(int(size) for size in shape)

    def schema(self) -> dict[str, Any]:
        return {"codec": "ndarray", "dtype": self.dtype, "shape": list(self.shape)}

    def encode(self, value: Any) -> bytes:
        array = np.asarray(value)
        if array.shape != self.shape:
            raise RecordCodecError(
                f"Tile shape {array.shape} does not match layer shape {self.shape}."
            )
        return array.astype(self.dtype, copy=False).tobytes()

    def decode(self, payload: bytes) -> Any:
        try:
            return np.frombuffer(payload, dtype=self.dtype).reshape(self.shape)
        except ValueError as error:
            raise RecordCodecError(
                f"Failed to decode {self.dtype} tile of shape {self.shape}: {error}."
            ) from error


def codec_from_schema(schema: Mapping[str, Any]) -> ValueCodec:
    """Rebuild a value codec from its persisted schema.

    Args:
        schema: Schema from ``ValueCodec.schema``.

    Returns:
        Matching codec.

    Raises:
        RecordCodecError: If the schema names an unknown codec.
    """
    codec_name = schema.get("codec")
    if codec_name == "bytes":
        return BytesCodec()
    if codec_name == "json":
        return JsonValueCodec()
    if codec_name == "ndarray":
        try:
            return NDArrayCodec(str(schema["dtype"]), list(schema["shape"]))
        except (KeyError, TypeError) as error:
            raise RecordCodecError(f"Invalid ndarray schema {dict(schema)}: {error}.") from error
    raise RecordCodecError(
        f"Unknown tile codec '{codec_name}'. Expected one of: bytes, json, ndarray."
    )


def infer_codec(values: Sequence[Any]) -> ValueCodec:
    """Choose a codec for a layer from its first value.

    Args:
        values: Layer values; must be non-empty.

    Returns:
        ndarray codec for numpy tiles, bytes codec for raw bytes,
        JSON codec otherwise.
    """
    sample = values[0]
    if isinstance(sample, np.ndarray):
        return NDArrayCodec(sample.dtype.str, sample.shape)
    if isinstance(sample, (bytes, bytearray)):
        return BytesCodec()
    return JsonValueCodec()


def encode_entries(entries: Sequence[tuple[GridKey, Any]], codec: ValueCodec) -> bytes:
    """Pack key/value entries sharing one index position.

    Args:
        entries: Keys and values to pack.
        codec: Value codec of the layer.

    Returns:
        Length-prefixed blob of JSON keys and encoded values.
    """
    chunks = [_LENGTH.pack(len(entries))]
    for key, value in entries:
        key_bytes = json.dumps(key_to_payload(key), sort_keys=True).encode("utf-8")
        value_bytes = codec.encode(value)
        chunks.extend(
            (_LENGTH.pack(len(key_bytes)), key_bytes, _LENGTH.pack(len(value_bytes)), value_bytes)
        )
    return b"".join(chunks)


def decode_entries(payload: bytes, codec: ValueCodec) -> list[tuple[GridKey, Any]]:
    """Unpack a blob written by ``encode_entries``.

    Args:
        payload: Packed entry blob.
        codec: Value codec of the layer.

    Returns:
        Decoded key/value entries in written order.

    Raises:
        RecordCodecError: If the blob is truncated or malformed.
    """
    try:
        (count,) = _LENGTH.unpack_from(payload, 0)
        offset = _LENGTH.size
        entries: list[tuple[GridKey, Any]] = []
        for _ in range(count):
            key_bytes, offset = _read_chunk(payload, offset)
            value_bytes, offset = _read_chunk(payload, offset)
            key = key_from_payload(json.loads(key_bytes.decode("utf-8")))
            entries.append((key, codec.decode(value_bytes)))
    except (struct.error, KeyError, TypeError, ValueError) as error:
        raise RecordCodecError(f"Failed to decode tile entry payload: {error}.") from error
    if offset != len(payload):
        raise RecordCodecError(
            f"Failed to decode tile entry payload: {len(payload) - offset} trailing bytes."
        )
    return entries


def _read_chunk(payload: bytes, offset: int) -> tuple[bytes, int]:
    """Read one length-prefixed chunk starting at offset."""
    (length,) = _LENGTH.unpack_from(payload, offset)
    start = offset + _LENGTH.size
    end = start + length
    if end > len(payload):
        raise RecordCodecError(
            f"Failed to decode tile entry payload: chunk of {length} bytes overruns blob."
        )
    return payload[start:end], end
