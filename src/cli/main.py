"""Tessera CLI entry points.
This module exposes catalog inspection and scan planning commands.
It maps argparse commands onto SDK calls.
"""

from __future__ import annotations

import argparse
import json
from dataclasses import replace
from pathlib import Path
from typing import Any, Sequence

from core.config import TesseraConfig
from core.keys import GridKey, KeyBounds, SpaceTimeKey, SpatialKey, key_bounds_to_payload
from store.attribute_codecs import encode_layer_attributes
from store.layer_sdk import TesseraClient


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(prog="tessera", description="Tessera layer storage CLI")
    parser.add_argument("--data-root", help="Override TESSERA_DATA_ROOT for this command")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_layers_command(subparsers)
    _add_inspect_command(subparsers)
    _add_ranges_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the Tessera CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    client = _build_client(args.data_root)
    if args.command == "layers":
        return _run_layers_command(client)
    if args.command == "inspect":
        return _run_inspect_command(client, args)
    if args.command == "ranges":
        return _run_ranges_command(client, args, parser)
    parser.error(f"Unsupported command: {args.command}")
    return 2


def _build_client(data_root: str | None) -> TesseraClient:
    """Build SDK client with optional data-root override.

    Args:
        data_root: Optional override path.

    Returns:
        Configured SDK client.
    """
    config = TesseraConfig.from_env()
    if data_root:
        config = replace(config, data_root=Path(data_root).expanduser().resolve())
    return TesseraClient(config)


def _run_layers_command(client: TesseraClient) -> int:
    """Handle layers command.

    Args:
        client: SDK client.

    Returns:
        Exit code.
    """
    for layer_id in client.list_layers():
        metadata = client.layer(layer_id.name, layer_id.zoom).metadata()
        bounds = metadata.key_bounds
        print(
            f"{layer_id.name}\t"
            f"{layer_id.zoom}\t"
            f"{metadata.key_index.index_type}\t"
            f"{bounds.min_key}\t"
            f"{bounds.max_key}"
        )
    return 0


def _run_inspect_command(client: TesseraClient, args: argparse.Namespace) -> int:
    """Handle inspect command.

    Args:
        client: SDK client.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    metadata = client.layer(args.name, args.zoom).metadata()
    print(json.dumps(encode_layer_attributes(metadata), indent=2, sort_keys=True))
    return 0


def _run_ranges_command(
    client: TesseraClient,
    args: argparse.Namespace,
    parser: argparse.ArgumentParser,
) -> int:
    """Handle ranges command.

    Args:
        client: SDK client.
        args: Parsed CLI args.
        parser: Parser used to report invalid key arguments.

    Returns:
        Exit code.
    """
    layer = client.layer(args.name, args.zoom)
    query_bounds: KeyBounds[Any] | None = None
    if args.min or args.max:
        if not (args.min and args.max):
            parser.error("ranges requires both --min and --max, or neither")
        query_bounds = KeyBounds(_parse_key(args.min, parser), _parse_key(args.max, parser))
        print(json.dumps(key_bounds_to_payload(query_bounds), sort_keys=True))
    for start, end in layer.scan_ranges(query_bounds):
        print(f"{start}\t{end}")
    return 0


def _parse_key(raw_value: str, parser: argparse.ArgumentParser) -> GridKey:
    """Parse ``col,row`` or ``col,row,instant`` into a key."""
    try:
        components = tuple(int(part) for part in raw_value.split(","))
    except ValueError:
        parser.error(f"Invalid key '{raw_value}': expected integers col,row[,instant]")
    if len(components) == 2:
        return SpatialKey.from_components(components)
    if len(components) == 3:
        return SpaceTimeKey.from_components(components)
    parser.error(f"Invalid key '{raw_value}': expected col,row or col,row,instant")
    raise AssertionError("unreachable")


def _add_layers_command(subparsers: Any) -> None:
    """Register layers subcommand."""
    subparsers.add_parser("layers", help="List cataloged layers")


def _add_inspect_command(subparsers: Any) -> None:
    """Register inspect subcommand."""
    parser = subparsers.add_parser("inspect", help="Print a layer's catalog attributes")
    parser.add_argument("--name", required=True, help="Layer name")
    parser.add_argument("--zoom", required=True, type=int, help="Layer zoom level")


def _add_ranges_command(subparsers: Any) -> None:
    """Register ranges subcommand."""
    parser = subparsers.add_parser(
        "ranges",
        help="Print merged index scan ranges for a query against a layer",
    )
    parser.add_argument("--name", required=True, help="Layer name")
    parser.add_argument("--zoom", required=True, type=int, help="Layer zoom level")
    parser.add_argument("--min", help="Query lower corner as col,row[,instant]")
    parser.add_argument("--max", help="Query upper corner as col,row[,instant]")
