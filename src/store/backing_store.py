"""Range-scan tile backing stores.

This module defines the backing store contract used by layer readers and
writers: bulk writes and range scans of ``(index, bytes)`` entries inside
one partition. Stores are agnostic of keys, codecs, and index strategy.
"""

from __future__ import annotations

from bisect import bisect_left, bisect_right
import threading
from pathlib import Path
from typing import Any, Iterable, Iterator, Protocol, Sequence

from core.constants import LANCE_BACKEND, LANCE_SUFFIX, MEMORY_BACKEND
from core.errors import BackingStoreError, TesseraDependencyError
from core.types import IndexRange, PartitionSelector

_POSITION_COLUMN = "tile_index"
_PAYLOAD_COLUMN = "payload"


class BackingStore(Protocol):
    """Bulk write and range scan over int64-keyed byte payloads."""

    backend: str

    def location(self) -> str:
        """Return the root path or URI of stored data."""

    def write(self, selector: PartitionSelector, entries: Iterable[tuple[int, bytes]]) -> None:
        """Replace a partition's contents with entries."""

    def scan(
        self, selector: PartitionSelector, ranges: Sequence[IndexRange]
    ) -> Iterator[tuple[int, bytes]]:
        """Yield entries whose index lies inside any inclusive range."""


class InMemoryBackingStore:
    """Process-local backing store of sorted partitions."""

    backend = MEMORY_BACKEND

    def __init__(self) -> None:
        self._partitions: dict[PartitionSelector, tuple[list[int], list[bytes]]] = {}
        self._lock = threading.Lock()

    def location(self) -> str:
        return "memory://"

    def write(self, selector: PartitionSelector, entries: Iterable[tuple[int, bytes]]) -> None:
        by_position = {int(position): bytes(payload) for position, payload in entries}
        positions = sorted(by_position)
        payloads = [by_position[position] for position in positions]
        with self._lock:
            self._partitions[selector] = (positions, payloads)

    def scan(
        self, selector: PartitionSelector, ranges: Sequence[IndexRange]
    ) -> Iterator[tuple[int, bytes]]:
        with self._lock:
            partition = self._partitions.get(selector)
        if partition is None:
            raise BackingStoreError(
                f"Partition {selector.table}/{selector.column_family} does not exist "
                "in the in-memory store."
            )
        positions, payloads = partition
        for start, end in ranges:
            low = bisect_left(positions, start)
            high = bisect_right(positions, end)
            for offset in range(low, high):
                yield positions[offset], payloads[offset]

    def partitions(self) -> tuple[PartitionSelector, ...]:
        """Return selectors of written partitions."""
        with self._lock:
            return tuple(self._partitions)


class LanceBackingStore:
    """Backing store writing one Lance dataset per partition.

    Partitions live at ``<root>/<table>/<column_family>.lance`` with an
    int64 tile_index column and a binary payload column.
    """

    backend = LANCE_BACKEND

    def __init__(self, root: Path) -> None:
        self._root = root
        self._root.mkdir(parents=True, exist_ok=True)

    def location(self) -> str:
        return str(self._root)

    def write(self, selector: PartitionSelector, entries: Iterable[tuple[int, bytes]]) -> None:
        dataset_uri = self._dataset_path(selector)
        lance, pa = _import_lance()
        by_position = {int(position): bytes(payload) for position, payload in entries}
        positions = sorted(by_position)
        table = pa.table(
            {
                _POSITION_COLUMN: pa.array(positions, type=pa.int64()),
                _PAYLOAD_COLUMN: pa.array(
                    [by_position[position] for position in positions], type=pa.binary()
                ),
            }
        )
        dataset_uri.parent.mkdir(parents=True, exist_ok=True)
        try:
            lance.write_dataset(table, str(dataset_uri), mode="overwrite")
        except Exception as error:
            raise BackingStoreError(
                f"Failed to write Lance dataset at {dataset_uri}: {error}. "
                "Validate lance/pyarrow compatibility and retry the write."
            ) from error

    def scan(
        self, selector: PartitionSelector, ranges: Sequence[IndexRange]
    ) -> Iterator[tuple[int, bytes]]:
        if not ranges:
            return
        dataset_uri = self._dataset_path(selector)
        lance, _ = _import_lance()
        if not dataset_uri.exists():
            raise BackingStoreError(
                f"Lance dataset for partition {selector.table}/{selector.column_family} "
                f"not found at {dataset_uri}."
            )
        try:
            dataset = lance.dataset(str(dataset_uri))
            table = dataset.to_table(
                columns=[_POSITION_COLUMN, _PAYLOAD_COLUMN],
                filter=_range_filter(ranges),
            )
        except Exception as error:
            raise BackingStoreError(
                f"Failed to scan Lance dataset at {dataset_uri}: {error}."
            ) from error
        table = table.sort_by(_POSITION_COLUMN)
        positions = table.column(_POSITION_COLUMN).to_pylist()
        payloads = table.column(_PAYLOAD_COLUMN).to_pylist()
        yield from zip(positions, payloads)

    def _dataset_path(self, selector: PartitionSelector) -> Path:
        """Resolve a partition's dataset path inside the store root.

        Raises:
            BackingStoreError: If the partition would resolve outside the root.
        """
        root = self._root.resolve()
        dataset_uri = (root / selector.table / f"{selector.column_family}{LANCE_SUFFIX}").resolve()
        if not dataset_uri.is_relative_to(root):
            raise BackingStoreError(
                f"Partition {selector.table}/{selector.column_family} resolves outside "
                f"the Lance root {root}."
            )
        return dataset_uri


def _range_filter(ranges: Sequence[IndexRange]) -> str:
    """Render inclusive ranges as a Lance SQL filter expression."""
    clauses = [
        f"({_POSITION_COLUMN} >= {start} AND {_POSITION_COLUMN} <= {end})"
        for start, end in ranges
    ]
    return " OR ".join(clauses)


def _import_lance() -> tuple[Any, Any]:
    """Import Lance and pyarrow for tile persistence.

    Raises:
        TesseraDependencyError: If either library is missing.
    """
    try:
        import lance
        import pyarrow as pa
    except ImportError as error:
        raise TesseraDependencyError(
            "The Lance backing store requires pylance and pyarrow, but they are not "
            "installed. Install pylance to persist tiles on disk."
        ) from error
    return lance, pa
