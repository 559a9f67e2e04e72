"""Bounded metadata cache with a reader/writer lock.

The cache is the only shared mutable state of the catalog. Many readers
may hold the read side at once; a writer holds the write side alone, so
a reader never sees a layer's attributes half replaced.
"""

from __future__ import annotations

from collections import OrderedDict
from contextlib import contextmanager
import threading
from typing import Any, Hashable, Iterator


class ReadWriteLock:
    """Writer-preferring lock allowing many readers or one writer."""

    def __init__(self) -> None:
        self._condition = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        """Hold the read side for the duration of the block."""
        with self._condition:
            while self._writer or self._waiting_writers:
                self._condition.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._condition:
                self._readers -= 1
                if self._readers == 0:
                    self._condition.notify_all()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        """Hold the write side for the duration of the block."""
        with self._condition:
            self._waiting_writers += 1
            while self._writer or self._readers:
                self._condition.wait()
            self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._condition:
                self._writer = False
                self._condition.notify_all()


class MetadataCache:
    """Least-recently-used cache of ``(layer_id, attribute)`` payloads."""

    def __init__(self, max_entries: int) -> None:
        if max_entries <= 0:
            raise ValueError(f"Cache size must be positive, got {max_entries}.")
        self._max_entries = max_entries
        self._entries: OrderedDict[tuple[Hashable, str], Any] = OrderedDict()
        self._mutex = threading.Lock()
        self.lock = ReadWriteLock()

    def get(self, layer_id: Hashable, attribute: str) -> tuple[bool, Any]:
        """Return ``(hit, payload)`` for a cached attribute."""
        with self._mutex:
            cache_key = (layer_id, attribute)
            if cache_key not in self._entries:
                return False, None
            self._entries.move_to_end(cache_key)
            return True, self._entries[cache_key]

    def put(self, layer_id: Hashable, attribute: str, payload: Any) -> None:
        """Cache an attribute payload, evicting the oldest entries."""
        with self._mutex:
            self._entries[(layer_id, attribute)] = payload
            self._entries.move_to_end((layer_id, attribute))
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    def invalidate(self, layer_id: Hashable) -> None:
        """Drop every cached attribute of a layer."""
        with self._mutex:
            for cache_key in [key for key in self._entries if key[0] == layer_id]:
                del self._entries[cache_key]

    def __len__(self) -> int:
        with self._mutex:
            return len(self._entries)
