"""Capacity-bounded least-recently-used cache.

:class:`LRUCache` bounds how many resources (typically open file handles)
are held at once.  ``put`` returns every value it pushed out so the caller
can release them::

    handles = LRUCache(lambda: settings.storage.max_open_files)
    for evicted in handles.put(path, fh):
        evicted.close()

Recency is an access counter, not wall-clock time, so the order is immune
to clock adjustments.  Every ``get`` hit and every ``put`` takes a fresh
tick; eviction drops the lowest ticks first.

The capacity may be an ``int`` or a zero-argument callable.  It is re-read
on every ``put`` so live reconfiguration takes effect on the next insert.
A missing or non-positive capacity falls back to :data:`DEFAULT_MAX_ENTRIES`.

Not thread-safe: callers sharing one instance between threads must lock.
"""

from __future__ import annotations

import itertools
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Generic, TypeVar

K = TypeVar("K")
V = TypeVar("V")

DEFAULT_MAX_ENTRIES = 5


@dataclass
class _CacheEntry(Generic[V]):
    value: V
    last_access: int


class LRUCache(Generic[K, V]):
    """Map of at most ``capacity`` entries, evicting the least recently used.

    Args:
        max_entries: Capacity as an int, or a callable returning it (may
                     return None).  None or values below 1 select
                     :data:`DEFAULT_MAX_ENTRIES`.
    """

    def __init__(self, max_entries: int | Callable[[], int | None] | None = None) -> None:
        if callable(max_entries):
            self._max_entries = max_entries
        else:
            self._max_entries = lambda: max_entries
        self._entries: dict[K, _CacheEntry[V]] = {}
        self._clock = itertools.count()

    @property
    def capacity(self) -> int:
        """Effective capacity right now."""
        configured = self._max_entries()
        if configured is None or configured < 1:
            return DEFAULT_MAX_ENTRIES
        return configured

    def get(self, key: K, default: V | None = None) -> V | None:
        """Return the value for *key* and mark it as most recently used."""
        entry = self._entries.get(key)
        if entry is None:
            return default
        entry.last_access = next(self._clock)
        return entry.value

    def put(self, key: K, value: V) -> list[V]:
        """Insert or replace *key* and return every value that left the cache.

        The returned list holds the replaced value for *key* (if any)
        followed by the evicted values, oldest access first.
        """
        if value is None:
            raise ValueError("LRUCache does not store None values")
        removed: list[V] = []
        previous = self._entries.get(key)
        if previous is not None:
            removed.append(previous.value)
        self._entries[key] = _CacheEntry(value, next(self._clock))

        capacity = self.capacity
        overflow = len(self._entries) - capacity
        if overflow > 0:
            by_age = sorted(self._entries.items(), key=lambda item: item[1].last_access)
            for old_key, entry in by_age[:overflow]:
                del self._entries[old_key]
                removed.append(entry.value)
        return removed

    def remove(self, key: K) -> V | None:
        entry = self._entries.pop(key, None)
        return None if entry is None else entry.value

    def size(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def keys(self) -> list[K]:
        """Snapshot of the current keys (does not touch recency)."""
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[V]:
        """Iterate current values in no particular order; recency is untouched."""
        return iter([entry.value for entry in self._entries.values()])
