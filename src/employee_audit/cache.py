"""Named in-memory caches with LRU eviction."""

from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Hashable, Iterable

from employee_audit.utils.time import utc_now

_MISSING = object()


@dataclass
class CacheEntry:
    value: Any
    cached_at: datetime


class NamedCache:
    """Bounded LRU map. The least recently used entry goes first once full."""

    def __init__(self, name: str, max_entries: int) -> None:
        self.name = name
        self._max_entries = max_entries
        self._entries: OrderedDict[Hashable, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            self._entries.move_to_end(key)
            return entry.value

    def contains(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries

    def put(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(value=value, cached_at=utc_now())
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    def evict(self, key: Hashable) -> bool:
        with self._lock:
            return self._entries.pop(key, _MISSING) is not _MISSING

    def clear(self) -> int:
        with self._lock:
            size = len(self._entries)
            self._entries.clear()
            return size

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class CacheManager:
    def __init__(self, names: Iterable[str] = (), max_entries: int = 1000) -> None:
        self._max_entries = max_entries
        self._caches: dict[str, NamedCache] = {}
        self._lock = threading.Lock()
        for name in names:
            self.get_or_create(name)

    def get_or_create(self, name: str) -> NamedCache:
        with self._lock:
            cache = self._caches.get(name)
            if cache is None:
                cache = self._caches[name] = NamedCache(name, self._max_entries)
            return cache

    def get_cache(self, name: str) -> NamedCache | None:
        with self._lock:
            return self._caches.get(name)

    def cache_names(self) -> list[str]:
        with self._lock:
            return sorted(self._caches)
