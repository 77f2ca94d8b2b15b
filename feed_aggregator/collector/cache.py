"""In-process response cache shared by the upstream clients."""

import time
from dataclasses import dataclass
from typing import Dict, Generic, Hashable, Optional, TypeVar

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    value: T
    stored_at: float


class ResponseCache(Generic[T]):
    """
    Keyed cache with a freshness window.

    Entries are never evicted on expiry: stale entries remain available via
    ``get_stale`` so callers can degrade to them on upstream failure.
    """

    def __init__(self, ttl_sec: float):
        self.ttl_sec = ttl_sec
        self._entries: Dict[Hashable, CacheEntry[T]] = {}

    def get_fresh(self, key: Hashable) -> Optional[T]:
        entry = self._entries.get(key)
        if entry and time.time() - entry.stored_at < self.ttl_sec:
            return entry.value
        return None

    def get_stale(self, key: Hashable) -> Optional[T]:
        entry = self._entries.get(key)
        return entry.value if entry else None

    def set(self, key: Hashable, value: T) -> None:
        self._entries[key] = CacheEntry(value=value, stored_at=time.time())

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
