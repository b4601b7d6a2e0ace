from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, Optional, Tuple

CacheKey = Tuple[str, str]  # (engine, purpose)

CACHE_EXPIRY_SECONDS = 24 * 60 * 60
MAX_FAILURE_COUNT = 3


@dataclass
class SelectorCacheEntry:
    selector: str
    created_at: float
    last_validated_at: float
    success_count: int = 1
    failure_count: int = 0


class SelectorCache:
    """
    Selector memo keyed by (engine, purpose).

    Entries older than ``ttl`` or with ``max_failures`` recorded failures are
    purged on read. Concurrent writers of one key simply overwrite each other.
    """

    def __init__(
        self,
        ttl: float = CACHE_EXPIRY_SECONDS,
        max_failures: int = MAX_FAILURE_COUNT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ttl = ttl
        self.max_failures = max_failures
        self._clock = clock
        self._entries: Dict[CacheKey, SelectorCacheEntry] = {}

    def get(self, key: CacheKey) -> Optional[SelectorCacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.created_at > self.ttl or entry.failure_count >= self.max_failures:
            del self._entries[key]
            return None
        return entry

    def peek(self, key: CacheKey) -> Optional[SelectorCacheEntry]:
        """Entry as stored, without expiry checks."""
        return self._entries.get(key)

    def put(self, key: CacheKey, selector: str) -> SelectorCacheEntry:
        now = self._clock()
        entry = SelectorCacheEntry(selector=selector, created_at=now, last_validated_at=now)
        self._entries[key] = entry
        return entry

    def record_success(self, key: CacheKey) -> None:
        entry = self._entries.get(key)
        if entry is not None:
            entry.success_count += 1
            entry.last_validated_at = self._clock()
            entry.failure_count = max(0, entry.failure_count - 1)

    def record_failure(self, key: CacheKey) -> None:
        entry = self._entries.get(key)
        if entry is None:
            return
        entry.failure_count += 1
        if entry.failure_count >= self.max_failures:
            del self._entries[key]

    def discard(self, key: CacheKey) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def items(self) -> Iterator[Tuple[CacheKey, SelectorCacheEntry]]:
        return iter(list(self._entries.items()))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
