"""Bounded LRU result cache with TTL expiry."""

import asyncio
import time
from collections import OrderedDict
from typing import Any, Callable

import structlog

from dinequery.config import get_settings

logger = structlog.get_logger()
settings = get_settings()


def canonical_key(value: Any) -> str:
    """Order-insensitive serialization of query parameters.

    Object keys are sorted, arrays are sorted and joined with ",", nested
    objects are serialized recursively.
    """
    if isinstance(value, dict):
        parts = [f"{k}:{canonical_key(value[k])}" for k in sorted(value, key=str)]
        return "{" + "|".join(parts) + "}"
    if isinstance(value, (list, tuple, set, frozenset)):
        return "[" + ",".join(sorted(canonical_key(v) for v in value)) + "]"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class ResultCache:
    """LRU cache whose entries also expire after a fixed TTL.

    Args:
        max_size: Maximum number of entries
        ttl_seconds: Entry lifetime
        clock: Monotonic time source, injectable for tests
    """

    def __init__(
        self,
        max_size: int | None = None,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_size = max_size if max_size is not None else settings.cache_max_size
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.cache_ttl_seconds
        if self.max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, Any]] = OrderedDict()
        self._locks: dict[str, asyncio.Lock] = {}
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def __len__(self) -> int:
        return len(self._entries)

    def _expired(self, inserted_at: float) -> bool:
        return self._clock() - inserted_at >= self.ttl_seconds

    def get(self, params: Any) -> Any | None:
        """Return the cached value, or None when absent or expired."""
        key = canonical_key(params)
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None

        inserted_at, value = entry
        if self._expired(inserted_at):
            del self._entries[key]
            self._drop_lock(key)
            self.misses += 1
            logger.debug("cache_entry_expired", key=key)
            return None

        self._entries.move_to_end(key)
        self.hits += 1
        return value

    def set(self, params: Any, value: Any) -> None:
        """Insert or replace an entry, evicting the least recently used at capacity."""
        key = canonical_key(params)
        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self.max_size:
            oldest, _ = self._entries.popitem(last=False)
            self._drop_lock(oldest)
            self.evictions += 1
        self._entries[key] = (self._clock(), value)

    def _drop_lock(self, key: str) -> None:
        lock = self._locks.get(key)
        if lock is not None and not lock.locked():
            del self._locks[key]

    def lock(self, params: Any) -> asyncio.Lock:
        """Lock guarding read-modify-write of one key."""
        key = canonical_key(params)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def cleanup(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        expired = [k for k, (inserted_at, _) in self._entries.items() if self._expired(inserted_at)]
        for key in expired:
            del self._entries[key]
            self._drop_lock(key)
        if expired:
            logger.debug("cache_cleanup", removed=len(expired), size=len(self._entries))
        return len(expired)

    async def run_cleanup(self, interval_seconds: float | None = None) -> None:
        """Periodically drop expired entries until cancelled."""
        interval = interval_seconds or settings.cache_cleanup_interval_seconds
        while True:
            await asyncio.sleep(interval)
            self.cleanup()

    def stats(self) -> dict[str, Any]:
        total = self.hits + self.misses
        return {
            "size": len(self._entries),
            "max_size": self.max_size,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "hit_rate": round(self.hits / total * 100, 1) if total > 0 else 0.0,
        }
