"""
Response Cache Store

In-memory TTL cache for the last successful value of each governed call.
Serves as the fallback source when the breaker is open, a budget is
exhausted, or retries run out.

Entries expire absolutely (now + ttl at write time) and are evicted lazily
when a read finds them stale. No size bound: key cardinality is small
(one per operation + argument set).
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class CacheEntry:
    """Cached value with its absolute expiry timestamp."""
    value: Any
    expires_at: float


class CacheStore:
    """
    Key -> value store with per-entry TTL.

    Usage:
        cache = CacheStore()
        cache.put(key, "answer", ttl_seconds=3600)
        cache.get(key)  # "answer" until the hour is up, then None
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._entries: Dict[str, CacheEntry] = {}
        self._clock = clock

    def put(self, key: str, value: Any, ttl_seconds: float) -> None:
        """Store value under key, expiring ttl_seconds from now."""
        expires_at = self._clock() + ttl_seconds
        self._entries[key] = CacheEntry(value=value, expires_at=expires_at)
        logger.debug("cache_entry_stored", key=key[:16], ttl_seconds=ttl_seconds)

    def get(self, key: Optional[str]) -> Optional[Any]:
        """
        Return the cached value, or None if missing or expired.

        An expired entry is removed on the read that finds it.
        """
        if not key:
            return None

        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._clock() > entry.expires_at:
            self._entries.pop(key, None)
            logger.debug("cache_entry_expired", key=key[:16])
            return None

        return entry.value

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"CacheStore(entries={len(self._entries)})"
