"""In-memory key/value cache with per-key expiry checked lazily on read."""

import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, Hashable, Optional, TypeVar

from app.logging_config import logger

V = TypeVar("V")


@dataclass
class CacheEntry(Generic[V]):
    """Stored value and its absolute expiry time (None never expires)."""

    value: V
    expires_at: Optional[float] = None

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class TTLCache(Generic[V]):
    """Generic TTL cache.

    Each key holds exactly one entry with at most one expiry time, so
    re-setting a key always replaces the previous expiry. Expired entries are
    dropped the first time they are read, or by ``purge_expired``.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._store: dict[Hashable, CacheEntry[V]] = {}
        self._clock = clock

    def set(self, key: Hashable, value: V, ttl: Optional[float] = None) -> None:
        """Store a value, optionally expiring after ``ttl`` seconds.

        Args:
            key: Cache key.
            value: Value to store.
            ttl: Lifetime in seconds. None or a non-positive value keeps the
                entry until it is deleted.
        """
        expires_at = self._clock() + ttl if ttl and ttl > 0 else None
        self._store[key] = CacheEntry(value=value, expires_at=expires_at)
        logger.debug("CACHE_SET", key=str(key), ttl=ttl, size=len(self._store))

    def get(self, key: Hashable, default: Any = None) -> Any:
        """Return the live value for key, or ``default`` when absent or expired."""
        entry = self._live_entry(key)
        if entry is None:
            logger.debug("CACHE_MISS", key=str(key))
            return default
        logger.debug("CACHE_HIT", key=str(key))
        return entry.value

    def delete(self, key: Hashable) -> bool:
        """Remove key.

        Returns:
            True if a live entry was removed.
        """
        entry = self._store.pop(key, None)
        if entry is None or entry.is_expired(self._clock()):
            return False
        logger.debug("CACHE_DELETE", key=str(key), size=len(self._store))
        return True

    def clear(self) -> None:
        previous_size = len(self._store)
        self._store.clear()
        logger.info("CACHE_CLEARED", previous_size=previous_size)

    def purge_expired(self) -> int:
        """Drop every expired entry; meant for an optional periodic sweep.

        Returns:
            The number of entries removed.
        """
        now = self._clock()
        expired = [key for key, entry in self._store.items() if entry.is_expired(now)]
        for key in expired:
            del self._store[key]
        if expired:
            logger.debug("CACHE_PURGED", removed=len(expired), size=len(self._store))
        return len(expired)

    def keys(self) -> list:
        now = self._clock()
        return [key for key, entry in self._store.items() if not entry.is_expired(now)]

    def stats(self) -> dict[str, int]:
        """Return the number of live entries and how many of them expire."""
        now = self._clock()
        live = [entry for entry in self._store.values() if not entry.is_expired(now)]
        return {
            "size": len(live),
            "expiring": sum(1 for entry in live if entry.expires_at is not None),
        }

    def _live_entry(self, key: Hashable) -> Optional[CacheEntry[V]]:
        entry = self._store.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._store[key]
            return None
        return entry

    def __contains__(self, key: Hashable) -> bool:
        return self._live_entry(key) is not None

    def __len__(self) -> int:
        return len(self.keys())
