"""In-memory TTL cache for listing, favorite and booking lookups.

Minimal dependencies, thread-safe, per-process. Swapping in Redis later only
needs the same get/set/delete/invalidate_pattern surface.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


@dataclass
class CacheItem:
    """Container for cached values with expiration metadata."""

    value: Any
    expires_at: float


class SimpleTTLCache:
    """Thread-safe, in-memory TTL cache with LRU eviction.

    Attributes:
        default_ttl_seconds: TTL applied when ``set`` is called without one.
        max_entries: Maximum number of cached items (None for unlimited).
    """

    def __init__(
        self,
        default_ttl_seconds: float = 300,
        max_entries: int | None = 1024,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if default_ttl_seconds <= 0:
            raise ValueError("default_ttl_seconds must be > 0")
        self._ttl = default_ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._store: OrderedDict[str, CacheItem] = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"SimpleTTLCache(default_ttl_seconds={self._ttl}, max_entries={self._max_entries}, "
            f"size={len(self._store)}, hits={self._hits}, misses={self._misses}, "
            f"evictions={self._evictions})"
        )

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None if missing or expired."""

        with self._lock:
            item = self._store.get(key)
            if item is None:
                self._misses += 1
                logger.debug("cache.miss", extra={"cache_key": key, "reason": "not_found"})
                return None

            if self._clock() > item.expires_at:
                self._evict_single(key)
                self._misses += 1
                logger.debug("cache.miss", extra={"cache_key": key, "reason": "expired"})
                return None

            self._hits += 1
            self._store.move_to_end(key)  # mark as recently used
            logger.debug("cache.hit", extra={"cache_key": key})
            return item.value

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """Store a value, evicting the least recently used entries if full.

        Args:
            key: Cache key (see ``CacheKeys``).
            value: Value to store.
            ttl_seconds: Per-entry TTL; falls back to the cache default.
        """

        ttl = ttl_seconds or self._ttl
        with self._lock:
            self._store[key] = CacheItem(value=value, expires_at=self._clock() + ttl)
            self._store.move_to_end(key)
            self._evict_if_over_capacity_locked()

            logger.debug(
                "cache.set",
                extra={"cache_key": key, "size": len(self._store), "ttl_s": ttl},
            )

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def clear(self) -> None:
        """Remove all cached entries and reset counters."""

        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def invalidate_pattern(self, pattern: str) -> int:
        """Delete every key matching the regular expression ``pattern``.

        Returns:
            Number of deleted entries.
        """

        regex = re.compile(pattern)
        with self._lock:
            doomed = [key for key in self._store if regex.search(key)]
            for key in doomed:
                del self._store[key]

        logger.debug("cache.invalidate", extra={"pattern": pattern, "removed": len(doomed)})
        return len(doomed)

    def cleanup(self) -> int:
        """Evict all expired entries and return how many were removed."""

        with self._lock:
            now = self._clock()
            expired_keys = [k for k, item in self._store.items() if now > item.expires_at]
            for key in expired_keys:
                self._evict_single(key)
            return len(expired_keys)

    async def get_or_set(
        self,
        key: str,
        fetch: Callable[[], Awaitable[Any]],
        ttl_seconds: float | None = None,
    ) -> Any:
        """Cache-aside lookup: return the cached value or await ``fetch`` and store it.

        A ``None`` result is returned but not cached, since ``get`` cannot
        tell a cached ``None`` from a miss.
        """

        cached = self.get(key)
        if cached is not None:
            return cached

        value = await fetch()
        if value is not None:
            self.set(key, value, ttl_seconds)
        return value

    def stats(self) -> dict[str, int | float | None]:
        """Return lightweight cache metrics without exposing values."""

        with self._lock:
            return {
                "default_ttl_seconds": self._ttl,
                "max_entries": self._max_entries,
                "entries": len(self._store),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def _evict_single(self, key: str) -> None:
        if self._store.pop(key, None) is not None:
            self._evictions += 1

    def _evict_if_over_capacity_locked(self) -> None:
        if self._max_entries is None:
            return

        while len(self._store) > self._max_entries:
            # popitem(last=False) removes the least recently used entry
            self._store.popitem(last=False)
            self._evictions += 1


class CacheKeys:
    """Key generators so every caller spells cache keys the same way."""

    @staticmethod
    def property(property_id: str) -> str:
        return f"property:{property_id}"

    @staticmethod
    def properties(filters: str) -> str:
        return f"properties:{filters}"

    @staticmethod
    def user_favorites(user_id: str) -> str:
        return f"favorites:{user_id}"

    @staticmethod
    def user_bookings(user_id: str) -> str:
        return f"bookings:{user_id}"

    @staticmethod
    def user_properties(user_id: str) -> str:
        return f"user-properties:{user_id}"

    @staticmethod
    def property_reviews(property_id: str) -> str:
        return f"reviews:{property_id}"

    @staticmethod
    def featured_properties() -> str:
        return "properties:featured"

    @staticmethod
    def cities_list() -> str:
        return "cities:list"


def invalidate_property(cache: SimpleTTLCache, property_id: str) -> None:
    """Drop a listing and every cached listing query that may include it."""
    cache.delete(CacheKeys.property(property_id))
    cache.invalidate_pattern(r"^properties:")


def invalidate_user_favorites(cache: SimpleTTLCache, user_id: str) -> None:
    cache.delete(CacheKeys.user_favorites(user_id))


def invalidate_user_bookings(cache: SimpleTTLCache, user_id: str) -> None:
    cache.delete(CacheKeys.user_bookings(user_id))


def invalidate_property_reviews(cache: SimpleTTLCache, property_id: str) -> None:
    # The listing payload embeds its review count
    cache.delete(CacheKeys.property_reviews(property_id))
    cache.delete(CacheKeys.property(property_id))
