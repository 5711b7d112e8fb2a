# catalog_aggregator/storage/result_cache.py

"""In-memory TTL cache for finished aggregation results."""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger("catalog_aggregator.cache")

CATEGORIES_SIMPLE_KEY = "categories:simple"
CATEGORIES_ALL_KEY = "categories:all"
WAREHOUSES_KEY = "warehouses:all"


def products_key(category_id: int, warehouse_id: int) -> str:
    """Cache key for an aggregated product listing.

    Stock figures are per warehouse, so the warehouse is part of the key.
    """
    return f"products:{category_id}:{warehouse_id}"


@dataclass
class CacheEntry:
    """A cached value and the wall-clock time it stops being valid."""

    key: str
    value: Any
    expires_at: float


@dataclass
class CacheStats:
    """Point-in-time counters for one cache instance."""

    keys: int
    hits: int
    misses: int
    ttl: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "keys": self.keys,
            "hits": self.hits,
            "misses": self.misses,
            "ttl": self.ttl,
        }


class ResultCache:
    """Thread-safe key/value cache with passive expiry.

    Entries are checked on read: once ``now > expires_at`` they are
    dropped and reported as absent.  Writing an existing key replaces
    the value and restarts its TTL.  Values are stored by reference
    and must be treated as immutable by callers.
    """

    def __init__(self, default_ttl: float, name: str = "cache") -> None:
        self.name = name
        self.default_ttl = default_ttl
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        """Return the live value for *key*, or ``None`` on miss/expiry."""
        now = time.time()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and now > entry.expires_at:
                del self._entries[key]
                logger.debug("[%s] Entry '%s' expired", self.name, key)
                entry = None
            if entry is None:
                self._misses += 1
                return None
            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store *value* under *key* for *ttl* seconds (default TTL if omitted)."""
        lifetime = self.default_ttl if ttl is None else ttl
        with self._lock:
            self._entries[key] = CacheEntry(
                key=key,
                value=value,
                expires_at=time.time() + lifetime,
            )
        logger.info(
            "[%s] Cached '%s' (TTL: %.0fs)", self.name, key, lifetime
        )

    def delete(self, key: str) -> bool:
        """Remove a single key. Returns whether it was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def purge_expired(self) -> int:
        """Drop every expired entry now. Returns the number removed."""
        now = time.time()
        with self._lock:
            expired = [
                k for k, e in self._entries.items() if now > e.expires_at
            ]
            for k in expired:
                del self._entries[k]
        if expired:
            logger.debug(
                "[%s] Evicted %d expired entries", self.name, len(expired)
            )
        return len(expired)

    def stats(self) -> CacheStats:
        """Live key count plus cumulative hit/miss counters."""
        self.purge_expired()
        with self._lock:
            return CacheStats(
                keys=len(self._entries),
                hits=self._hits,
                misses=self._misses,
                ttl=self.default_ttl,
            )

    def flush_all(self) -> int:
        """Purge every entry and reset the hit/miss counters.

        Returns the number of entries that were removed.
        """
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._hits = 0
            self._misses = 0
        logger.info(
            "[%s] Cache flushed (%d entries removed)", self.name, count
        )
        return count
