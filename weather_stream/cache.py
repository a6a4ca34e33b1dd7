"""
Bounded in-memory cache with TTL expiry and access-count eviction.
"""
import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict

from utils.metrics import cache_eviction_counter, cache_lookup_counter, cache_size_gauge

from .config import CacheConfig
from .errors import CacheExpiredError, CacheFullError, CacheMissError

logger = logging.getLogger(__name__)


def _to_datetime(timestamp: float) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


@dataclass
class CacheEntry:
    value: Any
    cached_at: float
    expires_at: float
    access_count: int = 0


class InMemoryCache:
    """
    Thread-safe key/value cache.

    Every operation holds the cache lock for its whole duration, so concurrent
    fetches never observe or produce a half-applied change. Entries expire
    `ttl_seconds` after they are set. When a new key arrives and the cache is
    full, the entry with the lowest access count is evicted; ties go to the
    entry encountered first (insertion order). The size gauge is labelled with
    `name`, so caches sharing a process should be given distinct names.
    """

    def __init__(
        self,
        ttl_seconds: int = 300,
        max_size: int = 100,
        enabled: bool = True,
        name: str = "weather",
    ):
        self._ttl_seconds = ttl_seconds
        self._max_size = max_size
        self._enabled = enabled
        self._cache: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._size_gauge = cache_size_gauge.labels(cache=name)

    @classmethod
    def from_config(cls, config: CacheConfig) -> "InMemoryCache":
        return cls(
            ttl_seconds=config.ttl_seconds,
            max_size=config.max_size,
            enabled=config.enabled,
        )

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def enabled(self) -> bool:
        return self._enabled

    def get(self, key: str) -> Any:
        """
        Return the cached value for `key`.

        Raises CacheMissError if the key is absent and CacheExpiredError if
        its TTL has passed (the entry is removed).
        """
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                cache_lookup_counter.labels(result="miss").inc()
                raise CacheMissError(key)

            if time.time() > entry.expires_at:
                del self._cache[key]
                self._size_gauge.set(len(self._cache))
                cache_lookup_counter.labels(result="expired").inc()
                raise CacheExpiredError(
                    key, _to_datetime(entry.cached_at), _to_datetime(entry.expires_at)
                )

            entry.access_count += 1
            cache_lookup_counter.labels(result="hit").inc()
            return entry.value

    def set(self, key: str, value: Any) -> None:
        """
        Store `value` under `key`, evicting one entry if a new key needs room.

        No-op when the cache is disabled. Raises CacheFullError if the cache
        reports full but holds nothing to evict.
        """
        if not self._enabled:
            return

        with self._lock:
            if key not in self._cache and len(self._cache) >= self._max_size:
                self._evict_one()

            now = time.time()
            self._cache[key] = CacheEntry(
                value=value,
                cached_at=now,
                expires_at=now + self._ttl_seconds,
            )
            self._size_gauge.set(len(self._cache))

    def _evict_one(self) -> None:
        # Caller holds the lock
        victim = None
        min_access_count = None
        for key, entry in self._cache.items():
            if min_access_count is None or entry.access_count < min_access_count:
                min_access_count = entry.access_count
                victim = key

        if victim is None:
            raise CacheFullError(self._max_size, len(self._cache))

        del self._cache[victim]
        cache_eviction_counter.inc()
        logger.debug(f"Evicted cache entry {victim} (access_count={min_access_count})")

    def clear(self) -> None:
        """Clear all cached data."""
        with self._lock:
            self._cache.clear()
            self._size_gauge.set(0)

    def size(self) -> int:
        with self._lock:
            return len(self._cache)
