"""Read-through TTL cache for remote API responses.

Entries are stored as ``{"value": ..., "timestamp": <epoch ms>}`` JSON in the
injected key-value store. Expiry is lazy: stale entries stay in the store and
are simply refetched on the next read.
"""

import copy
import json
import logging
from datetime import timedelta
from typing import Any, Awaitable, Callable, TypedDict, TypeVar

from cachetools import LRUCache

from movietracker.core.dates import now_ms
from movietracker.stores.base import KeyValueStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CACHE_TTL = timedelta(hours=24)

# Namespace prefixes, one per remote operation
SEARCH_MOVIES_PREFIX = "@MovieTracker:api:searchMovies:"
MOVIE_DETAILS_PREFIX = "@MovieTracker:api:movieDetails:"
MOVIE_CREDITS_PREFIX = "@MovieTracker:api:movieCredits:"
POPULAR_MOVIES_PREFIX = "@MovieTracker:api:popularMovies:"
TRENDING_MOVIES_PREFIX = "@MovieTracker:api:trendingMovies:"


class CacheEntry(TypedDict):
    value: Any
    timestamp: int


def cache_key(prefix: str, *parts: Any) -> str:
    """Build a cache key from a namespace prefix and normalized parameters."""
    return prefix + "_".join(str(p) for p in parts)


def _parse_entry(raw: str) -> CacheEntry:
    data = json.loads(raw)
    timestamp = data["timestamp"]
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
        raise ValueError(f"Invalid cache timestamp: {timestamp!r}")
    return {"value": data["value"], "timestamp": timestamp}


class ReadThroughCache:
    """Memoizes idempotent remote reads by request signature with a fixed TTL.

    Decoded entries are also kept in a small in-process LRU so repeated hits
    skip the store round-trip; the TTL check is the same for both tiers.
    Hits hand out deep copies, so callers may mutate what they get back.
    """

    def __init__(
        self,
        store: KeyValueStore,
        default_ttl: timedelta = DEFAULT_CACHE_TTL,
        clock: Callable[[], int] = now_ms,
        memory_size: int = 256,
    ) -> None:
        self.store = store
        self.default_ttl = default_ttl
        self._clock = clock
        self._memory: LRUCache = LRUCache(maxsize=memory_size)

    async def _lookup(self, key: str) -> CacheEntry | None:
        entry = self._memory.get(key)
        if entry is not None:
            return entry

        raw = await self.store.get_item(key)
        if raw is None:
            return None

        entry = _parse_entry(raw)
        self._memory[key] = entry
        return entry

    async def get_cached_or_fetch(
        self,
        key: str,
        producer: Callable[[], Awaitable[T]],
        ttl: timedelta | None = None,
    ) -> T:
        """Return the cached value for key if fresh, else await producer.

        A fresh value is persisted before it is returned. If reading the
        cached entry fails the producer is awaited directly and nothing is
        written. Producer exceptions propagate to the caller.
        """
        ttl_ms = int((ttl if ttl is not None else self.default_ttl).total_seconds() * 1000)

        try:
            entry = await self._lookup(key)
        except Exception as exc:
            logger.warning("Cache lookup failed for %s, fetching directly: %s", key, exc)
            return await producer()

        if entry is not None and self._clock() - entry["timestamp"] < ttl_ms:
            logger.debug("Cache hit for %s", key)
            return copy.deepcopy(entry["value"])

        value = await producer()
        fresh: CacheEntry = {"value": copy.deepcopy(value), "timestamp": self._clock()}
        try:
            await self.store.set_item(key, json.dumps(fresh))
        except Exception as exc:
            logger.error("Failed to persist cache entry %s: %s", key, exc)
        else:
            self._memory[key] = fresh
        return value
