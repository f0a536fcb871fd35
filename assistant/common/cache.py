"""
Cache Ports

Abstract cache port plus the two tiers used by the pipeline:
- MemoryCache: process-local TTL map
- RedisCache: shared cache across service instances

TieredCache chains tiers explicitly: reads try each tier in order,
writes go to every tier with that tier's TTL.

All tiers are read-then-write with last-write-wins semantics. Backend
failures are logged and treated as a miss (or a skipped write); a cache
outage never fails a request.
"""

import json
import time
import heapq
import hashlib
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger("assistant.common.cache")

# Key prefixes
PREFIX_BOX_LIST = "ai:boxlist"
PREFIX_BOX_CHECK = "ai:boxcheck"
PREFIX_BOX_TEXT = "ai:boxtext"


def generate_key(prefix: str, identifier: Any) -> str:
    """Build ``prefix:<md5>`` from a string or JSON-serializable identifier."""
    raw = identifier if isinstance(identifier, str) else json.dumps(identifier, sort_keys=True)
    return f"{prefix}:{hashlib.md5(raw.encode()).hexdigest()}"


class CachePort(ABC):
    """Minimal async cache interface"""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the cached value or None on miss/expiry."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int) -> None:
        """Store value for ttl seconds."""
        pass


class MemoryCache(CachePort):
    """
    Process-local TTL cache.

    Expired entries are purged on every write and before reporting size,
    using a heap of expiry times, so keys that are never read again do not
    accumulate. At most ``max_entries`` live keys are kept; the oldest write
    is evicted first. Hit/miss counters are kept for the /stats endpoint.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, max_entries: int = 10_000):
        self._clock = clock
        self._max_entries = max_entries
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._expiry_heap: List[Tuple[float, str]] = []
        self._evictions = 0
        self._hits = 0
        self._misses = 0
        self._last_reset = datetime.now(timezone.utc).isoformat()

    def _purge_expired(self) -> None:
        now = self._clock()
        heap = self._expiry_heap
        while heap and heap[0][0] <= now:
            expires_at, key = heapq.heappop(heap)
            entry = self._entries.get(key)
            # a rewritten key carries a newer expiry
            if entry is not None and entry[1] == expires_at:
                del self._entries[key]
        if len(heap) > 2 * len(self._entries) + 64:
            self._expiry_heap = [(expires_at, key) for key, (_, expires_at) in self._entries.items()]
            heapq.heapify(self._expiry_heap)

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is not None:
            value, expires_at = entry
            if self._clock() < expires_at:
                self._hits += 1
                logger.debug("Cache hit: %s", key)
                return value
            del self._entries[key]
        self._misses += 1
        logger.debug("Cache miss: %s", key)
        return None

    async def set(self, key: str, value: Any, ttl: int) -> None:
        self._purge_expired()
        expires_at = self._clock() + ttl
        # re-insert so dict order tracks the latest write
        self._entries.pop(key, None)
        self._entries[key] = (value, expires_at)
        heapq.heappush(self._expiry_heap, (expires_at, key))

        while len(self._entries) > self._max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            self._evictions += 1

    def __len__(self) -> int:
        self._purge_expired()
        return len(self._entries)

    def clear(self) -> None:
        count = len(self._entries)
        self._entries.clear()
        self._expiry_heap.clear()
        if count:
            logger.info("Cache cleared (%d entries)", count)

    def reset_stats(self) -> None:
        self._hits = 0
        self._misses = 0
        self._last_reset = datetime.now(timezone.utc).isoformat()

    @property
    def stats(self) -> Dict[str, Any]:
        total = self._hits + self._misses
        hit_rate = round(self._hits / total * 100, 2) if total else 0.0
        return {
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": hit_rate,
            "total_keys": len(self),
            "evictions": self._evictions,
            "total_operations": total,
            "last_reset": self._last_reset,
        }


class RedisCache(CachePort):
    """
    Shared cache backed by Redis.

    Values are stored as JSON strings under ``namespace + key``.
    """

    def __init__(self, redis_client, namespace: str = ""):
        """
        Initialize Redis cache.

        Args:
            redis_client: redis.asyncio.Redis instance (decode_responses=True)
            namespace: Prefix applied to every key
        """
        self._redis = redis_client
        self._namespace = namespace

    @classmethod
    def from_url(cls, url: str, namespace: str = "") -> "RedisCache":
        from redis.asyncio import Redis

        client = Redis.from_url(
            url,
            decode_responses=True,
            encoding="utf-8",
            socket_connect_timeout=2.0,
            socket_timeout=2.0,
        )
        return cls(client, namespace=namespace)

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self._redis.get(self._namespace + key)
        except Exception as e:
            logger.warning("Redis get failed for %s: %s", key, e)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning("Discarding undecodable cache value for %s: %s", key, e)
            return None

    async def set(self, key: str, value: Any, ttl: int) -> None:
        try:
            await self._redis.set(self._namespace + key, json.dumps(value), ex=ttl)
        except Exception as e:
            logger.warning("Redis set failed for %s: %s", key, e)

    async def aclose(self) -> None:
        await self._redis.aclose()


class TieredCache:
    """
    Ordered chain of cache tiers, each with its own TTL.

    ``get`` returns the first hit walking the tiers in order;
    ``set`` writes the value to every tier.
    """

    def __init__(self, tiers: List[Tuple[CachePort, int]]):
        self._tiers = list(tiers)

    @property
    def tiers(self) -> List[Tuple[CachePort, int]]:
        return list(self._tiers)

    async def get(self, key: str) -> Optional[Any]:
        for cache, _ in self._tiers:
            value = await cache.get(key)
            if value is not None:
                return value
        return None

    async def set(self, key: str, value: Any) -> None:
        for cache, ttl in self._tiers:
            await cache.set(key, value, ttl)


async def wrap(
    cache: CachePort,
    key: str,
    fn: Callable[[], Awaitable[Any]],
    ttl: int,
    *,
    should_cache: Callable[[Any], bool] = lambda value: value is not None,
) -> Any:
    """Return the cached value for key, or compute it with fn and cache it."""
    cached = await cache.get(key)
    if cached is not None:
        return cached

    result = await fn()
    if should_cache(result):
        await cache.set(key, result, ttl)
    return result
