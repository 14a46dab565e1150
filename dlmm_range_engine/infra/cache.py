"""
In-process TTL cache with single-flight loading

Expired entries read as absent and are replaced on the next load; they
are not evicted in the background. Concurrent loads of the same key
share one in-flight task, so only one network round trip happens per key.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]


@dataclass
class CacheEntry(Generic[T]):
    """Cached value with creation time and lifetime (None = never expires)"""
    value: T
    created_at: float
    ttl: Optional[float] = None

    def is_expired(self, now: float) -> bool:
        if self.ttl is None:
            return False
        return now - self.created_at >= self.ttl


class TtlCache(Generic[T]):
    """
    Keyed cache owned by one engine instance

    Usage:
        cache = TtlCache(ttl=120.0)
        value = await cache.get_or_load("pool|moderate|endpoint", loader)
    """

    def __init__(
        self,
        ttl: Optional[float] = None,
        clock: Optional[Clock] = None,
        name: str = "cache",
    ):
        """
        Args:
            ttl: Entry lifetime in seconds, None for entries that never expire
            clock: Monotonic time source in seconds (injectable for tests)
            name: Label used in log messages
        """
        self._ttl = ttl
        self._clock = clock or time.monotonic
        self._name = name
        self._entries: Dict[str, CacheEntry[T]] = {}
        self._inflight: Dict[str, "asyncio.Future[T]"] = {}
        self._hits = 0
        self._misses = 0
        self._generation = 0

    @property
    def ttl(self) -> Optional[float]:
        return self._ttl

    def get(self, key: str) -> Optional[T]:
        """Return the cached value, or None when absent or expired"""
        entry = self._entries.get(key)
        if entry is None or entry.is_expired(self._clock()):
            return None
        return entry.value

    def set(self, key: str, value: T) -> None:
        self._entries[key] = CacheEntry(value=value, created_at=self._clock(), ttl=self._ttl)

    async def get_or_load(self, key: str, loader: Callable[[], Awaitable[T]]) -> T:
        """
        Return the fresh cached value or load it once.

        A second caller arriving while the key is loading awaits the same
        task. Cancelling a waiter does not cancel the shared load.

        Args:
            key: Cache key
            loader: Coroutine factory producing the value

        Returns:
            Cached or freshly loaded value

        Raises:
            Whatever the loader raises; failed loads are not cached
        """
        entry = self._entries.get(key)
        if entry is not None and not entry.is_expired(self._clock()):
            self._hits += 1
            logger.debug(f"{self._name} hit: {key}")
            return entry.value

        task = self._inflight.get(key)
        if task is None:
            self._misses += 1
            logger.debug(f"{self._name} miss: {key}")
            task = asyncio.ensure_future(loader())
            self._inflight[key] = task
            generation = self._generation
            task.add_done_callback(lambda done, k=key, g=generation: self._on_loaded(k, g, done))
        else:
            logger.debug(f"{self._name} joining in-flight load: {key}")

        return await asyncio.shield(task)

    def _on_loaded(self, key: str, generation: int, task: "asyncio.Future[T]") -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if task.cancelled():
            return
        # Reading the exception marks it retrieved even when every waiter went away
        if task.exception() is None and generation == self._generation:
            self.set(key, task.result())

    def is_loading(self, key: str) -> bool:
        return key in self._inflight

    def clear(self) -> None:
        """Drop all entries; in-flight loads still complete for their waiters"""
        self._entries.clear()
        self._inflight.clear()
        # Loads started before the clear must not repopulate the cache
        self._generation += 1

    def keys(self) -> List[str]:
        """Keys of entries that have not expired"""
        now = self._clock()
        return [key for key, entry in self._entries.items() if not entry.is_expired(now)]

    def __len__(self) -> int:
        return len(self.keys())

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def stats(self) -> Dict[str, Any]:
        return {
            "size": len(self),
            "hits": self._hits,
            "misses": self._misses,
            "in_flight": len(self._inflight),
        }
