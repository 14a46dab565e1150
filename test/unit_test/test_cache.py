"""
Unit tests for the TTL cache and its single-flight loading
"""

import asyncio
import unittest

from dlmm_range_engine.infra.cache import TtlCache, CacheEntry


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class TestCacheEntry(unittest.TestCase):
    """Tests for CacheEntry expiry"""

    def test_no_ttl_never_expires(self):
        entry = CacheEntry(value=1, created_at=0.0, ttl=None)
        self.assertFalse(entry.is_expired(10 ** 9))

    def test_expires_at_ttl(self):
        entry = CacheEntry(value=1, created_at=100.0, ttl=120.0)
        self.assertFalse(entry.is_expired(219.9))
        self.assertTrue(entry.is_expired(220.0))


class TestTtlCacheSync(unittest.TestCase):
    """Tests for synchronous get/set"""

    def test_expired_reads_as_absent(self):
        clock = FakeClock()
        cache = TtlCache(ttl=120.0, clock=clock)
        cache.set("k", "v")
        self.assertEqual(cache.get("k"), "v")
        self.assertIn("k", cache)

        clock.advance(121)
        self.assertIsNone(cache.get("k"))
        self.assertNotIn("k", cache)

    def test_counts_skip_expired_entries(self):
        clock = FakeClock()
        cache = TtlCache(ttl=120.0, clock=clock)
        cache.set("old", 1)
        clock.advance(60)
        cache.set("new", 2)

        clock.advance(61)
        self.assertEqual(cache.keys(), ["new"])
        self.assertEqual(len(cache), 1)
        self.assertEqual(cache.stats()["size"], 1)

        clock.advance(60)
        self.assertEqual(cache.keys(), [])
        self.assertEqual(len(cache), 0)

    def test_clear(self):
        cache = TtlCache()
        cache.set("a", 1)
        cache.set("b", 2)
        self.assertEqual(len(cache), 2)
        cache.clear()
        self.assertEqual(len(cache), 0)
        self.assertEqual(cache.keys(), [])


class TestTtlCacheLoad(unittest.IsolatedAsyncioTestCase):
    """Tests for get_or_load"""

    async def test_loads_once_within_ttl(self):
        clock = FakeClock()
        cache = TtlCache(ttl=120.0, clock=clock)
        calls = []

        async def loader():
            calls.append(1)
            return len(calls)

        self.assertEqual(await cache.get_or_load("k", loader), 1)
        self.assertEqual(await cache.get_or_load("k", loader), 1)
        self.assertEqual(len(calls), 1)

        clock.advance(120)
        self.assertEqual(await cache.get_or_load("k", loader), 2)
        self.assertEqual(cache.stats()["misses"], 2)
        self.assertEqual(cache.stats()["hits"], 1)

    async def test_concurrent_callers_share_one_load(self):
        cache = TtlCache(ttl=120.0)
        started = []
        gate = asyncio.Event()

        async def loader():
            started.append(1)
            await gate.wait()
            return "value"

        first = asyncio.ensure_future(cache.get_or_load("k", loader))
        second = asyncio.ensure_future(cache.get_or_load("k", loader))
        await asyncio.sleep(0)
        self.assertTrue(cache.is_loading("k"))

        gate.set()
        results = await asyncio.gather(first, second)

        self.assertEqual(results, ["value", "value"])
        self.assertEqual(len(started), 1)
        self.assertFalse(cache.is_loading("k"))

    async def test_failed_load_not_cached(self):
        cache = TtlCache(ttl=120.0)
        attempts = []

        async def loader():
            attempts.append(1)
            if len(attempts) == 1:
                raise RuntimeError("first attempt fails")
            return "ok"

        with self.assertRaises(RuntimeError):
            await cache.get_or_load("k", loader)
        self.assertEqual(len(cache), 0)

        self.assertEqual(await cache.get_or_load("k", loader), "ok")
        self.assertEqual(len(attempts), 2)

    async def test_cancelled_waiter_does_not_abort_load(self):
        cache = TtlCache(ttl=120.0)
        gate = asyncio.Event()

        async def loader():
            await gate.wait()
            return "value"

        waiter = asyncio.ensure_future(cache.get_or_load("k", loader))
        await asyncio.sleep(0)
        waiter.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await waiter

        gate.set()
        self.assertEqual(await cache.get_or_load("k", loader), "value")
        self.assertEqual(cache.get("k"), "value")

    async def test_clear_during_load_does_not_repopulate(self):
        cache = TtlCache(ttl=120.0)
        gate = asyncio.Event()

        async def loader():
            await gate.wait()
            return "stale"

        pending = asyncio.ensure_future(cache.get_or_load("k", loader))
        await asyncio.sleep(0)
        cache.clear()
        gate.set()

        # The waiter still gets its value, the cache stays empty
        self.assertEqual(await pending, "stale")
        await asyncio.sleep(0)
        self.assertIsNone(cache.get("k"))


if __name__ == "__main__":
    unittest.main()
