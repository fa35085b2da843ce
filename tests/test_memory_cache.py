"""
Test suite for MemoryCache and RWLock
测试内存缓存层
"""

import threading
import time

import pytest

from simpleconfig.cache.cache_interface import (
    NEGATIVE,
    CacheKey,
    Present,
    build_cache_key,
    validate_name,
)
from simpleconfig.cache.memory_cache import MemoryCache, RWLock


class TestCacheInterface:
    """Test keys and entries"""

    def test_cache_key_is_a_tuple(self):
        key = build_cache_key("app", "timeout")

        assert key == CacheKey("app", "timeout")
        assert key.namespace == "app"
        assert key.key == "timeout"

    def test_keys_with_shared_text_do_not_collide(self):
        assert CacheKey("a.b", "c") != CacheKey("a", "b.c")

    def test_present_equality_ignores_metadata(self):
        assert Present("v", source="remote") == Present("v", source="snapshot")

    def test_negative_value_is_none(self):
        assert NEGATIVE.value is None

    def test_validate_name(self):
        validate_name("fine")
        with pytest.raises(ValueError):
            validate_name("bad\x00name")
        with pytest.raises(TypeError):
            validate_name(42)


class TestMemoryCache:
    """Test MemoryCache functionality"""

    def test_get_unresolved_key(self):
        cache = MemoryCache()

        assert cache.get(CacheKey("ns", "k")) is None
        assert cache.get_stats().misses == 1

    def test_set_and_get(self):
        cache = MemoryCache()
        key = CacheKey("ns", "k")

        cache.set(key, Present("v"))

        assert cache.get(key).value == "v"
        assert key in cache
        assert cache.get_stats().hits == 1

    def test_negative_entry_is_a_resolved_state(self):
        cache = MemoryCache()
        key = CacheKey("ns", "missing")

        cache.set(key, NEGATIVE)

        assert cache.get(key) is NEGATIVE
        assert key in cache
        stats = cache.get_stats()
        assert stats.negative_hits == 1
        assert stats.negative_entries == 1

    def test_set_if_absent_keeps_existing_entry(self):
        cache = MemoryCache()
        key = CacheKey("ns", "k")
        cache.set(key, Present("first"))

        entry, stored = cache.set_if_absent(key, Present("second"))

        assert stored is False
        assert entry.value == "first"
        assert cache.peek(key).value == "first"

    def test_set_if_absent_stores_new_entry(self):
        cache = MemoryCache()
        key = CacheKey("ns", "k")

        entry, stored = cache.set_if_absent(key, NEGATIVE)

        assert stored is True
        assert entry is NEGATIVE

    def test_peek_does_not_count(self):
        cache = MemoryCache()
        cache.peek(CacheKey("ns", "k"))

        stats = cache.get_stats()
        assert stats.misses == 0
        assert stats.hits == 0

    def test_namespace_values_skip_negatives_and_other_namespaces(self):
        cache = MemoryCache()
        cache.set(CacheKey("a", "k1"), Present("v1"))
        cache.set(CacheKey("a", "k2"), NEGATIVE)
        cache.set(CacheKey("b", "k3"), Present("v3"))

        assert cache.namespace_values("a") == {"k1": "v1"}
        assert cache.namespace_values("c") == {}

    def test_drain_returns_keys_and_clears(self):
        cache = MemoryCache()
        cache.set(CacheKey("a", "k1"), Present("v1"))
        cache.set(CacheKey("a", "k2"), NEGATIVE)

        keys = cache.drain()

        assert sorted(keys) == [CacheKey("a", "k1"), CacheKey("a", "k2")]
        assert len(cache) == 0
        stats = cache.get_stats()
        assert stats.total_clears == 1
        assert stats.last_cleared_at is not None

    def test_clear_returns_count(self):
        cache = MemoryCache()
        cache.set(CacheKey("a", "k"), Present("v"))

        assert cache.clear() == 1
        assert cache.size() == 0

    def test_stats_to_dict(self):
        cache = MemoryCache()
        cache.set(CacheKey("a", "k"), Present("v"))
        cache.get(CacheKey("a", "k"))
        cache.get(CacheKey("a", "other"))

        data = cache.get_stats().to_dict()

        assert data["hits"] == 1
        assert data["misses"] == 1
        assert data["hit_rate"] == 0.5
        assert data["total_writes"] == 1

    def test_concurrent_writers(self):
        cache = MemoryCache()

        def writer(n):
            for i in range(100):
                cache.set(CacheKey(f"ns{n}", f"k{i}"), Present(str(i)))

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(cache) == 800
        assert cache.namespace_values("ns3")["k99"] == "99"


class TestRWLock:
    """Test RWLock functionality"""

    def test_readers_share_the_lock(self):
        lock = RWLock()
        inside = threading.Barrier(2, timeout=5.0)

        def reader():
            with lock.read_lock():
                inside.wait()

        threads = [threading.Thread(target=reader) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5.0)

        assert not any(t.is_alive() for t in threads)

    def test_writer_excludes_readers(self):
        lock = RWLock()
        events = []

        lock.acquire_write()

        def reader():
            with lock.read_lock():
                events.append("read")

        t = threading.Thread(target=reader)
        t.start()
        time.sleep(0.05)
        events.append("write-done")
        lock.release_write()
        t.join(timeout=5.0)

        assert events == ["write-done", "read"]
