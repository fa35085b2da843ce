"""
Memory Cache - Concurrency-safe in-memory map of resolved entries
内存缓存层 - 保存已解析的配置值与负缓存条目

This module provides:
    - RWLock: writer-preferring read-write lock
    - MemoryCache: CacheKey -> CacheEntry map guarded by the RWLock

There is no eviction and no TTL: this is a correctness cache, entries only
leave memory through clear() or drain().
"""

import threading
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from ..log import log
from .cache_interface import (
    CacheEntry,
    CacheKey,
    CacheStats,
    Negative,
    Present,
)


class RWLock:
    """
    Read-Write Lock implementation
    读写锁实现 - 允许多个读取者或单个写入者

    Features:
        - Multiple readers can hold the lock simultaneously
        - Writers have exclusive access
        - Writer preference to prevent starvation
    """

    def __init__(self):
        self._read_ready = threading.Condition(threading.Lock())
        self._readers = 0
        self._writers_waiting = 0
        self._writer_active = False

    def acquire_read(self) -> None:
        with self._read_ready:
            while self._writer_active or self._writers_waiting > 0:
                self._read_ready.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._read_ready:
            self._readers -= 1
            if self._readers == 0:
                self._read_ready.notify_all()

    def acquire_write(self) -> None:
        with self._read_ready:
            self._writers_waiting += 1
            try:
                while self._readers > 0 or self._writer_active:
                    self._read_ready.wait()
                self._writer_active = True
            finally:
                self._writers_waiting -= 1

    def release_write(self) -> None:
        with self._read_ready:
            self._writer_active = False
            self._read_ready.notify_all()

    def read_lock(self):
        """Context manager for read lock"""
        return _ReadLockContext(self)

    def write_lock(self):
        """Context manager for write lock"""
        return _WriteLockContext(self)


class _ReadLockContext:

    def __init__(self, rwlock: RWLock):
        self._rwlock = rwlock

    def __enter__(self):
        self._rwlock.acquire_read()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._rwlock.release_read()
        return False


class _WriteLockContext:

    def __init__(self, rwlock: RWLock):
        self._rwlock = rwlock

    def __enter__(self):
        self._rwlock.acquire_write()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._rwlock.release_write()
        return False


class MemoryCache:
    """
    In-memory map of resolved cache entries (L1)
    内存缓存 - 多线程安全，调用方无需额外加锁

    Usage:
        cache = MemoryCache()
        cache.set(CacheKey("app", "timeout"), Present("30"))
        entry = cache.get(CacheKey("app", "timeout"))
    """

    def __init__(self):
        self._cache: Dict[CacheKey, CacheEntry] = {}
        self._rwlock = RWLock()

        self._stats = CacheStats()
        self._stats_lock = threading.Lock()

    def get(self, cache_key: CacheKey) -> Optional[CacheEntry]:
        """
        Get the resolved entry for a key

        Returns:
            Present or Negative entry, or None when the key was never resolved
        """
        with self._rwlock.read_lock():
            entry = self._cache.get(cache_key)

        with self._stats_lock:
            if entry is None:
                self._stats.misses += 1
            elif isinstance(entry, Negative):
                self._stats.negative_hits += 1
            else:
                self._stats.hits += 1

        return entry

    def peek(self, cache_key: CacheKey) -> Optional[CacheEntry]:
        """Like get(), without touching hit/miss statistics."""
        with self._rwlock.read_lock():
            return self._cache.get(cache_key)

    def set(self, cache_key: CacheKey, entry: CacheEntry) -> None:
        """Store an entry, replacing whatever was there."""
        with self._rwlock.write_lock():
            self._cache[cache_key] = entry

        with self._stats_lock:
            self._stats.total_writes += 1

    def set_if_absent(self, cache_key: CacheKey, entry: CacheEntry) -> Tuple[CacheEntry, bool]:
        """
        Store an entry only if the key is unresolved

        Returns:
            (entry now in memory, whether the given entry was stored)
        """
        with self._rwlock.write_lock():
            existing = self._cache.get(cache_key)
            if existing is not None:
                return existing, False
            self._cache[cache_key] = entry

        with self._stats_lock:
            self._stats.total_writes += 1
        return entry, True

    def keys(self) -> List[CacheKey]:
        with self._rwlock.read_lock():
            return list(self._cache.keys())

    def namespace_values(self, namespace: str) -> Dict[str, str]:
        """
        Known values of one namespace

        Negative entries are left out: only Present values are ever
        written to a snapshot.
        """
        with self._rwlock.read_lock():
            return {
                cache_key.key: entry.value
                for cache_key, entry in self._cache.items()
                if cache_key.namespace == namespace and isinstance(entry, Present)
            }

    def drain(self) -> List[CacheKey]:
        """
        Capture the current key set and clear the map in one step

        Returns:
            Keys that were resolved before the clear
        """
        with self._rwlock.write_lock():
            keys = list(self._cache.keys())
            self._cache.clear()

        with self._stats_lock:
            self._stats.total_clears += 1
            self._stats.last_cleared_at = datetime.now()

        log.debug(f"[MEMORY_CACHE] Drained {len(keys)} entries")
        return keys

    def clear(self) -> int:
        return len(self.drain())

    def size(self) -> int:
        with self._rwlock.read_lock():
            return len(self._cache)

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, cache_key: CacheKey) -> bool:
        return self.peek(cache_key) is not None

    def get_stats(self) -> CacheStats:
        with self._rwlock.read_lock():
            size = len(self._cache)
            negatives = sum(1 for entry in self._cache.values() if isinstance(entry, Negative))

        with self._stats_lock:
            return CacheStats(
                hits=self._stats.hits,
                negative_hits=self._stats.negative_hits,
                misses=self._stats.misses,
                current_size=size,
                negative_entries=negatives,
                total_writes=self._stats.total_writes,
                total_clears=self._stats.total_clears,
                last_cleared_at=self._stats.last_cleared_at,
            )
