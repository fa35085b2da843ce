"""
Cache Module - Tiered configuration cache
分层配置缓存模块 - 内存缓存 + 远程存储 + 本地快照

Architecture:
    Memory:   resolved values and negative entries (fast, volatile)
    Remote:   authoritative key-value store (slow, may be unreachable)
    Snapshot: per-namespace .properties files (durable fallback)

Usage:
    from simpleconfig.cache import TieredCache, SnapshotStore
    from simpleconfig.remote import HttpRemoteStore

    cache = TieredCache(HttpRemoteStore("http://config:8080", "ak", "sk"),
                        domain="prod", snapshots=SnapshotStore("/var/lib/app"))
    cache.set("billing", "currency", "EUR")
    cache.get("billing", "currency")
"""

from .async_write_queue import (
    AsyncPersister,
    AsyncWriteConfig,
    QueueState,
    QueueStats,
    WriteTask,
    create_persister,
)
from .cache_interface import (
    NEGATIVE,
    RESERVED_CHAR,
    CacheEntry,
    CacheKey,
    CacheStats,
    Negative,
    Present,
    build_cache_key,
)
from .memory_cache import MemoryCache, RWLock
from .snapshot_store import SnapshotStore
from .tiered_cache import AggregatedStats, TieredCache, create_cache

__all__ = [
    # Core types
    "CacheKey",
    "CacheEntry",
    "Present",
    "Negative",
    "NEGATIVE",
    "RESERVED_CHAR",
    "CacheStats",
    "build_cache_key",
    # Memory
    "MemoryCache",
    "RWLock",
    # Snapshot
    "SnapshotStore",
    # Async persistence
    "AsyncPersister",
    "AsyncWriteConfig",
    "QueueState",
    "QueueStats",
    "WriteTask",
    "create_persister",
    # Orchestrator
    "TieredCache",
    "AggregatedStats",
    "create_cache",
]
