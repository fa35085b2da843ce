"""
Tiered Cache - Memory / remote store / local snapshot orchestrator
分层配置缓存 - 协调内存缓存、远程存储与本地快照

Read Path:
    memory -> remote store -> (remote failed) local snapshot -> negative entry

Write Path:
    remote store (blocking, errors propagate) -> memory -> async snapshot write

get() never raises. A remote failure with no usable snapshot returns None,
which callers cannot tell apart from a key the remote store confirmed absent.
"""

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .. import config
from ..errors import SnapshotUnavailable
from ..log import log
from ..remote.interface import RemoteStore
from .async_write_queue import AsyncPersister, AsyncWriteConfig, QueueStats
from .cache_interface import (
    NEGATIVE,
    CacheEntry,
    CacheKey,
    CacheStats,
    Present,
    build_cache_key,
    validate_name,
)
from .memory_cache import MemoryCache
from .snapshot_store import SnapshotStore


@dataclass
class AggregatedStats:
    """
    Statistics across all tiers
    聚合统计信息
    """
    memory: CacheStats = field(default_factory=CacheStats)
    persister: QueueStats = field(default_factory=QueueStats)
    remote_hits: int = 0
    remote_absent: int = 0
    remote_failures: int = 0
    snapshot_loads: int = 0
    snapshot_failures: int = 0
    snapshot_entries_restored: int = 0
    writes: int = 0
    write_failures: int = 0
    refreshes: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "memory": self.memory.to_dict(),
            "persister": self.persister.to_dict(),
            "remote_hits": self.remote_hits,
            "remote_absent": self.remote_absent,
            "remote_failures": self.remote_failures,
            "snapshot_loads": self.snapshot_loads,
            "snapshot_failures": self.snapshot_failures,
            "snapshot_entries_restored": self.snapshot_entries_restored,
            "writes": self.writes,
            "write_failures": self.write_failures,
            "refreshes": self.refreshes,
        }


class TieredCache:
    """
    Resilient configuration cache
    高可用配置缓存

    Features:
        - Memory hits for every resolved key, including confirmed misses
        - Write-through to the remote store
        - Local snapshot fallback when the remote store is unreachable
        - At most one snapshot load per namespace during a miss storm
        - Snapshot writes off the caller's thread

    Usage:
        cache = TieredCache(HttpRemoteStore(url, access_key, secret_key),
                            domain="prod",
                            snapshots=SnapshotStore("/var/lib/myapp"))
        cache.set("billing", "currency", "EUR")
        cache.get("billing", "currency")   # "EUR"
        cache.refresh()
        cache.close()
    """

    def __init__(
        self,
        remote: RemoteStore,
        domain: str = config.DEFAULT_DOMAIN,
        snapshots: Optional[SnapshotStore] = None,
        persister_config: Optional[AsyncWriteConfig] = None,
        strict_startup: bool = True,
    ):
        """
        Args:
            remote: Authoritative store
            domain: Remote domain holding this cache's namespaces
            snapshots: Local fallback store (defaults to the working directory)
            persister_config: Snapshot write queue configuration
            strict_startup: Raise if the domain cannot be checked/created;
                when False, log and continue in fallback-only mode
        """
        self.domain = domain
        self._remote = remote
        self._snapshots = snapshots if snapshots is not None else SnapshotStore()
        self._memory = MemoryCache()

        # One lock per namespace for the snapshot fallback path
        self._namespace_locks: Dict[str, threading.Lock] = {}
        self._namespace_locks_guard = threading.Lock()

        self._stats = AggregatedStats()
        self._stats_lock = threading.Lock()

        self._ensure_domain(strict_startup)

        self._persister = AsyncPersister(self._persist_namespace, persister_config)
        self._persister.start()

        log.info(f"[TIERED_CACHE] Initialized: domain={domain!r}, "
                 f"snapshot_dir={str(self._snapshots.directory)!r}")

    def _ensure_domain(self, strict: bool) -> None:
        try:
            if self.domain not in self._remote.list_domains():
                self._remote.create_domain(self.domain)
        except Exception as e:
            if strict:
                raise
            log.warning(f"[TIERED_CACHE] Could not verify domain {self.domain!r}, "
                        f"starting in fallback-only mode: {e}")

    def _count(self, stat: str, amount: int = 1) -> None:
        with self._stats_lock:
            setattr(self._stats, stat, getattr(self._stats, stat) + amount)

    # ==================== Main API ====================

    def get(self, namespace: str, key: str) -> Optional[str]:
        """
        Get a configuration value

        Returns:
            The value, or None if it is absent (or unknown because both the
            remote store and the local snapshot are unavailable)
        """
        cache_key = build_cache_key(namespace, key)

        entry = self._memory.get(cache_key)
        if entry is not None:
            return entry.value

        try:
            value = self._remote.get_attribute(self.domain, namespace, key)
        except Exception as e:
            self._count("remote_failures")
            log.fallback(f"[TIERED_CACHE] Remote read failed, using local snapshot: "
                         f"namespace={namespace!r}, key={key!r}, error={e}")
            return self._fallback(cache_key).value

        if value is None:
            self._count("remote_absent")
            entry, _ = self._memory.set_if_absent(cache_key, NEGATIVE)
            log.debug(f"[TIERED_CACHE] Remote miss, cached negative: namespace={namespace!r}, key={key!r}")
            return entry.value

        self._count("remote_hits")
        entry, stored = self._memory.set_if_absent(cache_key, Present(value, source="remote"))
        if stored:
            self._persister.enqueue(namespace)
        return entry.value

    def set(self, namespace: str, key: str, value: str) -> None:
        """
        Write a configuration value through to the remote store

        Raises:
            ValueError: namespace or key contains the reserved character
            RemoteStoreError: the remote write failed; memory is unchanged
        """
        validate_name(namespace, "namespace")
        validate_name(key, "key")
        if value is None:
            raise ValueError("value must not be None")

        try:
            self._remote.put_attribute(self.domain, namespace, key, value, replace=True)
        except Exception as e:
            self._count("write_failures")
            log.error(f"[TIERED_CACHE] Remote write failed: namespace={namespace!r}, key={key!r}, error={e}")
            raise

        self._memory.set(build_cache_key(namespace, key), Present(value, source="write"))
        self._count("writes")
        self._persister.enqueue(namespace)
        log.debug(f"[TIERED_CACHE] Value written: namespace={namespace!r}, key={key!r}")

    def refresh(self) -> None:
        """
        Forget everything in memory and resolve every previously known key again

        Keys written concurrently with the clear may be dropped; the next
        get() resolves them again.
        """
        keys = self._memory.drain()
        self._count("refreshes")
        log.info(f"[TIERED_CACHE] Refreshing {len(keys)} keys")

        for cache_key in keys:
            self.get(cache_key.namespace, cache_key.key)

    # ==================== Fallback Path ====================

    def _namespace_lock(self, namespace: str) -> threading.Lock:
        with self._namespace_locks_guard:
            lock = self._namespace_locks.get(namespace)
            if lock is None:
                lock = threading.Lock()
                self._namespace_locks[namespace] = lock
            return lock

    def _fallback(self, cache_key: CacheKey) -> CacheEntry:
        """
        Resolve a key from the local snapshot after a remote failure

        Runs under the namespace lock; memory is checked again after the
        lock is taken so that waiting callers reuse the first caller's load.
        """
        namespace = cache_key.namespace

        with self._namespace_lock(namespace):
            entry = self._memory.peek(cache_key)
            if entry is not None:
                return entry

            self._count("snapshot_loads")
            try:
                snapshot = self._snapshots.load(namespace)
            except SnapshotUnavailable as e:
                self._count("snapshot_failures")
                log.warning(f"[TIERED_CACHE] No local fallback: {e}")
            else:
                restored = 0
                for key, value in snapshot.items():
                    _, stored = self._memory.set_if_absent(
                        build_cache_key(namespace, key), Present(value, source="snapshot")
                    )
                    if stored:
                        restored += 1
                self._count("snapshot_entries_restored", restored)
                if restored:
                    self._persister.enqueue(namespace)
                log.fallback(f"[TIERED_CACHE] Restored {restored}/{len(snapshot)} entries "
                             f"from snapshot: namespace={namespace!r}")

            # Negative inside the lock so waiters do not load again
            entry, _ = self._memory.set_if_absent(cache_key, NEGATIVE)
            return entry

    # ==================== Persistence ====================

    def _persist_namespace(self, namespace: str) -> None:
        """Runs on the persister thread: snapshot one namespace's known values."""
        self._snapshots.save(namespace, self._memory.namespace_values(namespace))

    def flush(self, timeout: float = 30.0) -> bool:
        """
        Wait for queued snapshot writes

        Returns:
            True if every queued write ran within the timeout
        """
        return self._persister.wait_until_empty(timeout)

    # ==================== Lifecycle ====================

    def close(self, wait: bool = True, timeout: float = 30.0) -> None:
        """
        Stop the persister (draining it when `wait`) and close the remote store
        """
        self._persister.stop(wait=wait, timeout=timeout)
        close = getattr(self._remote, "close", None)
        if callable(close):
            close()
        log.info("[TIERED_CACHE] Closed")

    def __enter__(self) -> "TieredCache":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ==================== Statistics ====================

    def get_stats(self) -> AggregatedStats:
        with self._stats_lock:
            stats = AggregatedStats(**{
                name: getattr(self._stats, name)
                for name in (
                    "remote_hits", "remote_absent", "remote_failures",
                    "snapshot_loads", "snapshot_failures", "snapshot_entries_restored",
                    "writes", "write_failures", "refreshes",
                )
            })
        stats.memory = self._memory.get_stats()
        stats.persister = self._persister.get_stats()
        return stats

    def __len__(self) -> int:
        return self._memory.size()


# ==================== Factory Function ====================

def create_cache(
    access_key: Optional[str] = None,
    secret_key: Optional[str] = None,
    domain: Optional[str] = None,
    remote: Optional[RemoteStore] = None,
    snapshot_dir: Optional[str] = None,
    strict_startup: Optional[bool] = None,
) -> TieredCache:
    """
    Build a TieredCache from explicit arguments and process configuration

    Arguments left as None are read from simpleconfig.config (process
    properties, then environment, then defaults).
    """
    domain = domain or config.get_domain()

    if remote is None:
        if config.get_remote_backend() == "memory":
            from ..remote.memory_store import InMemoryRemoteStore
            remote = InMemoryRemoteStore()
        else:
            from ..remote.http_store import HttpRemoteStore
            remote = HttpRemoteStore(
                config.get_remote_url(),
                access_key if access_key is not None else config.get_access_key(),
                secret_key if secret_key is not None else config.get_secret_key(),
                timeout=config.get_remote_timeout(),
            )

    snapshots = SnapshotStore(snapshot_dir or config.get_snapshot_dir())
    persister_config = AsyncWriteConfig(max_queue_size=config.get_persist_queue_size())

    return TieredCache(
        remote,
        domain=domain,
        snapshots=snapshots,
        persister_config=persister_config,
        strict_startup=config.get_strict_startup() if strict_startup is None else strict_startup,
    )
