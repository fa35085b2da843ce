"""
Async Write Queue - Background persister for namespace snapshots
异步写入队列 - 后台线程负责把内存中的配置写入本地快照

This module provides:
    - A single background worker, so snapshot writes never run concurrently
    - Non-blocking, fire-and-forget enqueue
    - Coalescing of jobs for a namespace that is already waiting
    - Drop-newest overflow protection
    - Graceful shutdown with queue draining

Architecture:
    Producer (TieredCache.set / get) -> Queue -> Worker thread -> writer(namespace)

A job names a namespace only. The writer reads the current memory contents
when the job runs, so a later job always persists state at least as new as
an earlier one and coalescing loses nothing.
"""

import queue
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional, Set

from ..log import log


class QueueState(Enum):
    """Queue state enumeration"""
    STOPPED = "stopped"
    RUNNING = "running"
    STOPPING = "stopping"
    DRAINING = "draining"


@dataclass
class WriteTask:
    """
    Persistence job
    持久化任务

    Attributes:
        namespace: Namespace whose snapshot should be rewritten
        created_at: When the job was enqueued
    """
    namespace: str
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class QueueStats:
    """
    Queue statistics
    队列统计信息
    """
    total_enqueued: int = 0
    total_coalesced: int = 0
    total_processed: int = 0
    total_failed: int = 0
    total_dropped: int = 0
    current_queue_size: int = 0
    last_flush_time: Optional[datetime] = None
    last_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_enqueued": self.total_enqueued,
            "total_coalesced": self.total_coalesced,
            "total_processed": self.total_processed,
            "total_failed": self.total_failed,
            "total_dropped": self.total_dropped,
            "current_queue_size": self.current_queue_size,
            "last_flush_time": self.last_flush_time.isoformat() if self.last_flush_time else None,
            "last_error": self.last_error,
            "success_rate": self._calculate_success_rate(),
        }

    def _calculate_success_rate(self) -> float:
        total = self.total_processed + self.total_failed
        if total == 0:
            return 1.0
        return self.total_processed / total


@dataclass
class AsyncWriteConfig:
    """
    Configuration for the persister
    异步写入队列配置

    Attributes:
        max_queue_size: Maximum number of waiting jobs (0 = unlimited)
        poll_interval_ms: How often an idle worker checks for shutdown
    """
    max_queue_size: int = 1000
    poll_interval_ms: int = 100


class AsyncPersister:
    """
    Single-worker background persister
    单线程后台持久化器

    Usage:
        persister = AsyncPersister(lambda ns: store.save(ns, cache.namespace_values(ns)))
        persister.start()

        persister.enqueue("billing")   # returns immediately

        persister.stop(wait=True)      # drain, then stop
    """

    def __init__(
        self,
        writer: Callable[[str], None],
        config: Optional[AsyncWriteConfig] = None
    ):
        """
        Args:
            writer: Called on the worker thread with one namespace per job
            config: Queue configuration
        """
        self.config = config or AsyncWriteConfig()
        self._writer = writer

        self._queue: "queue.Queue[WriteTask]" = queue.Queue(maxsize=max(0, self.config.max_queue_size))

        self._state = QueueState.STOPPED
        self._state_lock = threading.Lock()

        # Exactly one worker: snapshot writes for a namespace must not overlap
        self._worker: Optional[threading.Thread] = None
        self._shutdown_event = threading.Event()

        # Namespaces waiting in the queue, and jobs not yet finished
        self._pending: Set[str] = set()
        self._outstanding = 0
        self._pending_lock = threading.Lock()
        self._idle = threading.Condition(self._pending_lock)

        self._stats = QueueStats()
        self._stats_lock = threading.Lock()

        log.debug(f"[ASYNC_QUEUE] Initialized with max_queue={self.config.max_queue_size}")

    @property
    def state(self) -> QueueState:
        with self._state_lock:
            return self._state

    @property
    def queue_size(self) -> int:
        return self._queue.qsize()

    @property
    def pending_count(self) -> int:
        """Jobs queued or running."""
        with self._pending_lock:
            return self._outstanding

    def start(self) -> None:
        with self._state_lock:
            if self._state == QueueState.RUNNING:
                log.warning("[ASYNC_QUEUE] Already running")
                return
            self._state = QueueState.RUNNING
            self._shutdown_event.clear()

        self._worker = threading.Thread(
            target=self._worker_loop,
            name="SnapshotPersister",
            daemon=True
        )
        self._worker.start()
        log.debug("[ASYNC_QUEUE] Started")

    def stop(self, wait: bool = True, timeout: float = 30.0) -> None:
        """
        Stop the persister

        Args:
            wait: Run every queued job before stopping
            timeout: Maximum time to wait for draining
        """
        with self._state_lock:
            if self._state == QueueState.STOPPED:
                return
            self._state = QueueState.DRAINING if wait else QueueState.STOPPING

        log.debug(f"[ASYNC_QUEUE] Stopping (wait={wait})...")

        if wait and not self.wait_until_empty(timeout):
            log.warning(f"[ASYNC_QUEUE] Drain timed out after {timeout}s, "
                        f"{self.pending_count} job(s) abandoned")

        self._shutdown_event.set()
        if self._worker is not None:
            self._worker.join(timeout=5.0)
            self._worker = None

        self._discard_remaining()

        with self._state_lock:
            self._state = QueueState.STOPPED

        log.debug("[ASYNC_QUEUE] Stopped")

    def enqueue(self, namespace: str) -> bool:
        """
        Schedule a snapshot write for a namespace

        Never blocks and never raises.

        Returns:
            True if a job is queued for the namespace (new or coalesced),
            False if the job was dropped
        """
        if self.state not in (QueueState.RUNNING, QueueState.DRAINING):
            log.debug(f"[ASYNC_QUEUE] Not running, dropping job: namespace={namespace!r}")
            with self._stats_lock:
                self._stats.total_dropped += 1
            return False

        with self._pending_lock:
            if namespace in self._pending:
                with self._stats_lock:
                    self._stats.total_coalesced += 1
                return True

            try:
                self._queue.put_nowait(WriteTask(namespace=namespace))
            except queue.Full:
                with self._stats_lock:
                    self._stats.total_dropped += 1
                log.warning(f"[ASYNC_QUEUE] Queue full, dropping job: namespace={namespace!r}")
                return False

            self._pending.add(namespace)
            self._outstanding += 1

        with self._stats_lock:
            self._stats.total_enqueued += 1
        return True

    def _worker_loop(self) -> None:
        poll = self.config.poll_interval_ms / 1000.0
        while not self._shutdown_event.is_set():
            try:
                task = self._queue.get(timeout=poll)
            except queue.Empty:
                continue
            self._run(task)

    def _run(self, task: WriteTask) -> None:
        # Leave the pending set first: changes made while this job runs
        # must be able to schedule another one.
        with self._pending_lock:
            self._pending.discard(task.namespace)

        try:
            self._writer(task.namespace)
        except Exception as e:
            with self._stats_lock:
                self._stats.total_failed += 1
                self._stats.last_error = f"{type(e).__name__}: {e}"
            log.warning(f"[ASYNC_QUEUE] Snapshot write failed: namespace={task.namespace!r}, error={e}")
        else:
            with self._stats_lock:
                self._stats.total_processed += 1
                self._stats.last_flush_time = datetime.now()
        finally:
            self._queue.task_done()
            with self._pending_lock:
                self._outstanding = max(0, self._outstanding - 1)
                if self._outstanding <= 0:
                    self._idle.notify_all()

    def _discard_remaining(self) -> None:
        dropped = 0
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break
            self._queue.task_done()
            dropped += 1

        with self._pending_lock:
            self._pending.clear()
            self._outstanding = 0
            self._idle.notify_all()

        if dropped:
            with self._stats_lock:
                self._stats.total_dropped += dropped

    def wait_until_empty(self, timeout: float = 30.0) -> bool:
        """
        Wait until every queued job has run

        Returns:
            True if the queue drained, False on timeout
        """
        deadline = time.monotonic() + timeout
        with self._pending_lock:
            while self._outstanding > 0:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._idle.wait(remaining)
        return True

    def get_stats(self) -> QueueStats:
        with self._stats_lock:
            return QueueStats(
                total_enqueued=self._stats.total_enqueued,
                total_coalesced=self._stats.total_coalesced,
                total_processed=self._stats.total_processed,
                total_failed=self._stats.total_failed,
                total_dropped=self._stats.total_dropped,
                current_queue_size=self._queue.qsize(),
                last_flush_time=self._stats.last_flush_time,
                last_error=self._stats.last_error,
            )


# ==================== Factory Function ====================

def create_persister(
    writer: Callable[[str], None],
    config: Optional[AsyncWriteConfig] = None,
    auto_start: bool = True
) -> AsyncPersister:
    """
    Create and optionally start a persister

    Args:
        writer: Snapshot writer called with a namespace
        config: Queue configuration
        auto_start: Whether to start the worker immediately
    """
    persister = AsyncPersister(writer, config)

    if auto_start:
        persister.start()

    return persister
