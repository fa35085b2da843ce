"""Shared fixtures: a scriptable remote store and snapshot stores that count calls."""

import threading
import time
from collections import Counter
from typing import Callable, Dict, Optional, Tuple

import pytest

from simpleconfig.cache import SnapshotStore, TieredCache
from simpleconfig.errors import RemoteStoreError


class FakeRemoteStore:
    """RemoteStore double: records calls and fails on demand."""

    def __init__(self, domains=("default_config",)):
        self.domains = set(domains)
        self.data: Dict[Tuple[str, str, str], str] = {}
        self.fail = False
        self.on_get: Optional[Callable[[str, str, str], Optional[str]]] = None
        self.calls: Counter = Counter()
        self._lock = threading.Lock()

    def _call(self, operation: str) -> None:
        with self._lock:
            self.calls[operation] += 1
        if self.fail:
            raise RemoteStoreError(f"{operation}: remote unreachable", operation=operation)

    def list_domains(self):
        self._call("list_domains")
        return set(self.domains)

    def create_domain(self, domain):
        self._call("create_domain")
        self.domains.add(domain)

    def get_attribute(self, domain, namespace, key):
        self._call("get_attribute")
        if self.on_get is not None:
            return self.on_get(domain, namespace, key)
        return self.data.get((domain, namespace, key))

    def put_attribute(self, domain, namespace, key, value, replace=True):
        self._call("put_attribute")
        self.data[(domain, namespace, key)] = value


class CountingSnapshotStore(SnapshotStore):
    """SnapshotStore that counts loads and can slow them down."""

    def __init__(self, directory, load_delay: float = 0.0):
        super().__init__(directory)
        self.load_delay = load_delay
        self.load_calls = 0
        self._lock = threading.Lock()

    def load(self, namespace):
        with self._lock:
            self.load_calls += 1
        if self.load_delay:
            time.sleep(self.load_delay)
        return super().load(namespace)


@pytest.fixture
def remote():
    return FakeRemoteStore()


@pytest.fixture
def snapshot_dir(tmp_path):
    return tmp_path / "snapshots"


@pytest.fixture
def make_cache(remote, snapshot_dir):
    """Factory for TieredCache instances, closed after the test."""
    caches = []

    def factory(**kwargs):
        kwargs.setdefault("snapshots", SnapshotStore(snapshot_dir))
        cache = TieredCache(kwargs.pop("remote", remote), **kwargs)
        caches.append(cache)
        return cache

    yield factory

    for cache in caches:
        cache.close(wait=True, timeout=5.0)
