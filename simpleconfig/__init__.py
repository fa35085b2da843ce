"""
simpleconfig - resilient configuration values backed by a remote key-value store

Keeps a local copy of every value it sees, so reads keep working while the
remote store is unreachable.
"""

from .cache import AggregatedStats, SnapshotStore, TieredCache, create_cache
from .errors import RemoteStoreError, SimpleConfigError, SnapshotUnavailable
from .remote import HttpRemoteStore, InMemoryRemoteStore, RemoteStore

__all__ = [
    "TieredCache",
    "create_cache",
    "AggregatedStats",
    "SnapshotStore",
    "RemoteStore",
    "HttpRemoteStore",
    "InMemoryRemoteStore",
    "SimpleConfigError",
    "RemoteStoreError",
    "SnapshotUnavailable",
]

__version__ = "1.0.0"
