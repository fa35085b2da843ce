"""Remote store implementations."""

from .http_store import HttpRemoteStore
from .interface import RemoteStore, RemoteStoreError
from .memory_store import InMemoryRemoteStore

__all__ = [
    "RemoteStore",
    "RemoteStoreError",
    "HttpRemoteStore",
    "InMemoryRemoteStore",
]
