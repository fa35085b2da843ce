"""In-process remote store, for local development and single-process setups."""

import threading
from typing import Dict, Optional, Set

from ..errors import RemoteStoreError
from ..log import log


class InMemoryRemoteStore:
    """
    RemoteStore kept in a dict

    Attributes are single-valued: put_attribute(replace=False) on an existing
    attribute keeps the first value, mirroring a multi-valued store where the
    cache only ever reads one value.
    """

    def __init__(self, domains: Optional[Set[str]] = None):
        self._data: Dict[str, Dict[str, Dict[str, str]]] = {d: {} for d in (domains or ())}
        self._lock = threading.Lock()

    def list_domains(self) -> Set[str]:
        with self._lock:
            return set(self._data)

    def create_domain(self, domain: str) -> None:
        with self._lock:
            if domain not in self._data:
                self._data[domain] = {}
                log.success(f"[MEMORY_REMOTE] Created domain {domain!r}")

    def get_attribute(self, domain: str, namespace: str, key: str) -> Optional[str]:
        with self._lock:
            items = self._data.get(domain)
            if items is None:
                raise RemoteStoreError(f"no such domain: {domain!r}", operation="get_attribute")
            return items.get(namespace, {}).get(key)

    def put_attribute(
        self,
        domain: str,
        namespace: str,
        key: str,
        value: str,
        replace: bool = True
    ) -> None:
        with self._lock:
            items = self._data.get(domain)
            if items is None:
                raise RemoteStoreError(f"no such domain: {domain!r}", operation="put_attribute")
            attributes = items.setdefault(namespace, {})
            if replace or key not in attributes:
                attributes[key] = value
