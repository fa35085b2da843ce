"""
远程存储接口定义

The remote store is the authoritative copy of every configuration value.
Its data model follows a SimpleDB-style layout:

    domain (selected by `env`) -> item (namespace) -> attribute (key) = value
"""

from typing import Optional, Protocol, Set, runtime_checkable

from ..errors import RemoteStoreError

__all__ = ["RemoteStore", "RemoteStoreError"]


@runtime_checkable
class RemoteStore(Protocol):
    """
    远程键值存储协议

    Every method may raise RemoteStoreError. Callers do not distinguish
    timeouts, authentication failures and network partitions.
    """

    def list_domains(self) -> Set[str]:
        """Names of every domain in the store."""
        ...

    def create_domain(self, domain: str) -> None:
        """Create a domain. Creating an existing domain is a no-op."""
        ...

    def get_attribute(self, domain: str, namespace: str, key: str) -> Optional[str]:
        """
        Read one attribute

        Returns:
            The value, or None when the attribute does not exist
        """
        ...

    def put_attribute(
        self,
        domain: str,
        namespace: str,
        key: str,
        value: str,
        replace: bool = True
    ) -> None:
        """
        Write one attribute

        Args:
            replace: Overwrite an existing value instead of adding another one
        """
        ...
