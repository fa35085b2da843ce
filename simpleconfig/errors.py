"""Exceptions raised by simpleconfig."""

from typing import Optional


class SimpleConfigError(Exception):
    """Base class for every error raised by this package."""
    pass


class RemoteStoreError(SimpleConfigError):
    """
    远程存储不可达或返回错误

    Raised for any failure talking to the remote store: transport errors,
    timeouts, authentication failures and unexpected statuses alike.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        operation: Optional[str] = None,
    ) -> None:
        self.status_code = status_code
        self.operation = operation
        super().__init__(message)


class SnapshotUnavailable(SimpleConfigError):
    """本地快照缺失或无法解析"""

    def __init__(self, namespace: str, reason: str) -> None:
        self.namespace = namespace
        self.reason = reason
        super().__init__(f"snapshot for namespace {namespace!r} unavailable: {reason}")
