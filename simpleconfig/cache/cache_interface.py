"""
Cache Interface - Keys, entries and statistics shared by the cache layers
缓存层公共数据类型

This module provides:
    - CacheKey: composite (namespace, key) identifier
    - Present / Negative: the two resolved states of a cache entry
    - CacheStats: memory layer statistics
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, NamedTuple, Optional, Union

# Must not appear in a namespace or key name
RESERVED_CHAR = "\x00"


class CacheKey(NamedTuple):
    """
    Composite cache key

    Attributes:
        namespace: Logical configuration bucket (remote item name)
        key: Key name inside the namespace (remote attribute name)
    """
    namespace: str
    key: str


@dataclass(frozen=True)
class Present:
    """
    Resolved entry holding a known value
    已知值

    Attributes:
        value: The configuration value
        source: Where the value came from ("write", "remote" or "snapshot")
        resolved_at: When the value entered memory
    """
    value: str
    source: str = field(default="remote", compare=False)
    resolved_at: datetime = field(default_factory=datetime.now, compare=False)


@dataclass(frozen=True)
class Negative:
    """
    Resolved entry meaning "confirmed absent"
    负缓存条目

    Distinct from an unresolved key, which simply has no entry in memory.
    """

    @property
    def value(self) -> None:
        return None


NEGATIVE = Negative()

CacheEntry = Union[Present, Negative]


def build_cache_key(namespace: str, key: str) -> CacheKey:
    return CacheKey(namespace, key)


def validate_name(name: str, what: str = "name") -> None:
    """Reject names containing the reserved character."""
    if not isinstance(name, str):
        raise TypeError(f"{what} must be a string, got {type(name).__name__}")
    if RESERVED_CHAR in name:
        raise ValueError(f"{what} must not contain the reserved character U+0000: {name!r}")


@dataclass
class CacheStats:
    """
    Memory cache statistics
    内存缓存统计信息
    """
    hits: int = 0
    negative_hits: int = 0
    misses: int = 0
    current_size: int = 0
    negative_entries: int = 0
    total_writes: int = 0
    total_clears: int = 0
    last_cleared_at: Optional[datetime] = None

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.negative_hits + self.misses
        if total == 0:
            return 0.0
        return (self.hits + self.negative_hits) / total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "negative_hits": self.negative_hits,
            "misses": self.misses,
            "current_size": self.current_size,
            "negative_entries": self.negative_entries,
            "total_writes": self.total_writes,
            "total_clears": self.total_clears,
            "last_cleared_at": self.last_cleared_at.isoformat() if self.last_cleared_at else None,
            "hit_rate": self.hit_rate,
        }
