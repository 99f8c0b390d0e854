"""Cache engine — sharded TTL byte cache and its error types."""

from cacheserver.cache.engine import (
    CacheConfig,
    CacheEngineError,
    EntryNotFoundError,
    EntryTooLargeError,
    RemoveReason,
    ShardedCache,
    Stats,
)

__all__ = [
    "CacheConfig",
    "CacheEngineError",
    "EntryNotFoundError",
    "EntryTooLargeError",
    "RemoveReason",
    "ShardedCache",
    "Stats",
]
