# Sharded byte cache: one cachetools TTLCache per shard, one lock per shard.
# Entries are stored under a 64-bit key hash; the original key travels with the
# value so hash collisions are detected on read.
# Shard byte budget = hard_max_cache_size (MB) / shards. Oldest entries go first.

from __future__ import annotations

import hashlib
import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, fields
from enum import StrEnum
from typing import Any, NamedTuple

import structlog
from cachetools import TTLCache  # type: ignore[import-untyped]

logger = structlog.get_logger(__name__)

# Per-entry bookkeeping charged against the shard budget (timestamp + hash + key length).
ENTRY_HEADER_SIZE = 18

_MEGABYTE = 1024 * 1024


# ── Errors ───────────────────────────────────────────────────────────────────


class CacheEngineError(Exception):
    """Base exception for cache engine failures."""


class EntryNotFoundError(CacheEngineError):
    """Raised when a key is absent, expired, or shadowed by a hash collision."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Entry not found: '{key}'")


class EntryTooLargeError(CacheEngineError):
    """Raised when an entry cannot fit under the configured size limits."""

    def __init__(self, key: str, size: int, limit: float):
        self.key = key
        self.size = size
        self.limit = limit
        super().__init__(f"Entry '{key}' of {size} bytes exceeds limit of {limit} bytes")


# ── Configuration ────────────────────────────────────────────────────────────


class RemoveReason(StrEnum):
    """Why an entry left the cache, passed to the on_remove callback."""

    EXPIRED = "expired"
    NO_SPACE = "no_space"
    DELETED = "deleted"


OnRemove = Callable[[str, bytes, RemoveReason], None]


def sha256_hash(key: str) -> int:
    """64-bit key hash: first 8 bytes of SHA-256."""
    return int.from_bytes(hashlib.sha256(key.encode()).digest()[:8], "big")


@dataclass
class CacheConfig:
    """Initialization-time parameters for ShardedCache."""

    shards: int = 1024
    life_window: float = 600.0  # seconds an entry stays readable
    clean_window: float = 0.0  # seconds between background sweeps; 0 = never
    max_entries_in_window: int = 600_000  # 0 = no entry-count limit
    max_entry_size: int = 500  # bytes per value; 0 = unlimited
    hard_max_cache_size: int = 8192  # MB across all shards; 0 = unlimited
    verbose: bool = False
    on_remove: OnRemove | None = None
    hasher: Callable[[str], int] = sha256_hash

    def validate(self) -> None:
        if self.shards <= 0 or self.shards & (self.shards - 1):
            raise ValueError(f"shards must be a positive power of two, got {self.shards}")
        if self.life_window <= 0:
            raise ValueError("life_window must be positive")
        if self.clean_window < 0:
            raise ValueError("clean_window must not be negative")
        for name in ("max_entries_in_window", "max_entry_size", "hard_max_cache_size"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")

    @property
    def shard_byte_budget(self) -> float:
        if not self.hard_max_cache_size:
            return math.inf
        return self.hard_max_cache_size * _MEGABYTE // self.shards

    @property
    def shard_entry_limit(self) -> float:
        if not self.max_entries_in_window:
            return math.inf
        return max(1, math.ceil(self.max_entries_in_window / self.shards))


@dataclass(frozen=True)
class Stats:
    """Cumulative counters since the cache was created."""

    hits: int = 0
    misses: int = 0
    delete_hits: int = 0
    delete_misses: int = 0
    collisions: int = 0

    def __add__(self, other: Stats) -> Stats:
        return Stats(*(getattr(self, f.name) + getattr(other, f.name) for f in fields(self)))


# ── Shard ────────────────────────────────────────────────────────────────────


class _Entry(NamedTuple):
    key: str
    value: bytes


def _entry_size(entry: _Entry) -> int:
    return len(entry.key.encode()) + len(entry.value) + ENTRY_HEADER_SIZE


class _ShardStore(TTLCache):  # type: ignore[misc]
    """TTLCache that reports expirations and capacity evictions."""

    def __init__(
        self,
        maxsize: float,
        ttl: float,
        timer: Callable[[], float],
        notify: Callable[[_Entry, RemoveReason], None],
    ) -> None:
        super().__init__(maxsize=maxsize, ttl=ttl, timer=timer, getsizeof=_entry_size)
        self._notify = notify

    def expire(self, time: float | None = None) -> list[tuple[int, _Entry]]:
        expired = super().expire(time)
        for _, entry in expired:
            self._notify(entry, RemoveReason.EXPIRED)
        return expired  # type: ignore[no-any-return]

    def popitem(self) -> tuple[int, _Entry]:
        hashed, entry = super().popitem()
        self._notify(entry, RemoveReason.NO_SPACE)
        return hashed, entry


class _Shard:
    def __init__(self, config: CacheConfig, timer: Callable[[], float]) -> None:
        self._config = config
        self._entry_limit = config.shard_entry_limit
        self._timer = timer
        self.lock = threading.Lock()
        self.store = self.new_store()

        self.hits = 0
        self.misses = 0
        self.delete_hits = 0
        self.delete_misses = 0
        self.collisions = 0

    def new_store(self) -> _ShardStore:
        return _ShardStore(self._config.shard_byte_budget, self._config.life_window, self._timer, self._removed)

    def _removed(self, entry: _Entry, reason: RemoveReason) -> None:
        if self._config.verbose and reason is not RemoveReason.DELETED:
            logger.debug("cache_entry_evicted", key=entry.key, reason=str(reason))
        if self._config.on_remove is not None:
            self._config.on_remove(entry.key, entry.value, reason)

    def set(self, hashed: int, entry: _Entry) -> None:
        with self.lock:
            if hashed not in self.store:
                self.store.expire()
                while len(self.store) >= self._entry_limit:
                    self.store.popitem()
            self.store[hashed] = entry

    def get(self, hashed: int, key: str) -> bytes | None:
        with self.lock:
            entry = self.store.get(hashed)
            if entry is None:
                self.misses += 1
                return None
            if entry.key != key:
                self.collisions += 1
                self.misses += 1
                if self._config.verbose:
                    logger.debug("cache_key_collision", key=key, stored_key=entry.key, hash=hashed)
                return None
            self.hits += 1
            return entry.value

    def delete(self, hashed: int, key: str) -> bool:
        with self.lock:
            entry = self.store.get(hashed)
            if entry is None or entry.key != key:
                self.delete_misses += 1
                return False
            del self.store[hashed]
            self.delete_hits += 1
            self._removed(entry, RemoveReason.DELETED)
            return True

    def stats(self) -> Stats:
        with self.lock:
            return Stats(self.hits, self.misses, self.delete_hits, self.delete_misses, self.collisions)


# ── Cache ────────────────────────────────────────────────────────────────────


class ShardedCache:
    """Thread-safe sharded in-memory byte cache with TTL and capacity eviction.

    Keys are hashed and routed to ``hash & (shards - 1)``. Each shard holds at
    most ``hard_max_cache_size / shards`` accounted bytes and
    ``max_entries_in_window / shards`` entries; inserting past either limit
    evicts the least recently used entries of that shard.

    The on_remove callback runs under the shard lock and must not call back
    into the cache.
    """

    def __init__(self, config: CacheConfig | None = None, timer: Callable[[], float] = time.monotonic) -> None:
        self.config = config if config is not None else CacheConfig()
        self.config.validate()
        self._hasher = self.config.hasher
        self._mask = self.config.shards - 1
        self._shards = [_Shard(self.config, timer) for _ in range(self.config.shards)]

    def _locate(self, key: str) -> tuple[int, _Shard]:
        hashed = self._hasher(key)
        return hashed, self._shards[hashed & self._mask]

    def set(self, key: str, value: bytes) -> None:
        """Store value under key, overwriting any previous entry."""
        if not key:
            raise ValueError("key must not be empty")
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise TypeError(f"value must be bytes, got {type(value).__name__}")
        entry = _Entry(key, bytes(value))

        max_entry_size = self.config.max_entry_size
        if max_entry_size and len(entry.value) > max_entry_size:
            raise EntryTooLargeError(key, len(entry.value), max_entry_size)

        budget = self.config.shard_byte_budget
        size = _entry_size(entry)
        if size > budget:
            raise EntryTooLargeError(key, size, budget)

        hashed, shard = self._locate(key)
        shard.set(hashed, entry)

    def get(self, key: str) -> bytes:
        """Return the value stored under key or raise EntryNotFoundError."""
        hashed, shard = self._locate(key)
        value = shard.get(hashed, key)
        if value is None:
            raise EntryNotFoundError(key)
        return value

    def delete(self, key: str) -> None:
        """Remove key or raise EntryNotFoundError if it is not present."""
        hashed, shard = self._locate(key)
        if not shard.delete(hashed, key):
            raise EntryNotFoundError(key)

    def stats(self) -> Stats:
        total = Stats()
        for shard in self._shards:
            total += shard.stats()
        return total

    def cleanup(self) -> int:
        """Drop expired entries from every shard. Returns the number removed."""
        removed = 0
        for shard in self._shards:
            with shard.lock:
                removed += len(shard.store.expire())
        if removed:
            logger.debug("cache_cleanup", removed=removed)
        return removed

    def reset(self) -> None:
        """Remove every entry without notifying on_remove. Counters are kept."""
        for shard in self._shards:
            with shard.lock:
                # A fresh store; clear() would report every entry as evicted.
                shard.store = shard.new_store()
        logger.info("cache_reset")

    def capacity(self) -> int:
        """Accounted bytes currently held across all shards."""
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += int(shard.store.currsize)
        return total

    def __len__(self) -> int:
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.store)
        return total

    def describe(self) -> dict[str, Any]:
        """Static configuration summary for startup logs."""
        return {
            "shards": self.config.shards,
            "life_window": self.config.life_window,
            "max_entry_size": self.config.max_entry_size,
            "hard_max_cache_size_mb": self.config.hard_max_cache_size,
            "shard_byte_budget": self.config.shard_byte_budget,
            "shard_entry_limit": self.config.shard_entry_limit,
        }
