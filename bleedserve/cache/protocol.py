"""CacheStore Protocol, CacheEntry, cache errors, and the in-memory backend.

Layout:
    protocol.py       — CacheStore Protocol + CacheEntry + errors + MemoryCacheStore
    sqlite_backend.py — LocalSQLiteCache (aiosqlite, durable)
    pruner.py         — run_expiry_pruner() — periodic prune_expired() sweep
    factory.py        — create_cache_store() — backend selection from config
    adapter.py        — CacheAdapter (check/set with the configured TTL)

Entries expire on their own after ttl_s; there is no delete API. A later
write for the same host replaces the earlier one (last write wins).
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, runtime_checkable

from bleedserve.constants import DEFAULT_MEMORY_CACHE_MAX_ENTRIES
from bleedserve.models.scan import Classification
from bleedserve.utils.logger import get_logger

logger = get_logger(__name__)


# ─── Errors ───────────────────────────────────────────────────────────────────


class CacheError(Exception):
    """Base class for cache backend failures."""


class CacheReadError(CacheError):
    """A lookup could not be completed."""


class CacheWriteError(CacheError):
    """A verdict could not be stored."""


# ─── CacheEntry ───────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class CacheEntry:
    """One cached verdict.

    written_at is epoch seconds (time.time()); the entry is live while
    ``now < written_at + ttl_s``.
    """

    host_identity: str
    classification: Classification
    written_at: float
    ttl_s: float

    @property
    def expires_at(self) -> float:
        return self.written_at + self.ttl_s

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


# ─── CacheStore Protocol ──────────────────────────────────────────────────────


@runtime_checkable
class CacheStore(Protocol):
    """Pluggable verdict store.

    Implementations: MemoryCacheStore (default), LocalSQLiteCache.
    Selection via create_cache_store() (cache/factory.py).

    get() must never return an expired entry. Concurrent get/put on the same
    key must not corrupt anything, but get-then-put is not atomic.
    """

    async def get(self, host_identity: str) -> Optional[CacheEntry]:
        """Return the live entry for host_identity, or None. Raises CacheReadError."""
        ...

    async def put(self, entry: CacheEntry) -> None:
        """Store entry, replacing any previous one. Raises CacheWriteError."""
        ...

    async def prune_expired(self) -> int:
        """Delete every expired entry. Returns how many were removed."""
        ...

    async def close(self) -> None:
        """Clean up connections and resources. Called during graceful shutdown."""
        ...


# ─── MemoryCacheStore ────────────────────────────────────────────────────────


class MemoryCacheStore:
    """Process-local CacheStore backed by an insertion-ordered dict.

    All access happens on the event loop and no method awaits between reading
    and writing the dict, so individual calls are atomic.

    Memory stays bounded two ways:
      - prune_expired() drops every expired entry (run_expiry_pruner calls it)
      - at most max_entries live entries; a put beyond that first sweeps
        expired entries, then evicts the oldest write

    Args:
        clock:       Source of epoch seconds. Tests inject a fake clock.
        max_entries: Size cap.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        max_entries: int = DEFAULT_MEMORY_CACHE_MAX_ENTRIES,
    ) -> None:
        if max_entries <= 0:
            raise ValueError(f"max_entries must be positive, got {max_entries}")
        self._entries: dict[str, CacheEntry] = {}
        self._clock = clock
        self._max_entries = max_entries

    async def get(self, host_identity: str) -> Optional[CacheEntry]:
        entry = self._entries.get(host_identity)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[host_identity]
            return None
        return entry

    async def put(self, entry: CacheEntry) -> None:
        # Re-insert so dict order stays oldest-write-first.
        self._entries.pop(entry.host_identity, None)
        if len(self._entries) >= self._max_entries:
            self._sweep()
        while len(self._entries) >= self._max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            logger.debug("memory_cache_evicted", host=oldest)
        self._entries[entry.host_identity] = entry

    async def prune_expired(self) -> int:
        removed = self._sweep()
        if removed:
            logger.info("cache_prune_complete", deleted_count=removed, remaining=len(self))
        return removed

    async def close(self) -> None:
        logger.debug("memory_cache_closed", entries=len(self._entries))
        self._entries.clear()

    def _sweep(self) -> int:
        now = self._clock()
        expired = [host for host, entry in self._entries.items() if entry.is_expired(now)]
        for host in expired:
            del self._entries[host]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


assert isinstance(MemoryCacheStore(), CacheStore), (
    "MemoryCacheStore does not satisfy CacheStore protocol — implementation error"
)
