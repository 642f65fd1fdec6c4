"""bleedserve verdict cache package.

Re-exports the public API:

    from bleedserve.cache import CacheAdapter, CacheEntry, CacheStore

Layout:
    protocol.py       — CacheStore Protocol + CacheEntry + errors + MemoryCacheStore
    sqlite_backend.py — LocalSQLiteCache (aiosqlite, WAL mode)
    pruner.py         — run_expiry_pruner() — periodic sweep for either backend
    factory.py        — create_cache_store() — backend selection from config
    adapter.py        — CacheAdapter — TTL + failure folding for the orchestrator
"""

from bleedserve.cache.adapter import CacheAdapter
from bleedserve.cache.protocol import (
    CacheEntry,
    CacheError,
    CacheReadError,
    CacheStore,
    CacheWriteError,
    MemoryCacheStore,
)

__all__ = [
    "CacheAdapter",
    "CacheEntry",
    "CacheError",
    "CacheReadError",
    "CacheStore",
    "CacheWriteError",
    "MemoryCacheStore",
]
