"""Unit tests for LocalSQLiteCache — schema, WAL, version guard, expiry, pruning."""

from __future__ import annotations

import asyncio
from typing import Any

import aiosqlite
import pytest

from bleedserve.cache.protocol import CacheEntry, CacheReadError, CacheStore, CacheWriteError
from bleedserve.cache.pruner import run_expiry_pruner
from bleedserve.cache.sqlite_backend import LocalSQLiteCache
from bleedserve.models.scan import Classification


async def _open(tmp_path: Any, clock) -> LocalSQLiteCache:
    cache = LocalSQLiteCache(db_path=str(tmp_path / "cache.db"), clock=clock)
    await cache.initialize()
    return cache


class TestSchema:
    async def test_fresh_db_sets_user_version(self, tmp_path, clock) -> None:
        cache = await _open(tmp_path, clock)
        await cache.close()

        async with aiosqlite.connect(str(tmp_path / "cache.db")) as db:
            cursor = await db.execute("PRAGMA user_version;")
            row = await cursor.fetchone()
            assert row[0] == 1

    async def test_wal_mode_enabled(self, tmp_path, clock) -> None:
        cache = await _open(tmp_path, clock)
        await cache.close()

        async with aiosqlite.connect(str(tmp_path / "cache.db")) as db:
            cursor = await db.execute("PRAGMA journal_mode;")
            row = await cursor.fetchone()
            assert row[0] == "wal"

    async def test_creates_parent_directory(self, tmp_path, clock) -> None:
        cache = LocalSQLiteCache(db_path=str(tmp_path / "a" / "b" / "cache.db"), clock=clock)
        await cache.initialize()
        await cache.close()
        assert (tmp_path / "a" / "b" / "cache.db").exists()

    async def test_reinit_keeps_entries(self, tmp_path, clock) -> None:
        cache = await _open(tmp_path, clock)
        await cache.put(CacheEntry("example.com", Classification.SAFE, clock(), 600))
        await cache.close()

        cache2 = await _open(tmp_path, clock)
        entry = await cache2.get("example.com")
        await cache2.close()
        assert entry is not None
        assert entry.classification is Classification.SAFE

    async def test_version_mismatch_raises(self, tmp_path, clock) -> None:
        async with aiosqlite.connect(str(tmp_path / "cache.db")) as db:
            await db.execute("PRAGMA user_version = 7;")
            await db.commit()

        cache = LocalSQLiteCache(db_path=str(tmp_path / "cache.db"), clock=clock)
        with pytest.raises(RuntimeError, match="schema version: 7"):
            await cache.initialize()

    def test_satisfies_protocol(self, tmp_path) -> None:
        assert isinstance(LocalSQLiteCache(str(tmp_path / "x.db")), CacheStore)


class TestReadWrite:
    async def test_round_trip_every_classification(self, tmp_path, clock) -> None:
        cache = await _open(tmp_path, clock)
        for classification in Classification:
            host = f"{classification.name.lower()}.example"
            await cache.put(CacheEntry(host, classification, clock(), 600))
            entry = await cache.get(host)
            assert entry is not None
            assert entry.classification is classification
        await cache.close()

    async def test_last_write_wins(self, tmp_path, clock) -> None:
        cache = await _open(tmp_path, clock)
        await cache.put(CacheEntry("example.com", Classification.ERROR, clock(), 600))
        await cache.put(CacheEntry("example.com", Classification.VULNERABLE, clock(), 600))
        entry = await cache.get("example.com")
        await cache.close()
        assert entry is not None
        assert entry.classification is Classification.VULNERABLE

    async def test_expired_entry_not_returned(self, tmp_path, clock) -> None:
        cache = await _open(tmp_path, clock)
        await cache.put(CacheEntry("example.com", Classification.SAFE, clock(), 60))
        clock.advance(60)
        assert await cache.get("example.com") is None
        await cache.close()

    async def test_get_before_initialize_raises_read_error(self, tmp_path) -> None:
        cache = LocalSQLiteCache(db_path=str(tmp_path / "cache.db"))
        with pytest.raises(CacheReadError):
            await cache.get("example.com")

    async def test_put_before_initialize_raises_write_error(self, tmp_path) -> None:
        cache = LocalSQLiteCache(db_path=str(tmp_path / "cache.db"))
        with pytest.raises(CacheWriteError):
            await cache.put(CacheEntry("example.com", Classification.SAFE, 0.0, 60))


class TestPrune:
    async def test_prune_deletes_only_expired(self, tmp_path, clock) -> None:
        cache = await _open(tmp_path, clock)
        await cache.put(CacheEntry("old", Classification.SAFE, clock(), 10))
        await cache.put(CacheEntry("new", Classification.SAFE, clock(), 1000))
        clock.advance(10)

        assert await cache.prune_expired() == 1
        assert await cache.get("new") is not None
        await cache.close()

    async def test_pruner_task_cancels_cleanly(self, tmp_path, clock) -> None:
        cache = await _open(tmp_path, clock)
        task = asyncio.create_task(run_expiry_pruner(cache, interval_s=0.01))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        await cache.close()

    async def test_pruner_survives_errors(self, tmp_path, clock) -> None:
        cache = LocalSQLiteCache(db_path=str(tmp_path / "cache.db"), clock=clock)
        # never initialized: every prune fails, the loop keeps running
        task = asyncio.create_task(run_expiry_pruner(cache, interval_s=0.01))
        await asyncio.sleep(0.05)
        assert not task.done()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
