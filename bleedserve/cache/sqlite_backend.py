"""LocalSQLiteCache — aiosqlite-based durable verdict cache.

Uses aiosqlite EXCLUSIVELY. The stdlib sqlite3 synchronous module would block
the event loop and is not used anywhere in bleedserve/cache/.

Features:
  - WAL mode: PRAGMA journal_mode=WAL (concurrent reads while writing)
  - Schema version guard: PRAGMA user_version=1, RuntimeError on mismatch
  - Long-lived connection: opened in initialize(), closed in close()
  - Last write wins: INSERT OR REPLACE keyed on host_identity
  - Expired rows are never returned; prune_expired() deletes them
    (driven by cache/pruner.py)
"""

from __future__ import annotations

import os
import time
from typing import Callable, Optional

import aiosqlite

from bleedserve.cache.protocol import CacheEntry, CacheReadError, CacheWriteError
from bleedserve.models.scan import Classification
from bleedserve.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Schema DDL ───────────────────────────────────────────────────────────────

_CREATE_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS verdicts (
    host_identity   TEXT PRIMARY KEY,
    classification  INTEGER NOT NULL CHECK(classification IN (0, 1, 2)),
    written_at      REAL NOT NULL,
    ttl_s           REAL NOT NULL,
    expires_at      REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_verdicts_expires_at
    ON verdicts(expires_at);
"""

_SCHEMA_VERSION = 1


def _row_to_entry(row: aiosqlite.Row) -> CacheEntry:
    return CacheEntry(
        host_identity=row["host_identity"],
        classification=Classification(row["classification"]),
        written_at=row["written_at"],
        ttl_s=row["ttl_s"],
    )


# ─── LocalSQLiteCache ─────────────────────────────────────────────────────────


class LocalSQLiteCache:
    """Async SQLite CacheStore using aiosqlite exclusively.

    Default path: ~/.bleedserve/cache.db (cache.path in config.yaml).
    Pass db_path explicitly in tests.

    Usage:
        cache = LocalSQLiteCache("/tmp/cache.db")
        await cache.initialize()   # raises RuntimeError on schema version mismatch
        await cache.put(entry)
        entry = await cache.get("example.com")
        await cache.close()
    """

    def __init__(
        self,
        db_path: str = "~/.bleedserve/cache.db",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._db_path: str = os.path.expanduser(db_path)
        self._db: Optional[aiosqlite.Connection] = None
        self._clock = clock

    @property
    def db_path(self) -> str:
        return self._db_path

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    async def initialize(self) -> None:
        """Open the connection, enable WAL mode, and create/verify the schema.

        PRAGMA user_version:
          - 0: fresh DB → create schema, set user_version=1
          - 1: compatible schema → no-op
          - other: RuntimeError, the lifespan refuses to start

        Raises:
            RuntimeError: If PRAGMA user_version is neither 0 nor 1.
        """
        parent_dir = os.path.dirname(self._db_path)
        if parent_dir:
            os.makedirs(parent_dir, exist_ok=True)

        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row

        await self._db.execute("PRAGMA journal_mode=WAL;")

        cursor = await self._db.execute("PRAGMA user_version;")
        row = await cursor.fetchone()
        current_version: int = row[0] if row else 0

        if current_version == 0:
            await self._db.executescript(_CREATE_SCHEMA_SQL)
            await self._db.execute(f"PRAGMA user_version = {_SCHEMA_VERSION};")
            await self._db.commit()
            logger.info(
                "cache_db_schema_created",
                db_path=self._db_path,
                schema_version=_SCHEMA_VERSION,
            )
        elif current_version == _SCHEMA_VERSION:
            logger.info(
                "cache_db_schema_ok",
                db_path=self._db_path,
                schema_version=current_version,
            )
        else:
            await self._db.close()
            self._db = None
            raise RuntimeError(
                f"Unsupported cache database schema version: {current_version}. "
                f"Delete {self._db_path} to reset the verdict cache."
            )

    async def close(self) -> None:
        """Close the aiosqlite connection gracefully."""
        if self._db is not None:
            await self._db.close()
            self._db = None
            logger.debug("cache_db_closed", db_path=self._db_path)

    # ── CacheStore Protocol Methods ───────────────────────────────────────────

    async def get(self, host_identity: str) -> Optional[CacheEntry]:
        """Return the live entry for host_identity, or None when absent/expired."""
        try:
            assert self._db is not None, "Database not initialized — call initialize() first"
            cursor = await self._db.execute(
                "SELECT * FROM verdicts WHERE host_identity = ? AND expires_at > ?",
                (host_identity, self._clock()),
            )
            row = await cursor.fetchone()
        except Exception as exc:
            raise CacheReadError(f"{type(exc).__name__}: {exc}") from exc
        return _row_to_entry(row) if row is not None else None

    async def put(self, entry: CacheEntry) -> None:
        """Store entry with INSERT OR REPLACE (last write wins)."""
        try:
            assert self._db is not None, "Database not initialized — call initialize() first"
            await self._db.execute(
                """INSERT OR REPLACE INTO verdicts
                   (host_identity, classification, written_at, ttl_s, expires_at)
                   VALUES (?,?,?,?,?)""",
                (
                    entry.host_identity,
                    int(entry.classification),
                    entry.written_at,
                    entry.ttl_s,
                    entry.expires_at,
                ),
            )
            await self._db.commit()
        except Exception as exc:
            raise CacheWriteError(f"{type(exc).__name__}: {exc}") from exc

    async def prune_expired(self) -> int:
        """Delete rows whose expiry has passed. Returns count of deleted rows.

        Rows with expires_at == now are deleted (they are already unreadable).
        """
        assert self._db is not None, "Database not initialized"
        cursor = await self._db.execute(
            "DELETE FROM verdicts WHERE expires_at <= ?",
            (self._clock(),),
        )
        await self._db.commit()
        count: int = cursor.rowcount  # type: ignore[assignment]
        if count > 0:
            logger.info("cache_prune_complete", deleted_count=count)
        return count
