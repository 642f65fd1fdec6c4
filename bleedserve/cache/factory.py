"""Cache backend factory — backend selection and initialization.

Backend selection (cache.backend in config.yaml):
  - "memory" → MemoryCacheStore (default; verdicts lost on restart)
  - "sqlite" → LocalSQLiteCache at cache.path

Path override for the sqlite backend: BLEEDSERVE_CACHE_DB_PATH environment
variable wins over cache.path.

LocalSQLiteCache.initialize() raises RuntimeError on an incompatible schema
version. The lifespan lets it propagate so the process refuses to start.
"""

from __future__ import annotations

import os

from bleedserve.cache.protocol import CacheStore, MemoryCacheStore
from bleedserve.config import Config
from bleedserve.utils.logger import get_logger

logger = get_logger(__name__)

_ENV_CACHE_DB_PATH = "BLEEDSERVE_CACHE_DB_PATH"


async def create_cache_store(config: Config) -> CacheStore:
    """Create and initialize the configured cache backend.

    Raises:
        RuntimeError: If the sqlite schema version is incompatible.
    """
    if config.cache.backend == "sqlite":
        return await _create_local_sqlite_cache(config)

    logger.info("cache_backend_selected", backend="MemoryCacheStore")
    return MemoryCacheStore()


async def _create_local_sqlite_cache(config: Config) -> CacheStore:
    from bleedserve.cache.sqlite_backend import LocalSQLiteCache

    db_path = os.getenv(_ENV_CACHE_DB_PATH, config.cache.path)
    backend = LocalSQLiteCache(db_path=db_path)
    await backend.initialize()

    logger.info(
        "cache_backend_selected",
        backend="LocalSQLiteCache",
        db_path=backend.db_path,
    )
    return backend
