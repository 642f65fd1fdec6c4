"""Background sweep of expired verdicts.

Both backends hide expired entries from get(), but only a sweep actually
frees them. Hosts that are never asked about again would otherwise stay in
the store for the life of the process (memory) or the file (sqlite).
"""

from __future__ import annotations

import asyncio

from bleedserve.cache.protocol import CacheStore
from bleedserve.constants import DEFAULT_CACHE_PRUNE_INTERVAL_S
from bleedserve.utils.logger import get_logger

logger = get_logger(__name__)


async def run_expiry_pruner(
    store: CacheStore,
    interval_s: float = DEFAULT_CACHE_PRUNE_INTERVAL_S,
) -> None:
    """Call store.prune_expired() every interval_s seconds, forever.

    Started with asyncio.create_task() during lifespan startup and cancelled
    on shutdown. Errors are logged and the loop keeps going.
    """
    if interval_s <= 0:
        raise ValueError(f"interval_s must be positive, got {interval_s}")
    while True:
        try:
            await asyncio.sleep(interval_s)
            await store.prune_expired()
        except asyncio.CancelledError:
            logger.info("cache_pruner_cancelled")
            raise
        except Exception as exc:
            logger.error(
                "cache_prune_error",
                error=str(exc),
                error_type=type(exc).__name__,
                retry_in_seconds=interval_s,
            )
