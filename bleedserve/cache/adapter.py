"""CacheAdapter — the orchestrator's view of the verdict cache.

Two operations:
  check(host) → Classification | None   read failures count as a miss
  set(host, classification)             applies the configured TTL;
                                        raises CacheWriteError on failure

No invalidation, no read-modify-write atomicity, and no single-flight: two
concurrent misses for the same host both probe and both write.
"""

from __future__ import annotations

import time
from typing import Callable, Optional

from bleedserve.cache.protocol import CacheEntry, CacheError, CacheStore, CacheWriteError
from bleedserve.constants import DEFAULT_CACHE_TTL_S
from bleedserve.models.scan import Classification
from bleedserve.utils.logger import get_logger

logger = get_logger(__name__)


class CacheAdapter:
    """Wraps a CacheStore with TTL handling and failure folding.

    Args:
        store: Backend implementing the CacheStore protocol.
        ttl_s: Lifetime applied to every write (default 10 minutes).
        clock: Source of epoch seconds for written_at.
    """

    def __init__(
        self,
        store: CacheStore,
        ttl_s: float = DEFAULT_CACHE_TTL_S,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if ttl_s <= 0:
            raise ValueError(f"ttl_s must be positive, got {ttl_s}")
        self._store = store
        self._ttl_s = ttl_s
        self._clock = clock

    @property
    def ttl_s(self) -> float:
        return self._ttl_s

    async def check(self, host_identity: str) -> Optional[Classification]:
        """Return the cached verdict for host_identity, or None on a miss.

        A backend failure is logged and reported as a miss so the request
        falls through to a live probe.
        """
        try:
            entry = await self._store.get(host_identity)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "cache_read_failed",
                host=host_identity,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return None
        if entry is None:
            return None
        return entry.classification

    async def set(self, host_identity: str, classification: Classification) -> None:
        """Store a verdict for ttl_s seconds.

        Raises:
            CacheWriteError: If the backend could not store the entry.
        """
        entry = CacheEntry(
            host_identity=host_identity,
            classification=classification,
            written_at=self._clock(),
            ttl_s=self._ttl_s,
        )
        try:
            await self._store.put(entry)
        except CacheWriteError:
            raise
        except CacheError as exc:
            raise CacheWriteError(str(exc)) from exc
        except Exception as exc:
            raise CacheWriteError(f"{type(exc).__name__}: {exc}") from exc
