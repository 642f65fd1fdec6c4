"""MetricsAggregator — named, monotonic outcome counters.

Counters (all present from startup, starting at 0):
    total       freshly probed requests (cache misses)
    vulnerable  misses classified VULNERABLE
    safe        misses classified SAFE
    error       misses classified ERROR
    cached      requests answered from the cache

Invariant: total == vulnerable + safe + error. Cache hits only bump cached.

Thread-safety:
    increment() and snapshot() take an internal threading.Lock, so the
    aggregator is safe from the event loop and from worker threads alike.
    No increment is ever lost and a snapshot never sees a half-applied update.

Usage::

    metrics = MetricsAggregator()
    metrics.increment("total")
    metrics.snapshot()   # mappingproxy({'total': 1, 'vulnerable': 0, ...})
"""

from __future__ import annotations

import threading
from types import MappingProxyType
from typing import Iterable, Mapping

from bleedserve.constants import METRIC_NAMES


class MetricsAggregator:
    """Lock-protected counter map.

    Args:
        names: Counters pre-registered at zero so /metrics always lists them.
    """

    def __init__(self, names: Iterable[str] = METRIC_NAMES) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, int] = {name: 0 for name in names}

    def increment(self, name: str) -> None:
        """Add one to counter name (created on first use)."""
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + 1

    def snapshot(self) -> Mapping[str, int]:
        """Return an immutable point-in-time copy of every counter."""
        with self._lock:
            copy = dict(self._counters)
        return MappingProxyType(copy)

    def get(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)
