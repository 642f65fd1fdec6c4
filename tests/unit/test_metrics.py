"""Unit tests for bleedserve/utils/metrics.py — MetricsAggregator."""

from __future__ import annotations

import threading

import pytest

from bleedserve.utils.metrics import MetricsAggregator


class TestMetricsAggregator:
    def test_all_counters_start_at_zero(self) -> None:
        assert dict(MetricsAggregator().snapshot()) == {
            "total": 0,
            "vulnerable": 0,
            "safe": 0,
            "error": 0,
            "cached": 0,
        }

    def test_increment(self) -> None:
        metrics = MetricsAggregator()
        metrics.increment("safe")
        metrics.increment("safe")
        assert metrics.get("safe") == 2

    def test_unknown_counter_created_on_first_use(self) -> None:
        metrics = MetricsAggregator()
        metrics.increment("other")
        assert metrics.snapshot()["other"] == 1

    def test_snapshot_is_immutable(self) -> None:
        snap = MetricsAggregator().snapshot()
        with pytest.raises(TypeError):
            snap["total"] = 5  # type: ignore[index]

    def test_snapshot_is_a_copy(self) -> None:
        metrics = MetricsAggregator()
        snap = metrics.snapshot()
        metrics.increment("total")
        assert snap["total"] == 0
        assert metrics.snapshot()["total"] == 1

    def test_no_lost_updates_across_threads(self) -> None:
        metrics = MetricsAggregator()
        per_thread = 5_000
        threads = [
            threading.Thread(target=lambda: [metrics.increment("total") for _ in range(per_thread)])
            for _ in range(8)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert metrics.get("total") == 8 * per_thread
