"""Root test configuration for bleedserve.

Provides:
  - FakeProber — scripted Prober that records every call
  - FakeClock  — settable epoch clock for TTL tests
  - fixtures wiring an orchestrator to a MemoryCacheStore
  - make_client() — TestClient with app.state set by hand (no lifespan)
"""

from __future__ import annotations

from typing import Optional

import pytest
from fastapi.testclient import TestClient

from bleedserve.cache.adapter import CacheAdapter
from bleedserve.cache.protocol import MemoryCacheStore
from bleedserve.config import Config
from bleedserve.models.scan import Target
from bleedserve.prober.protocol import ProbeOutcome
from bleedserve.scanner.orchestrator import ClassificationOrchestrator
from bleedserve.utils.metrics import MetricsAggregator


class FakeProber:
    """Prober returning a fixed outcome (or raising a fixed exception)."""

    def __init__(
        self,
        outcome: Optional[ProbeOutcome] = None,
        exc: Optional[BaseException] = None,
    ) -> None:
        self.outcome = outcome or ProbeOutcome.vulnerable()
        self.exc = exc
        self.calls: list[tuple[Target, bytes, bool]] = []
        self.closed = False

    async def probe(self, target: Target, payload: bytes, skip: bool) -> ProbeOutcome:
        self.calls.append((target, payload, skip))
        if self.exc is not None:
            raise self.exc
        return self.outcome

    async def close(self) -> None:
        self.closed = True


class FakeClock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> MemoryCacheStore:
    return MemoryCacheStore(clock=clock)


@pytest.fixture
def metrics() -> MetricsAggregator:
    return MetricsAggregator()


@pytest.fixture
def prober() -> FakeProber:
    return FakeProber()


@pytest.fixture
def orchestrator(
    prober: FakeProber,
    store: MemoryCacheStore,
    metrics: MetricsAggregator,
    clock: FakeClock,
) -> ClassificationOrchestrator:
    return ClassificationOrchestrator(
        prober=prober,
        cache=CacheAdapter(store, ttl_s=600, clock=clock),
        metrics=metrics,
    )


def make_client(orchestrator: ClassificationOrchestrator, config: Optional[Config] = None) -> TestClient:
    """TestClient WITHOUT the context manager: the lifespan does not run,
    app.state stays exactly as set here."""
    from bleedserve.main import create_app

    app = create_app()
    app.state.config = config or Config.defaults()
    app.state.metrics = orchestrator.metrics
    app.state.orchestrator = orchestrator
    return TestClient(app, raise_server_exceptions=False, follow_redirects=False)


@pytest.fixture
def client(orchestrator: ClassificationOrchestrator) -> TestClient:
    return make_client(orchestrator)


@pytest.fixture
def client_factory():
    return make_client
