"""ClassificationOrchestrator — cache-or-probe decision and verdict mapping.

``classify()`` is the ONLY entry point the HTTP layer uses to obtain a verdict.

INVARIANTS:
  - ``classify()`` ALWAYS returns a ScanResult for a Target. It never raises
    because of the prober or the cache.
  - ScanResult.sanitized_data is ALWAYS "". Probe data is dropped before the
    result is built, whatever branch produced the verdict.
  - A cache hit never calls the prober and only bumps ``cached``.
  - A cache miss bumps ``total`` and exactly one of vulnerable/safe/error.

Signal → verdict:
  SAFE, CLOSED → SAFE (1)
  FAILURE      → ERROR (2), error text echoed to the client
  VULNERABLE   → VULNERABLE (0)
  prober raised → ERROR (2), exception text echoed

Known race (accepted): there is no single-flight. N concurrent misses for the
same host run N probes, count N times, and write N times (last write wins).
"""

from __future__ import annotations

from typing import Optional

from bleedserve.cache.adapter import CacheAdapter
from bleedserve.cache.protocol import CacheWriteError
from bleedserve.constants import (
    METRIC_CACHED,
    METRIC_TOTAL,
    PROBE_FALLBACK_ERROR_TEXT,
    PROBE_MISMATCH_TEXT,
    PROBE_PAYLOAD,
)
from bleedserve.models.scan import Classification, ScanResult, Target
from bleedserve.prober.protocol import ProbeOutcome, Prober, ProbeSignal
from bleedserve.utils.logger import get_logger
from bleedserve.utils.metrics import MetricsAggregator

logger = get_logger(__name__)


def classify_outcome(outcome: ProbeOutcome) -> tuple[Classification, str]:
    """Map a probe outcome to (verdict, error_text).

    error_text is "" unless the verdict is ERROR, in which case it is never empty.
    """
    if outcome.signal in (ProbeSignal.SAFE, ProbeSignal.CLOSED):
        return Classification.SAFE, ""
    if outcome.signal is ProbeSignal.VULNERABLE:
        return Classification.VULNERABLE, ""
    return Classification.ERROR, outcome.error_text or PROBE_FALLBACK_ERROR_TEXT


class ClassificationOrchestrator:
    """Decides, per target, between a cached verdict and a live probe.

    Shared by every request for the lifetime of the process. Holds no
    per-request state.

    Args:
        prober:  Prober used on cache misses.
        cache:   CacheAdapter (TTL already configured).
        metrics: MetricsAggregator shared with the /metrics endpoint.
        payload: Marker sent with each probe.
    """

    def __init__(
        self,
        prober: Prober,
        cache: CacheAdapter,
        metrics: MetricsAggregator,
        payload: bytes = PROBE_PAYLOAD,
    ) -> None:
        self._prober = prober
        self._cache = cache
        self._metrics = metrics
        self._payload = payload

    @property
    def metrics(self) -> MetricsAggregator:
        return self._metrics

    async def classify(self, target: Target, skip: bool) -> ScanResult:
        cached: Optional[Classification] = await self._cache.check(target.host_identity)
        if cached is not None:
            self._metrics.increment(METRIC_CACHED)
            logger.debug(
                "verdict_cached",
                host=target.host_identity,
                code=int(cached),
            )
            return ScanResult(classification=cached, host_identity=target.host_identity)

        logger.info("probe_started", host=target.host_identity, service=target.service)
        outcome = await self._probe(target, skip)
        classification, error_text = classify_outcome(outcome)

        self._metrics.increment(METRIC_TOTAL)
        self._metrics.increment(classification.metric_name)

        try:
            await self._cache.set(target.host_identity, classification)
        except CacheWriteError as exc:
            logger.error(
                "cache_write_failed",
                host=target.host_identity,
                code=int(classification),
                error=str(exc),
            )

        _log_verdict(target, classification, error_text, skip)

        return ScanResult(
            classification=classification,
            host_identity=target.host_identity,
            error_text=error_text,
        )

    async def _probe(self, target: Target, skip: bool) -> ProbeOutcome:
        try:
            return await self._prober.probe(target, self._payload, skip)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "probe_raised",
                host=target.host_identity,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return ProbeOutcome.failure(str(exc) or type(exc).__name__)


def _log_verdict(
    target: Target,
    classification: Classification,
    error_text: str,
    skip: bool,
) -> None:
    if classification is Classification.VULNERABLE:
        logger.warning(
            "probe_verdict",
            verdict="VULNERABLE",
            host=target.host_identity,
            service=target.service,
            skip=skip,
        )
    elif classification is Classification.SAFE:
        logger.info(
            "probe_verdict",
            verdict="SAFE",
            host=target.host_identity,
            service=target.service,
        )
    elif error_text == PROBE_MISMATCH_TEXT:
        logger.info(
            "probe_verdict",
            verdict="MISMATCH",
            host=target.host_identity,
            service=target.service,
        )
    else:
        logger.info(
            "probe_verdict",
            verdict="ERROR",
            host=target.host_identity,
            service=target.service,
            error=error_text,
        )
