"""Operational endpoints for bleedserve.

Implements:
  GET /status  — literal ``OK`` (load balancer health checks poll this)
  GET /metrics — MetricsAggregator snapshot as a flat JSON object

/metrics never fails: if the snapshot cannot be serialized, the error is
logged and the body is ``{}``.
"""

from __future__ import annotations

import json

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse, Response

from bleedserve.utils.logger import get_logger
from bleedserve.utils.metrics import MetricsAggregator

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/status")
async def status() -> PlainTextResponse:
    """Liveness check. Always ``OK``."""
    return PlainTextResponse("OK")


@router.get("/metrics")
async def metrics(request: Request) -> Response:
    """Counter snapshot: ``{"total": n, "vulnerable": n, "safe": n, "error": n, "cached": n}``."""
    aggregator: MetricsAggregator = request.app.state.metrics
    try:
        body = json.dumps(dict(aggregator.snapshot()))
    except (TypeError, ValueError) as exc:
        logger.error("metrics_report_failed", error=str(exc), error_type=type(exc).__name__)
        body = "{}"
    return Response(content=body, media_type="application/json")
