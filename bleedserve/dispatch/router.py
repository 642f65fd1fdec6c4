"""Classification endpoints.

Routes:
    GET /bleed/query?u=<host-or-url>&skip=<any>  — query form
    GET /bleed/{host}                            — path form, skip forced on

The dispatcher only turns a request into (Target, skip), hands it to
app.state.orchestrator and serializes the ScanResult. It never touches the
cache or the metrics directly.

Query form rules:
  - ``u`` must appear exactly once. Otherwise the handler does nothing and
    returns an empty 200 body (kept as-is, clients rely on it).
  - ``skip`` appearing exactly once, with any value, means skip=True.
  - ``u`` is parsed as a URL. If it has a network location, its host (with
    port, without userinfo) becomes the identity and its scheme, if any,
    becomes the service. Otherwise ``u`` is used literally with "https".

Every classification response is 200 with
``{"code": 0|1|2, "data": "", "error": "...", "host": "..."}``.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlsplit

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from bleedserve.constants import DEFAULT_SERVICE
from bleedserve.models.scan import ScanResult, Target
from bleedserve.scanner.orchestrator import ClassificationOrchestrator
from bleedserve.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/bleed", tags=["bleed"])

_CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}


# ─── Parsing ──────────────────────────────────────────────────────────────────


def parse_target(raw: str) -> Target:
    """Build a Target from a bare host or a URL.

    >>> parse_target("https://example.com:8443/x")
    Target(host_identity='example.com:8443', service='https')
    >>> parse_target("example.com")
    Target(host_identity='example.com', service='https')
    """
    try:
        parts = urlsplit(raw)
    except ValueError:
        return Target(host_identity=raw, service=DEFAULT_SERVICE)

    host = parts.netloc.rpartition("@")[2]
    if not host:
        return Target(host_identity=raw, service=DEFAULT_SERVICE)
    return Target(host_identity=host, service=parts.scheme or DEFAULT_SERVICE)


def parse_query(request: Request) -> Optional[tuple[Target, bool]]:
    """Return (target, skip) for the query form, or None when ``u`` is unusable."""
    values = request.query_params.getlist("u")
    if len(values) != 1:
        return None
    skip = len(request.query_params.getlist("skip")) == 1
    return parse_target(values[0]), skip


# ─── Handlers ─────────────────────────────────────────────────────────────────


async def _classify(request: Request, target: Target, skip: bool) -> JSONResponse:
    orchestrator: ClassificationOrchestrator = request.app.state.orchestrator
    result: ScanResult = await orchestrator.classify(target, skip)
    return JSONResponse(content=result.to_dict(), headers=_CORS_HEADERS)


@router.get("/query")
async def bleed_query(request: Request) -> Response:
    """Classify the host named by ``u``."""
    parsed = parse_query(request)
    if parsed is None:
        logger.debug("bleed_query_ignored", u_count=len(request.query_params.getlist("u")))
        return Response(status_code=200)
    target, skip = parsed
    return await _classify(request, target, skip)


@router.get("/{host:path}")
async def bleed_path(host: str, request: Request) -> Response:
    """Classify ``host`` taken verbatim from the path; skip is always on."""
    return await _classify(request, Target(host_identity=host, service=DEFAULT_SERVICE), True)
