"""HttpProber — reaches the heartbeat probe service over HTTP.

The bit-level TLS heartbeat exchange lives in a separate probe service. This
client sends it one probe request and turns the reply into a ProbeOutcome.

Request (POST <prober.endpoint>, JSON):
    {"host": "example.com", "service": "https",
     "payload": "heartbleed.mozilla.com", "skip": true}

Reply (HTTP 200, JSON):
    {"status": "vulnerable" | "safe" | "closed" | "error",
     "data": "<leaked bytes, may be empty>",
     "error": "<description, for status=error>"}

Failure mapping (never raises to the caller):
  - httpx.TimeoutException         → FAILURE "probe timed out: ..."
  - any other httpx.HTTPError      → FAILURE "probe service unreachable: ..."
  - non-200 status                 → FAILURE "probe service returned HTTP <n>"
  - undecodable / unknown status   → FAILURE "malformed probe reply: ..."

The shared httpx.AsyncClient is created once at startup and closed on shutdown.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from bleedserve.constants import DEFAULT_PROBER_TIMEOUT_S
from bleedserve.models.scan import Target
from bleedserve.prober.protocol import ProbeOutcome, ProbeSignal
from bleedserve.utils.logger import get_logger

logger = get_logger(__name__)

POOL_MAX_CONNECTIONS: int = 100
POOL_MAX_KEEPALIVE: int = 20
POOL_KEEPALIVE_EXPIRY: float = 30.0  # seconds

_STATUS_TO_SIGNAL: dict[str, ProbeSignal] = {
    "vulnerable": ProbeSignal.VULNERABLE,
    "safe": ProbeSignal.SAFE,
    "closed": ProbeSignal.CLOSED,
    "error": ProbeSignal.FAILURE,
}


def create_probe_client(timeout_s: float = DEFAULT_PROBER_TIMEOUT_S) -> httpx.AsyncClient:
    """Create the shared httpx.AsyncClient used for probe requests."""
    return httpx.AsyncClient(
        limits=httpx.Limits(
            max_connections=POOL_MAX_CONNECTIONS,
            max_keepalive_connections=POOL_MAX_KEEPALIVE,
            keepalive_expiry=POOL_KEEPALIVE_EXPIRY,
        ),
        timeout=httpx.Timeout(timeout_s),
        follow_redirects=False,
    )


class HttpProber:
    """Prober implementation backed by the external probe service.

    Usage:
        prober = HttpProber("http://127.0.0.1:8083/probe")
        outcome = await prober.probe(Target("example.com"), PROBE_PAYLOAD, skip=True)
        await prober.close()
    """

    def __init__(
        self,
        endpoint: str,
        timeout_s: float = DEFAULT_PROBER_TIMEOUT_S,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._endpoint = endpoint
        self._client = client or create_probe_client(timeout_s)

    async def probe(self, target: Target, payload: bytes, skip: bool) -> ProbeOutcome:
        body = {
            "host": target.host_identity,
            "service": target.service,
            "payload": payload.decode("ascii", errors="replace"),
            "skip": skip,
        }
        try:
            response = await self._client.post(self._endpoint, json=body)
        except httpx.TimeoutException as exc:
            logger.warning("probe_timeout", host=target.host_identity, error=str(exc))
            return ProbeOutcome.failure(f"probe timed out: {type(exc).__name__}")
        except httpx.HTTPError as exc:
            logger.warning(
                "probe_service_unreachable",
                host=target.host_identity,
                endpoint=self._endpoint,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return ProbeOutcome.failure(f"probe service unreachable: {type(exc).__name__}")

        if response.status_code != 200:
            logger.warning(
                "probe_service_bad_status",
                host=target.host_identity,
                status_code=response.status_code,
            )
            return ProbeOutcome.failure(
                f"probe service returned HTTP {response.status_code}"
            )

        return _parse_reply(response)

    async def close(self) -> None:
        await self._client.aclose()


def _parse_reply(response: httpx.Response) -> ProbeOutcome:
    try:
        reply: Any = response.json()
    except ValueError:
        return ProbeOutcome.failure("malformed probe reply: not JSON")
    if not isinstance(reply, dict):
        return ProbeOutcome.failure("malformed probe reply: not an object")

    status = str(reply.get("status", "")).lower()
    signal = _STATUS_TO_SIGNAL.get(status)
    if signal is None:
        return ProbeOutcome.failure(f"malformed probe reply: unknown status {status!r}")

    data = reply.get("data") or ""
    if signal is ProbeSignal.FAILURE:
        return ProbeOutcome.failure(str(reply.get("error") or ""), data=str(data))
    return ProbeOutcome(signal=signal, data=str(data))
