"""Prober Protocol + probe outcome types.

A Prober performs ONE heartbeat probe against a target and reports what it
saw. It never classifies; mapping a signal to a verdict is the orchestrator's
job (scanner/orchestrator.py).

Signals:
  VULNERABLE — the probe got memory back (the "no error" outcome)
  SAFE       — the target answered and did not leak
  CLOSED     — nothing listening / connection refused
  FAILURE    — anything else; error_text says what went wrong

Bounding probe latency is the Prober's responsibility. The orchestrator does
not wrap calls in a timeout.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

from bleedserve.models.scan import Target


class ProbeSignal(str, Enum):
    VULNERABLE = "vulnerable"
    SAFE = "safe"
    CLOSED = "closed"
    FAILURE = "failure"


@dataclass(frozen=True)
class ProbeOutcome:
    """Raw result of a single probe.

    data may hold bytes scraped from the target's memory. It must never be
    forwarded to a client.
    """

    signal: ProbeSignal
    data: str = ""
    error_text: str = ""

    @classmethod
    def vulnerable(cls, data: str = "") -> "ProbeOutcome":
        return cls(signal=ProbeSignal.VULNERABLE, data=data)

    @classmethod
    def safe(cls) -> "ProbeOutcome":
        return cls(signal=ProbeSignal.SAFE)

    @classmethod
    def closed(cls) -> "ProbeOutcome":
        return cls(signal=ProbeSignal.CLOSED)

    @classmethod
    def failure(cls, error_text: str, data: str = "") -> "ProbeOutcome":
        return cls(signal=ProbeSignal.FAILURE, data=data, error_text=error_text)


@runtime_checkable
class Prober(Protocol):
    """Pluggable probe interface.

    Implementations: HttpProber (prober/http_prober.py). Tests substitute
    AsyncMock(spec=Prober) or small fakes.

    skip asks the prober not to perform a redundant confirmation round; how
    it is honoured is up to the implementation.
    """

    async def probe(self, target: Target, payload: bytes, skip: bool) -> ProbeOutcome:
        """Probe target once. May raise; the orchestrator treats that as FAILURE."""
        ...

    async def close(self) -> None:
        """Release connections. Called during graceful shutdown."""
        ...
