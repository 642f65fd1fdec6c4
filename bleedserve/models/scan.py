"""Classification contracts shared by the orchestrator and the HTTP layer.

  - Target         — what is being classified (host identity + service)
  - Classification — closed tri-state verdict: VULNERABLE=0, SAFE=1, ERROR=2
  - ScanResult     — per-request response payload, never persisted

ScanResult.sanitized_data is always the empty string. Probe payloads are
memory scraped from someone else's server; they are dropped before a result
is ever built, so there is no field through which they could be returned.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

from bleedserve.constants import DEFAULT_SERVICE


class Classification(IntEnum):
    """Tri-state verdict. The integer value is the wire ``code``."""

    VULNERABLE = 0
    SAFE = 1
    ERROR = 2

    @property
    def metric_name(self) -> str:
        """Counter bumped for a freshly probed verdict of this kind."""
        return self.name.lower()


@dataclass(frozen=True)
class Target:
    """A host to classify.

    host_identity is the cache key and is used exactly as supplied; no case,
    port or trailing-dot normalisation happens anywhere.
    """

    host_identity: str
    service: str = DEFAULT_SERVICE


@dataclass(frozen=True)
class ScanResult:
    """Response payload for one classification request."""

    classification: Classification
    host_identity: str
    error_text: str = ""
    sanitized_data: str = field(default="", init=False)

    def to_dict(self) -> dict[str, Any]:
        """Wire representation: ``{"code", "data", "error", "host"}``."""
        return {
            "code": int(self.classification),
            "data": self.sanitized_data,
            "error": self.error_text,
            "host": self.host_identity,
        }
