"""ULID generation for request correlation.

Every classification request is tagged with a ULID that is bound into the
structlog context (``request_id``) and echoed in the ``X-Request-ID``
response header, so log lines for one probe can be grouped together.

Uses the ``python-ulid`` library. Do not hand-roll ULID generation.
"""

from __future__ import annotations

from ulid import ULID


def generate_ulid() -> str:
    """Return a new 26-character ULID string (Crockford Base32, uppercase)."""
    return str(ULID())
