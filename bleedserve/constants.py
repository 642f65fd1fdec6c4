"""Shared constants for bleedserve.

Probe markers, cache lifetimes and counter names used across modules are
defined here. No magic values in other modules, import from here.
"""

# ─── Service ──────────────────────────────────────────────────────────────────

SERVICE_NAME: str = "bleedserve"
SERVICE_VERSION: str = "0.5"

# ─── Probe ────────────────────────────────────────────────────────────────────

# Well-known marker sent inside every heartbeat probe. The probe service echoes
# it back when the target leaks memory, which is how a hit is recognised.
PROBE_PAYLOAD: bytes = b"heartbleed.mozilla.com"

# Error text the probe service uses when the heartbeat reply did not line up
# with the request. Logged as MISMATCH; still reported to clients as ERROR.
PROBE_MISMATCH_TEXT: str = "Please try again"

# Used when a failed probe carries no descriptive text of its own.
PROBE_FALLBACK_ERROR_TEXT: str = "probe failed"

DEFAULT_SERVICE: str = "https"

# ─── Cache ────────────────────────────────────────────────────────────────────

# Verdict lifetime. Configurable via cache.ttl in config.yaml.
DEFAULT_CACHE_TTL_S: float = 600.0  # 10 minutes

# How often the cache backend sweeps expired entries.
DEFAULT_CACHE_PRUNE_INTERVAL_S: float = 300.0

# Upper bound on live entries held by the in-memory backend. Oldest write
# is evicted first once reached.
DEFAULT_MEMORY_CACHE_MAX_ENTRIES: int = 100_000

# ─── Metrics ──────────────────────────────────────────────────────────────────

METRIC_TOTAL: str = "total"
METRIC_VULNERABLE: str = "vulnerable"
METRIC_SAFE: str = "safe"
METRIC_ERROR: str = "error"
METRIC_CACHED: str = "cached"

METRIC_NAMES: tuple[str, ...] = (
    METRIC_TOTAL,
    METRIC_VULNERABLE,
    METRIC_SAFE,
    METRIC_ERROR,
    METRIC_CACHED,
)

# ─── HTTP ─────────────────────────────────────────────────────────────────────

DEFAULT_LISTEN_HOST: str = "127.0.0.1"
DEFAULT_LISTEN_PORT: int = 8082
DEFAULT_REDIRECT_HOST: str = "http://localhost"

DEFAULT_PROBER_ENDPOINT: str = "http://127.0.0.1:8083/probe"
DEFAULT_PROBER_TIMEOUT_S: float = 30.0
