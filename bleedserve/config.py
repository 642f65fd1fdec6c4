"""Config loading for bleedserve.

Reads ``config.yaml`` (or ``~/.bleedserve/config.yaml``).
Raises SystemExit on parse errors, a missing ``version`` field or invalid values.
If no config file is found, returns default values (safe to run without config).

Config search order:
  1. ``config_path`` argument (``-c/--config`` on the command line, or tests)
  2. BLEEDSERVE_CONFIG environment variable (if set)
  3. ``config.yaml`` (working directory, for development)
  4. ``~/.bleedserve/config.yaml`` (home directory, for deployments)

Environment variable overrides:
  BLEEDSERVE_PORT   overrides listen.port (takes precedence over config file value)
  BLEEDSERVE_CONFIG sets an explicit config file path to try first

Example::

    version: 1
    redirect:
      host: https://heartbleed.example.org
    listen:
      host: 0.0.0.0
      port: 8082
    cache:
      backend: sqlite
      path: /var/lib/bleedserve/cache.db
      ttl: 10m
      prune_interval_s: 5m
    prober:
      endpoint: http://127.0.0.1:8083/probe
      timeout_s: 30
    log_level: INFO
"""

from __future__ import annotations

import os
import re
import sys
from dataclasses import dataclass, field
from typing import Any, NoReturn, Optional

import yaml

from bleedserve.constants import (
    DEFAULT_CACHE_PRUNE_INTERVAL_S,
    DEFAULT_CACHE_TTL_S,
    DEFAULT_LISTEN_HOST,
    DEFAULT_LISTEN_PORT,
    DEFAULT_PROBER_ENDPOINT,
    DEFAULT_PROBER_TIMEOUT_S,
    DEFAULT_REDIRECT_HOST,
)
from bleedserve.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

# ─── Validation sets ─────────────────────────────────────────────────────────

VALID_CACHE_BACKENDS: frozenset[str] = frozenset({"memory", "sqlite"})

VALID_LOG_LEVELS: frozenset[str] = frozenset(
    {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
)

DEFAULT_CONFIG_PATHS = [
    "config.yaml",
    os.path.expanduser("~/.bleedserve/config.yaml"),
]

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS: dict[str, float] = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass
class RedirectConfig:
    """Where GET / (and any unknown path) is redirected."""

    host: str = DEFAULT_REDIRECT_HOST


@dataclass
class ListenConfig:
    """HTTP binding configuration."""

    host: str = DEFAULT_LISTEN_HOST
    port: int = DEFAULT_LISTEN_PORT


@dataclass
class CacheConfig:
    """Verdict cache configuration.

    backend:          "memory" (process-local) or "sqlite" (durable file)
    path:             SQLite file, only used by the sqlite backend
    ttl_s:            Verdict lifetime in seconds
    prune_interval_s: Expired-entry sweep period (both backends)
    """

    backend: str = "memory"
    path: str = "~/.bleedserve/cache.db"
    ttl_s: float = DEFAULT_CACHE_TTL_S
    prune_interval_s: float = DEFAULT_CACHE_PRUNE_INTERVAL_S


@dataclass
class ProberConfig:
    """Probe service client configuration."""

    endpoint: str = DEFAULT_PROBER_ENDPOINT
    timeout_s: float = DEFAULT_PROBER_TIMEOUT_S


@dataclass
class Config:
    """Root configuration object populated from config.yaml.

    All fields have safe defaults; bleedserve can start without any config file.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    redirect: RedirectConfig = field(default_factory=RedirectConfig)
    listen: ListenConfig = field(default_factory=ListenConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    prober: ProberConfig = field(default_factory=ProberConfig)
    log_level: str = "INFO"

    @classmethod
    def defaults(cls) -> "Config":
        """Return a fully-default Config (no file required)."""
        return cls()

    @classmethod
    def from_dict(cls, raw: dict) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are silently ignored.

        Raises:
            SystemExit(1): On any invalid value.
        """
        # ── Cache ─────────────────────────────────────────────────────────────
        cache_raw = _section(raw, "cache")
        backend = cache_raw.get("backend", "memory")
        if backend not in VALID_CACHE_BACKENDS:
            _fail(
                f"CONFIG ERROR: Invalid cache.backend: '{backend}'. "
                f"Supported values: {sorted(VALID_CACHE_BACKENDS)}."
            )
        cache = CacheConfig(
            backend=backend,
            path=str(cache_raw.get("path", "~/.bleedserve/cache.db")),
            ttl_s=_positive_duration(cache_raw, "cache", "ttl", DEFAULT_CACHE_TTL_S),
            prune_interval_s=_positive_duration(
                cache_raw, "cache", "prune_interval_s", DEFAULT_CACHE_PRUNE_INTERVAL_S
            ),
        )

        # ── Listen ────────────────────────────────────────────────────────────
        listen_raw = _section(raw, "listen")
        port = listen_raw.get("port", DEFAULT_LISTEN_PORT)
        if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
            _fail(f"CONFIG ERROR: Invalid listen.port: {port!r}. Expected an integer 1-65535.")
        listen = ListenConfig(
            host=str(listen_raw.get("host", DEFAULT_LISTEN_HOST)),
            port=port,
        )

        # ── Redirect ──────────────────────────────────────────────────────────
        redirect_raw = _section(raw, "redirect")
        redirect = RedirectConfig(host=str(redirect_raw.get("host", DEFAULT_REDIRECT_HOST)))

        # ── Prober ────────────────────────────────────────────────────────────
        prober_raw = _section(raw, "prober")
        prober = ProberConfig(
            endpoint=str(prober_raw.get("endpoint", DEFAULT_PROBER_ENDPOINT)),
            timeout_s=_positive_duration(
                prober_raw, "prober", "timeout_s", DEFAULT_PROBER_TIMEOUT_S
            ),
        )

        log_level = str(raw.get("log_level", "INFO")).upper()
        if log_level not in VALID_LOG_LEVELS:
            _fail(
                f"CONFIG ERROR: Invalid log_level: '{log_level}'. "
                f"Supported values: {sorted(VALID_LOG_LEVELS)}."
            )

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            redirect=redirect,
            listen=listen,
            cache=cache,
            prober=prober,
            log_level=log_level,
        )


# ─── Helpers ──────────────────────────────────────────────────────────────────


def _section(raw: dict, name: str) -> dict:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        _fail(f"CONFIG ERROR: '{name}' must be a mapping, got {type(value).__name__}.")
    return value


def _positive_duration(section: dict, section_name: str, key: str, default: float) -> float:
    try:
        seconds = parse_duration(section.get(key, default))
    except ValueError as exc:
        _fail(f"CONFIG ERROR: Invalid {section_name}.{key}: {exc}")
    if seconds <= 0:
        _fail(f"CONFIG ERROR: {section_name}.{key} must be greater than zero.")
    return seconds


def parse_duration(value: Any) -> float:
    """Parse a duration into seconds.

    Accepts bare numbers (seconds) or strings with an ``ms``/``s``/``m``/``h``
    suffix: ``600``, ``"30s"``, ``"10m"``, ``"1.5h"``.

    Raises:
        ValueError: If the value cannot be interpreted as a duration.
    """
    if isinstance(value, bool):
        raise ValueError(f"not a duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    match = _DURATION_RE.match(str(value))
    if match is None:
        raise ValueError(f"not a duration: {value!r}")
    amount, unit = match.groups()
    return float(amount) * _DURATION_UNITS[unit or "s"]


def _fail(msg: str) -> NoReturn:
    print(msg, file=sys.stderr)
    raise SystemExit(1)


# ─── Config loading ───────────────────────────────────────────────────────────


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate bleedserve configuration.

    If no file is found at any search path, returns default Config (not an error).
    If a file is found but invalid, writes an error to stderr and raises SystemExit(1).

    ``BLEEDSERVE_PORT`` is applied after loading (or defaulting), so the env var
    always wins over the file.

    Raises:
        SystemExit(1): On YAML parse error, missing ``version`` field, unsupported
                       version, invalid values, or invalid ``BLEEDSERVE_PORT``.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("BLEEDSERVE_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    # ── No config file found ─────────────────────────────────────────────────
    if found_path is None:
        logger.info("No config file found, using defaults", searched=search_paths)
        config = Config.defaults()
        _apply_env_overrides(config)
        return config

    # ── Parse config file ─────────────────────────────────────────────────────
    logger.info("Loading config", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        _fail(
            f"CONFIG ERROR: Failed to parse {found_path}: {exc}\n"
            "bleedserve refuses to start with an invalid config. "
            "Check the YAML syntax and try again."
        )
    except OSError as exc:
        _fail(f"CONFIG ERROR: Could not read {found_path}: {exc}")

    if not isinstance(raw, dict):
        if raw is None:
            _fail(
                f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        _fail(
            f"CONFIG ERROR: {found_path} is not a valid YAML mapping.\n"
            "The config file must be a YAML dictionary at the top level."
        )

    # ── Version validation ────────────────────────────────────────────────────
    version = raw.get("version")
    if version is None:
        _fail(
            f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )

    if version not in SUPPORTED_VERSIONS:
        _fail(
            f"CONFIG ERROR: Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )

    config = Config.from_dict(raw)
    _apply_env_overrides(config)

    if config.listen.host == "0.0.0.0":
        logger.warning(
            "bleedserve is configured to bind on 0.0.0.0 (all interfaces)",
            port=config.listen.port,
        )

    logger.info(
        "Config loaded",
        path=found_path,
        version=config.version,
        cache_backend=config.cache.backend,
        cache_ttl_s=config.cache.ttl_s,
    )
    return config


def _apply_env_overrides(config: Config) -> None:
    """Apply environment variable overrides to a Config object in-place.

    Currently handles:
      BLEEDSERVE_PORT overrides config.listen.port (SystemExit(1) if not a port number)
    """
    env_port = os.environ.get("BLEEDSERVE_PORT")
    if env_port is not None:
        try:
            port = int(env_port)
        except ValueError:
            port = 0
        if not 0 < port < 65536:
            _fail(
                "CONFIG ERROR: BLEEDSERVE_PORT environment variable is not a valid "
                f"port number: '{env_port}'"
            )
        config.listen.port = port
