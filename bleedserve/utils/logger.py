"""Structured logging for bleedserve.

Every line is one structlog event. While a request is being served, the
event also carries that request's ``request_id`` (set by RequestIdMiddleware),
so the ``probe_started`` / ``probe_verdict`` / ``cache_write_failed`` lines
of one classification can be grouped.

Level precedence, highest first:
  1. ``LOG_LEVEL`` environment variable (``run.py`` exports ``-l/--loglevel`` here)
  2. ``DEBUG=true`` environment variable
  3. ``log_level`` from config.yaml
  4. INFO

Output is JSON unless ``JSON_LOGS=false``.
"""

from __future__ import annotations

import logging
import os
import sys
from contextvars import ContextVar
from typing import Optional

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from bleedserve.constants import SERVICE_NAME, SERVICE_VERSION

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

DEFAULT_LOG_LEVEL = "INFO"


def add_request_id(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    request_id = request_id_var.get()
    if request_id:
        event_dict["request_id"] = request_id
    return event_dict


def add_service(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Tag events with the service identity; several instances may share a log sink."""
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("version", SERVICE_VERSION)
    return event_dict


def effective_log_level(configured: Optional[str] = None) -> str:
    """Resolve the log level from the environment and the config file value.

    Unknown names resolve to INFO.
    """
    candidate = os.getenv("LOG_LEVEL")
    if not candidate and os.getenv("DEBUG", "false").lower() == "true":
        candidate = "DEBUG"
    if not candidate:
        candidate = configured or DEFAULT_LOG_LEVEL
    candidate = candidate.upper()
    if not isinstance(logging.getLevelName(candidate), int):
        return DEFAULT_LOG_LEVEL
    return candidate


def json_logs_enabled() -> bool:
    return os.getenv("JSON_LOGS", "true").lower() == "true"


def configure_logging(
    log_level: Optional[str] = None,
    json_output: Optional[bool] = None,
) -> str:
    """(Re)configure structlog for the whole process.

    Safe to call more than once: module-level loggers are not cached, so
    a later call (e.g. once config.yaml has been read) takes effect everywhere.

    Args:
        log_level:   Level from config.yaml; environment variables win over it.
        json_output: Force JSON (True) or console (False) rendering. Defaults
                     to the ``JSON_LOGS`` environment variable.

    Returns:
        The level actually applied.
    """
    level = effective_log_level(log_level)
    if json_output is None:
        json_output = json_logs_enabled()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_request_id,
        add_service,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
    ]
    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,
    )
    return level


def get_logger(name: str = SERVICE_NAME) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def set_request_id(request_id: str) -> None:
    request_id_var.set(request_id)


def clear_request_id() -> None:
    request_id_var.set(None)


configure_logging()
