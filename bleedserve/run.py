"""Programmatic uvicorn entry point for bleedserve.

Usage:
    python -m bleedserve.run -c /etc/bleedserve/config.yaml -l DEBUG
    bleedserve -c config.yaml                 # via pyproject.toml [project.scripts]

Flags:
  -c/--config    config file (exported as BLEEDSERVE_CONFIG so the app
                 lifespan loads the same file)
  -l/--loglevel  log level, overrides log_level from the config file
"""

from __future__ import annotations

import argparse
import os
from typing import Optional, Sequence

import uvicorn

from bleedserve.config import VALID_LOG_LEVELS, load_config
from bleedserve.utils.logger import configure_logging, get_logger

logger = get_logger(__name__)

# Maximum number of concurrent connections accepted by uvicorn.
# Each in-flight probe holds one; new connections get HTTP 503 beyond this.
UVICORN_LIMIT_CONCURRENCY: int = 100

# OS-level TCP connection backlog queue size.
UVICORN_BACKLOG: int = 50

# HTTP keep-alive timeout in seconds.
UVICORN_TIMEOUT_KEEP_ALIVE: int = 5


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bleedserve",
        description="Heartbleed vulnerability classification service",
    )
    parser.add_argument("-c", "--config", help="General config file (YAML)")
    parser.add_argument(
        "-l",
        "--loglevel",
        type=str.upper,
        choices=sorted(VALID_LOG_LEVELS),
        help="Log level (overrides log_level in the config file)",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Start the bleedserve HTTP server.

    Raises:
        SystemExit: Propagated from load_config() on config parse errors.
    """
    args = build_parser().parse_args(argv)

    if args.config:
        os.environ["BLEEDSERVE_CONFIG"] = args.config
    config = load_config(args.config)

    # The lifespan reconfigures logging; LOG_LEVEL keeps -l in force there.
    if args.loglevel:
        os.environ["LOG_LEVEL"] = args.loglevel
    log_level = configure_logging(config.log_level)

    logger.info(
        "Starting server",
        host=config.listen.host,
        port=config.listen.port,
        log_level=log_level,
    )
    uvicorn.run(
        "bleedserve.main:app",
        host=config.listen.host,
        port=config.listen.port,
        log_level=log_level.lower(),
        limit_concurrency=UVICORN_LIMIT_CONCURRENCY,
        backlog=UVICORN_BACKLOG,
        timeout_keep_alive=UVICORN_TIMEOUT_KEEP_ALIVE,
    )


if __name__ == "__main__":
    main()
