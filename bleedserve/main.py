"""bleedserve FastAPI application factory + lifespan lifecycle.

This module implements:
  - create_app() — testable application factory
  - lifespan     — @asynccontextmanager startup/shutdown sequence
  - /            — redirect to the configured front-end host (also catches
                   every otherwise unmatched path, whatever the method)
  - app = create_app() — module-level instance for uvicorn

Startup sequence:
  1. load_config()            → app.state.config, logging reconfigured to log_level
  2. create_cache_store()     → app.state.cache_store
  3. run_expiry_pruner()      → background sweep of expired verdicts
  4. HttpProber(...)          → app.state.prober
  5. MetricsAggregator()      → app.state.metrics
  6. ClassificationOrchestrator(prober, CacheAdapter(store, ttl), metrics)
                              → app.state.orchestrator

Shutdown sequence (reverse):
  cancel pruner → close prober → close cache store
"""

from __future__ import annotations

import asyncio
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.routing import APIRouter

from bleedserve.cache.adapter import CacheAdapter
from bleedserve.cache.factory import create_cache_store
from bleedserve.cache.protocol import CacheStore
from bleedserve.cache.pruner import run_expiry_pruner
from bleedserve.config import Config, load_config
from bleedserve.constants import SERVICE_NAME, SERVICE_VERSION
from bleedserve.dispatch.middleware import RequestIdMiddleware
from bleedserve.dispatch.router import router as bleed_router
from bleedserve.health import router as health_router
from bleedserve.prober.http_prober import HttpProber
from bleedserve.scanner.orchestrator import ClassificationOrchestrator
from bleedserve.utils.logger import configure_logging, get_logger
from bleedserve.utils.metrics import MetricsAggregator

logger = get_logger(__name__)

REDIRECT_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


# ─── Root / Redirect ──────────────────────────────────────────────────────────
# Registered last in create_app(): the catch-all must not shadow /status,
# /metrics or /bleed/*.

root_router = APIRouter(tags=["root"])


@root_router.api_route("/{path:path}", methods=REDIRECT_METHODS, include_in_schema=False)
async def redirect_root(path: str, request: Request) -> RedirectResponse:
    """Send browsers to the front-end that wraps this API."""
    config: Config = request.app.state.config
    return RedirectResponse(url=config.redirect.host, status_code=302)


# ─── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan — startup and shutdown sequence."""
    logger.info("bleedserve starting up...", version=SERVICE_VERSION)

    # ── Step 1: Load configuration ────────────────────────────────────────────
    # load_config() raises SystemExit on invalid files; nothing below runs.
    config: Config = load_config()
    app.state.config = config
    log_level = configure_logging(config.log_level)

    # ── Step 2 + 3: Cache backend and expiry sweep ────────────────────────────
    # RuntimeError on an incompatible sqlite schema propagates: refuse startup.
    cache_store: CacheStore = await create_cache_store(config)
    app.state.cache_store = cache_store
    pruner_task = asyncio.create_task(
        run_expiry_pruner(cache_store, interval_s=config.cache.prune_interval_s)
    )
    logger.info("Cache expiry pruner started", interval_s=config.cache.prune_interval_s)

    # ── Step 4: Prober ────────────────────────────────────────────────────────
    # Single shared httpx.AsyncClient inside HttpProber, never per-request.
    prober = HttpProber(config.prober.endpoint, timeout_s=config.prober.timeout_s)
    app.state.prober = prober
    logger.info(
        "Prober client created",
        endpoint=config.prober.endpoint,
        timeout_s=config.prober.timeout_s,
    )

    # ── Step 5 + 6: Metrics + orchestrator ────────────────────────────────────
    metrics = MetricsAggregator()
    app.state.metrics = metrics
    app.state.orchestrator = ClassificationOrchestrator(
        prober=prober,
        cache=CacheAdapter(cache_store, ttl_s=config.cache.ttl_s),
        metrics=metrics,
    )

    logger.info(
        "bleedserve ready",
        cache_backend=config.cache.backend,
        cache_ttl_s=config.cache.ttl_s,
        redirect_host=config.redirect.host,
        log_level=log_level,
    )

    yield

    # ── Shutdown (reverse order) ──────────────────────────────────────────────
    logger.info("bleedserve shutting down...")

    if not pruner_task.done():
        pruner_task.cancel()
        try:
            await pruner_task
        except asyncio.CancelledError:
            pass

    try:
        await prober.close()
        logger.info("Prober client closed")
    except Exception as exc:
        logger.warning("Prober client close error (non-fatal)", error=str(exc))

    await cache_store.close()

    logger.info("bleedserve shutdown complete")


# ─── Application Factory ──────────────────────────────────────────────────────


def create_app() -> FastAPI:
    """Create and configure the bleedserve FastAPI application.

    Call this function directly in unit tests to get an isolated app instance.
    The module-level ``app`` is created at import time for uvicorn:
        uvicorn bleedserve.main:app --host 127.0.0.1 --port 8082

    Returns:
        Configured FastAPI application with lifespan, routers, and middleware.
    """
    _debug = os.getenv("DEBUG", "false").lower() == "true"

    application = FastAPI(
        title=SERVICE_NAME,
        description="Heartbleed vulnerability classification service",
        version=SERVICE_VERSION,
        lifespan=lifespan,
        docs_url="/docs" if _debug else None,
        redoc_url="/redoc" if _debug else None,
        openapi_url="/openapi.json" if _debug else None,
    )

    # Classification endpoints are meant to be called from any browser page.
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
    )

    # Registered last so it runs first: every log line carries request_id.
    application.add_middleware(RequestIdMiddleware)

    # health_router: /status, /metrics
    application.include_router(health_router)
    # bleed_router: /bleed/query, /bleed/{host}
    application.include_router(bleed_router)
    # root_router: catch-all redirect, MUST be last
    application.include_router(root_router)

    @application.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(request.url.path),
        )
        return JSONResponse(
            status_code=500, content={"error": "Internal server error"}
        )

    return application


# ─── Module-Level App (for uvicorn) ───────────────────────────────────────────

app = create_app()
