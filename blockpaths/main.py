"""blockpaths FastAPI application factory + lifespan lifecycle.

This module implements:
  - create_app() — application factory; compiles the path gate eagerly
  - lifespan     — @asynccontextmanager startup/shutdown sequence
  - /health      — delegated to blockpaths/health.py
  - /{path:path} — reverse proxy, delegated to blockpaths/proxy/engine.py

There is no module-level ``app``: a missing or invalid gate configuration must
fail in the caller of create_app(), not at import time. Serve it with
``blockpaths`` (see blockpaths/run.py) or
``uvicorn --factory blockpaths.main:create_app``.

Startup sequence:
  create_app():  load_config() (if not given) → PathGate.from_config()
                 → app.state.config, app.state.gate
  lifespan:      create_http_client() → app.state.http_client
                 → app.state.ready = True
Shutdown (reverse): app.state.ready = False → close http client
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from blockpaths.config import Config, load_config
from blockpaths.gate import BlockPathsMiddleware, PathGate
from blockpaths.health import router as health_router
from blockpaths.proxy.engine import create_http_client, router as proxy_router
from blockpaths.utils.logger import configure_logging, get_logger, settings_from_env

# ─── Logging Setup ────────────────────────────────────────────────────────────
LOG_SETTINGS = settings_from_env()
LOG_LEVEL = LOG_SETTINGS.level

configure_logging(log_level=LOG_LEVEL, json_output=LOG_SETTINGS.json_output)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create the shared upstream client, then mark the app ready."""
    logger.info("blockpaths starting up...")

    http_client: httpx.AsyncClient = create_http_client(
        transport=getattr(app.state, "http_transport", None)
    )
    app.state.http_client = http_client

    app.state.ready = True
    logger.info(
        "blockpaths ready",
        gate=app.state.gate.name,
        rules=len(app.state.gate.rule_set),
        upstream=app.state.config.upstream.url,
    )

    yield

    logger.info("blockpaths shutting down...")
    app.state.ready = False

    try:
        await http_client.aclose()
    except Exception as exc:
        logger.warning("HTTP proxy client close error (non-fatal)", error=str(exc))

    logger.info("blockpaths shutdown complete")


def create_app(
    config: Optional[Config] = None,
    http_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Create and configure the blockpaths FastAPI application.

    Args:
        config:         Loaded Config. ``load_config()`` is called when omitted.
        http_transport: Optional transport for the upstream client (tests).

    Returns:
        Configured FastAPI application with lifespan, routers and the gate middleware.

    Raises:
        ConfigurationError: Empty pattern list, a pattern that does not compile,
                            or an invalid status code. No app is created.
    """
    if config is None:
        config = load_config()

    gate = PathGate.from_config(config.gate)

    application = FastAPI(
        title="blockpaths",
        description="Block request paths by regex before they reach the upstream",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    # ready stays False until the lifespan has created the upstream client
    application.state.ready = False
    application.state.config = config
    application.state.gate = gate
    application.state.http_transport = http_transport

    application.add_middleware(BlockPathsMiddleware, gate=gate)

    # health_router first: the proxy catch-all would otherwise shadow /health
    application.include_router(health_router)
    application.include_router(proxy_router)

    @application.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        logger.warning(
            "HTTP exception",
            status_code=exc.status_code,
            detail=exc.detail,
            path=str(request.url.path),
        )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

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
