"""FastAPI application factory (create_app)."""

from __future__ import annotations

import os
import time
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import cast

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.responses import Response

from streamsift.infrastructure.config import AppConfig, load_config
from streamsift.infrastructure.logging.setup import configure_logging
from streamsift.interfaces.app_state import AppState
from streamsift.interfaces.composition import lifespan

log = structlog.get_logger(__name__)

CONFIG_PATH_ENV = "STREAMSIFT_CONFIG"
DOTENV_PATH_ENV = "STREAMSIFT_DOTENV"


def create_app(config: AppConfig) -> FastAPI:
    """Create FastAPI app - configuration ONLY, NO resource initialization.

    Resources (HTTP client, cache, aggregators) are created in lifespan().
    """
    app = FastAPI(
        title="StreamSift",
        description="Tiered torrent stream aggregation and ranking",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state = AppState()
    app.state.config = config

    from streamsift.interfaces.api.streams.router import router as streams_router

    app.include_router(streams_router, prefix="/api/v1")

    @app.get("/api/v1/healthz")
    async def healthz() -> dict[str, str]:
        """Liveness check - returns 200 as long as the process is running."""
        return {"status": "ok"}

    @app.get("/api/v1/stats")
    async def stats() -> JSONResponse:
        """In-memory fetch and aggregation counters."""
        metrics = getattr(cast(AppState, app.state), "metrics", None)
        if metrics is None:
            return JSONResponse({"error": "metrics_unavailable"}, status_code=503)
        return JSONResponse(metrics.snapshot())

    @app.middleware("http")
    async def log_requests(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ):
        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration_ms = (time.perf_counter() - start) * 1000.0
            log.info(
                "http_request",
                method=request.method,
                path=request.url.path,
                query=str(request.url.query),
                status_code=status_code,
                duration_ms=round(duration_ms, 2),
                client_host=(request.client.host if request.client else None),
            )

    return app


def create_app_from_env() -> FastAPI:
    """uvicorn factory: ``uvicorn --factory streamsift.interfaces.app:create_app_from_env``.

    Reads the optional YAML and .env paths from STREAMSIFT_CONFIG and
    STREAMSIFT_DOTENV, then configures logging before building the app.
    """
    config_path = os.environ.get(CONFIG_PATH_ENV)
    dotenv_path = os.environ.get(DOTENV_PATH_ENV)
    config = load_config(
        config_path=Path(config_path) if config_path else None,
        dotenv_path=Path(dotenv_path) if dotenv_path else None,
    )
    configure_logging(config)
    return create_app(config)
