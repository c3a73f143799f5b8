"""
FastAPI application factory for the dashboard service.

Usage:
    python -m api.app                                  # Dev server on port 8050
    APP_API_BASE_URL=http://backend:8000/api python -m api.app

OpenAPI docs available at http://localhost:8050/docs after starting.

The service sits between the browser and the remote reporting API.  It
owns one QueryCache for the whole process (created in the lifespan,
disposed on shutdown) and exposes each module's dashboard state: KPIs,
chart series and the current table page, already sorted and paginated.

Logging: plain text by default, newline-delimited JSON when
APP_LOG_FORMAT=json.  Every request is logged with a short request id that
is also returned in the X-Request-ID header.
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import cache, dashboards, records
from api.runtime import DashboardRuntime
from client.base import ApiClient
from client.errors import ClientRequestError, DashboardError, TransientFetchError
from utils.config import AppConfig
from utils.logging import configure_logging

_logger = logging.getLogger("dashboard_api")

_SLOW_REQUEST_MS = 500


def _error_status(exc: DashboardError) -> int:
    if isinstance(exc, ClientRequestError):
        if exc.status_code is not None and 400 <= exc.status_code < 500:
            return exc.status_code
        return 400
    if isinstance(exc, TransientFetchError) and exc.status_code in (503, 504):
        return exc.status_code
    return 502


def create_app(config: AppConfig | None = None, client: ApiClient | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Service configuration (default: read from the environment).
        client: Remote API client override (useful for testing).

    Returns:
        Configured FastAPI application instance.
    """
    cfg = config or AppConfig.from_env()
    cfg.validate()
    configure_logging(cfg.log_format, cfg.log_level)

    metrics = {"request_count": 0, "error_count": 0, "started_at": time.time()}

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Build the dashboard runtime on startup; dispose it on shutdown."""
        runtime = DashboardRuntime(cfg, client=client)
        app.state.runtime = runtime
        try:
            yield
        finally:
            app.state.runtime = None
            runtime.close()

    app = FastAPI(
        title="Dashboard de Gestion Presupuestal",
        summary="Filter-driven dashboards over the presupuesto, adquisiciones, "
                "contratos menores and actividades operativas reporting API.",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=[
            {
                "name": "dashboards",
                "description": "Per-module dashboard state: filters, KPIs, charts and table page.",
            },
            {
                "name": "records",
                "description": "Detail lookups and create/update operations.",
            },
            {
                "name": "cache",
                "description": "Query cache statistics and manual invalidation.",
            },
            {
                "name": "meta",
                "description": "Health check and service metadata.",
            },
        ],
    )
    app.state.runtime = None

    # ── CORS middleware ───────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    # ── Request logging middleware ────────────────────────────────────────────

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log each request with a request id and record basic metrics."""
        request_id = str(uuid.uuid4())[:8]
        start = time.monotonic()
        path = request.url.path

        metrics["request_count"] += 1
        response = await call_next(request)
        duration_ms = (time.monotonic() - start) * 1000

        if response.status_code >= 500:
            metrics["error_count"] += 1
        response.headers["X-Request-ID"] = request_id

        if cfg.log_format == "json":
            _logger.info(
                "request",
                extra={
                    "method": request.method,
                    "path": path,
                    "status": response.status_code,
                    "duration_ms": round(duration_ms, 1),
                    "request_id": request_id,
                },
            )
        else:
            _logger.info(
                "method=%s path=%s status=%d duration_ms=%.1f rid=%s",
                request.method, path, response.status_code, duration_ms, request_id,
            )
        if duration_ms > _SLOW_REQUEST_MS:
            _logger.warning(
                "slow_request method=%s path=%s duration_ms=%.1f",
                request.method, path, duration_ms,
            )
        return response

    # ── Error handling ────────────────────────────────────────────────────────

    @app.exception_handler(DashboardError)
    async def dashboard_error_handler(request: Request, exc: DashboardError):
        status = _error_status(exc)
        return JSONResponse(
            status_code=status,
            content={"error": type(exc).__name__, "detail": exc.detail or exc.message,
                     "status_code": status},
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch unhandled exceptions and return JSON instead of HTML traceback."""
        _logger.exception("unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": str(exc),
                "status_code": 500,
            },
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(
            status_code=400,
            content={"error": "Bad request", "detail": str(exc), "status_code": 400},
        )

    # ── Health check ──────────────────────────────────────────────────────────

    @app.get("/health", tags=["meta"], summary="Health check")
    def health(request: Request):
        """Return 200 OK while the dashboard runtime is up."""
        runtime: DashboardRuntime | None = request.app.state.runtime
        if runtime is None:
            return JSONResponse(status_code=503, content={"status": "starting"})
        return {
            "status": "ok",
            "api_base_url": cfg.api_base_url,
            "modules": sorted(runtime.controllers),
        }

    @app.get("/health/detailed", tags=["meta"], summary="Detailed health metrics")
    def health_detailed(request: Request):
        """Uptime, request counters and query cache statistics.

        Counters reset on process restart.
        """
        runtime: DashboardRuntime | None = request.app.state.runtime
        if runtime is None:
            return JSONResponse(status_code=503, content={"status": "starting"})
        return {
            "status": "ok",
            "uptime_seconds": round(time.time() - metrics["started_at"], 2),
            "request_count": metrics["request_count"],
            "error_count": metrics["error_count"],
            "cache": runtime.cache.stats(),
        }

    # ── Register routers ──────────────────────────────────────────────────────

    prefix = "/api/v1"
    app.include_router(dashboards.router, prefix=prefix)
    app.include_router(records.router,    prefix=prefix)
    app.include_router(cache.router,      prefix=prefix)

    return app


if __name__ == "__main__":
    import uvicorn

    _cfg = AppConfig.from_env()
    uvicorn.run(create_app(_cfg), host=_cfg.host, port=_cfg.port)
