"""Application entrypoint for the Azure DevOps Wrapped service."""

from __future__ import annotations

import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from wrapped.core.config import settings
from wrapped.core.errors import DevOpsError, RateLimitError
from wrapped.routers import config, projects, stats
from wrapped.schemas.stats import ErrorResponse
from wrapped.telemetry import collect_prometheus_metrics, configure_metrics, shutdown_metrics

_logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_metrics()
    yield
    shutdown_metrics()


async def devops_error_handler(request: Request, exc: DevOpsError) -> JSONResponse:
    _logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    body = ErrorResponse(error=exc.category, message=exc.message, details=exc.details())
    if not settings.is_production:
        body.stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    headers = {}
    if isinstance(exc, RateLimitError):
        headers["Retry-After"] = str(exc.retry_after_seconds)
    return JSONResponse(body.model_dump(exclude_none=True), status_code=exc.status_code, headers=headers)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    _logger.exception("%s %s failed unexpectedly", request.method, request.url.path)
    body = ErrorResponse(error="internal_error", message=str(exc) or "An unexpected error occurred")
    if not settings.is_production:
        body.stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return JSONResponse(body.model_dump(exclude_none=True), status_code=500)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Azure DevOps Wrapped",
        description="Builds a year-in-review summary of a contributor's commits, pull requests and work items.",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_exception_handler(DevOpsError, devops_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(stats.router)
    app.include_router(projects.router)
    app.include_router(config.router)

    @app.get("/healthz", tags=["health"])
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    if settings.otel_exporter.lower().strip() == "prometheus":

        @app.get("/metrics", tags=["metrics"])
        def metrics_endpoint() -> PlainTextResponse:
            payload, content_type = collect_prometheus_metrics()
            return PlainTextResponse(payload, media_type=content_type)

    return app


app = create_app()
