"""
FastAPI application with assembled routers.

Initializes the relay app: routers, middleware, exception handlers, and the
lifespan that configures logging and periodically logs request stats.

Dependencies: fastapi, uvicorn, chatbox.api.routers, chatbox.observability
System role: API entry point with router assembly and server launch
"""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chatbox.api.middleware import ThrottleMiddleware
from chatbox.configs import Settings, get_settings
from chatbox.core.exceptions import (
    UpstreamResponseError,
    UpstreamUnavailableError,
    ValidationError,
)
from chatbox.core.stats import RequestStats
from chatbox.core.throttle import ThrottleGate
from chatbox.models.common import ErrorResponse
from chatbox.observability.log_utils import log_exception_with_context
from chatbox.observability.logger import configure_logging
from chatbox.observability.middleware import CorrelationMiddleware, RequestLoggingMiddleware

from .routers import health_router, ollama_router

logger = logging.getLogger(__name__)


async def log_stats_periodically(app: FastAPI, interval: float) -> None:
    """Log the request stats snapshot every `interval` seconds."""
    while True:
        await asyncio.sleep(interval)
        snapshot = app.state.stats.snapshot()
        logger.info(
            f"API Requests Stats: Total={snapshot.total}, Successful={snapshot.success}, "
            f"Failed={snapshot.failed}, Retries={snapshot.retries}",
            extra={**snapshot.to_dict(), "active": app.state.throttle_gate.active},
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Handles startup and shutdown events.
    """
    settings: Settings = app.state.settings

    # Startup
    configure_logging(settings.log_level)
    logger.info(
        "Relay starting",
        extra={"upstream_url": settings.ollama.base_url, "port": settings.port},
    )
    stats_task = asyncio.create_task(
        log_stats_periodically(app, settings.throttle.stats_log_interval_seconds)
    )

    yield

    # Shutdown
    stats_task.cancel()
    with suppress(asyncio.CancelledError):
        await stats_task
    logger.info("Relay shutdown", extra=app.state.stats.snapshot().to_dict())


def _error_response(status_code: int, message: str, details=None) -> JSONResponse:
    body = ErrorResponse(message=message, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump())


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain exceptions to JSON error responses."""

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        logger.warning(f"Invalid request: {exc.message}", extra={"path": request.url.path})
        return _error_response(400, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = [error.get("msg", "") for error in exc.errors()]
        logger.warning("Malformed request body", extra={"path": request.url.path})
        return _error_response(400, "Invalid request body", {"errors": errors})

    @app.exception_handler(UpstreamUnavailableError)
    async def handle_upstream_unavailable(
        request: Request, exc: UpstreamUnavailableError
    ) -> JSONResponse:
        logger.error(
            "Error connecting to Ollama",
            extra={"path": request.url.path, "error_msg": exc.message},
        )
        return _error_response(503, "Ollama server is not available", exc.details or exc.message)

    @app.exception_handler(UpstreamResponseError)
    async def handle_upstream_response(request: Request, exc: UpstreamResponseError) -> JSONResponse:
        logger.error(
            "Ollama rejected the request",
            extra={"path": request.url.path, "status_code": exc.status_code, "error_msg": exc.message},
        )
        return _error_response(502, exc.message, exc.details)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        log_exception_with_context(logger, "Unhandled error", exc, path=request.url.path)
        settings: Settings = request.app.state.settings
        details = None if settings.environment == "production" else str(exc)
        return _error_response(500, "Internal Server Error", details)


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Create and configure FastAPI application with routers.

    Args:
        settings: Application settings (defaults to get_settings())

    Returns:
        FastAPI: Configured application instance with all routers registered
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Chatbox Relay API",
        description="Streaming chat relay in front of an Ollama server",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.stats = RequestStats()
    app.state.throttle_gate = ThrottleGate(
        max_concurrent=settings.throttle.max_concurrent,
        request_delay=settings.throttle.request_delay_ms / 1000,
        max_queue_depth=settings.throttle.max_queue_depth,
    )

    # Added first = runs last, right before the routes
    app.add_middleware(
        ThrottleMiddleware,
        gate=app.state.throttle_gate,
        stats=app.state.stats,
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(CorrelationMiddleware)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Queue-Length", "Retry-After", "X-Correlation-ID"],
    )

    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(ollama_router)

    return app


app = create_app()


if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "chatbox.api.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
