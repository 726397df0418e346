"""
FastAPI middleware for observability.

Correlation ID and request logging middleware.

Dependencies: fastapi, starlette, chatbox.observability
System role: Request/response observability injection
"""

import logging
import time

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from chatbox.observability.correlation import clear_correlation_id, set_correlation_id

logger = logging.getLogger(__name__)

# Polled by clients on a backoff loop; logged at DEBUG unless they fail.
HEALTH_PATHS = frozenset({"/health", "/api/ollama/health"})


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request and its response status with timing."""

    async def dispatch(self, request: Request, call_next):
        """
        Log HTTP request and response with timing.

        For SSE responses the timing covers time-to-headers only; the relay
        logs the end of the stream itself.

        Args:
            request: FastAPI request
            call_next: Next middleware in chain

        Returns:
            Response: Response object
        """
        start_time = time.perf_counter()
        method = request.method
        path = request.url.path
        quiet = path in HEALTH_PATHS

        logger.log(
            logging.DEBUG if quiet else logging.INFO,
            f"{method} {path}",
            extra={
                "method": method,
                "path": path,
                "client_host": request.client.host if request.client else None,
            },
        )

        try:
            response: Response = await call_next(request)
        except Exception as e:
            logger.exception(
                f"{method} {path} - Exception",
                extra={
                    "method": method,
                    "path": path,
                    "process_time_ms": _elapsed_ms(start_time),
                    "error_type": type(e).__name__,
                    "error_msg": str(e),
                },
            )
            raise

        if response.status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.DEBUG if quiet else logging.INFO
        logger.log(
            level,
            f"{method} {path} - {response.status_code}",
            extra={
                "method": method,
                "path": path,
                "status_code": response.status_code,
                "queue_length": response.headers.get("X-Queue-Length"),
                "process_time_ms": _elapsed_ms(start_time),
            },
        )
        return response


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Tags every request with an X-Correlation-ID (incoming or generated)."""

    async def dispatch(self, request: Request, call_next):
        correlation_id = set_correlation_id(request.headers.get("X-Correlation-ID"))
        try:
            response: Response = await call_next(request)
        finally:
            clear_correlation_id()
        response.headers["X-Correlation-ID"] = correlation_id
        return response
