"""
Throttle middleware for the upstream-bound routes.

Every request under the throttled prefix takes a ThrottleGate slot before it
reaches its route and keeps it until the response body has been fully sent,
so a long chat stream counts against the concurrency limit for its whole
lifetime. Outcomes are tallied in the shared RequestStats collector.

Dependencies: fastapi, starlette, chatbox.core
System role: Request throttling and request stats
"""

import logging
import math
from collections.abc import AsyncIterator

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from chatbox.core.exceptions import ThrottleQueueFullError
from chatbox.core.stats import RequestOutcome, RequestStats
from chatbox.core.throttle import ThrottleGate
from chatbox.models.common import ErrorResponse

logger = logging.getLogger(__name__)

THROTTLED_PREFIX = "/api/ollama"


class ThrottleMiddleware(BaseHTTPMiddleware):
    """Admission control for /api/ollama requests."""

    def __init__(
        self,
        app,
        gate: ThrottleGate,
        stats: RequestStats,
        path_prefix: str = THROTTLED_PREFIX,
    ) -> None:
        super().__init__(app)
        self.gate = gate
        self.stats = stats
        self.path_prefix = path_prefix

    async def dispatch(self, request: Request, call_next):
        """
        Admit, forward and account for one request.

        Args:
            request: FastAPI request
            call_next: Next middleware in chain

        Returns:
            Response: Route response with X-Queue-Length (and Retry-After when
            the request was delayed), or 429 when the wait queue is full
        """
        if not request.url.path.startswith(self.path_prefix):
            return await call_next(request)

        method = request.method
        path = request.url.path

        try:
            admission = await self.gate.acquire()
        except ThrottleQueueFullError as e:
            self.stats.record(RequestOutcome.FAILURE)
            retry_after = str(max(1, math.ceil(e.retry_after)))
            logger.warning(
                f"{method} {path} rejected: throttle queue full",
                extra={"queue_length": e.queue_length, "retry_after": retry_after},
            )
            body = ErrorResponse(message=e.message, details=e.details)
            return JSONResponse(
                status_code=429,
                content=body.model_dump(),
                headers={"Retry-After": retry_after, "X-Queue-Length": str(e.queue_length)},
            )

        if admission.delayed:
            self.stats.record(RequestOutcome.RETRY)

        try:
            response: Response = await call_next(request)
        except Exception:
            self.gate.release()
            self.stats.record(RequestOutcome.FAILURE)
            raise

        response.headers["X-Queue-Length"] = str(admission.queue_length)
        if admission.delayed:
            response.headers["Retry-After"] = str(max(1, math.ceil(admission.waited_seconds)))

        response.body_iterator = self._release_after(response.body_iterator, response.status_code)
        return response

    async def _release_after(self, body: AsyncIterator[bytes], status_code: int) -> AsyncIterator[bytes]:
        """Pass the body through and free the slot once it is done or abandoned."""
        try:
            async for chunk in body:
                yield chunk
        finally:
            self.gate.release()
            self.stats.record_status(status_code)
            logger.debug(
                "Throttle slot released",
                extra={"status_code": status_code, "active": self.gate.active},
            )
