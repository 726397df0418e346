"""
Throttle gate for upstream-bound relay requests.

Bounds the number of in-flight requests and spaces admissions. Requests over
the limit wait (polling every request_delay) instead of being rejected, until
the wait queue itself is full.

Dependencies: asyncio (stdlib), chatbox.core.exceptions
System role: Concurrency limiter shared by all /api/ollama requests
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from chatbox.core.exceptions import ThrottleQueueFullError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Admission:
    """Result of passing the gate."""

    waited_seconds: float
    queue_length: int

    @property
    def delayed(self) -> bool:
        return self.waited_seconds > 0


class ThrottleGate:
    """
    Concurrency gate for a single event loop.

    All bookkeeping happens between awaits, so no lock is needed.
    """

    def __init__(
        self,
        max_concurrent: int = 3,
        request_delay: float = 0.333,
        max_queue_depth: int = 50,
    ) -> None:
        """
        Initialize the gate.

        Args:
            max_concurrent: Maximum number of admitted, unreleased requests
            request_delay: Minimum spacing between admissions and poll interval (seconds)
            max_queue_depth: Maximum number of waiting requests
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.max_concurrent = max_concurrent
        self.request_delay = request_delay
        self.max_queue_depth = max_queue_depth
        self._active = 0
        self._waiting = 0
        self._last_admitted: float | None = None

    @property
    def active(self) -> int:
        return self._active

    @property
    def queue_length(self) -> int:
        return self._waiting

    def _spacing_remaining(self) -> float:
        if self._last_admitted is None:
            return 0.0
        return self.request_delay - (time.monotonic() - self._last_admitted)

    async def acquire(self) -> Admission:
        """
        Wait for a free slot and take it.

        Returns:
            Admission: How long the caller waited and the queue length seen on entry

        Raises:
            ThrottleQueueFullError: If the wait queue is already at max_queue_depth
        """
        queue_length = self._waiting
        if self._active >= self.max_concurrent and self._waiting >= self.max_queue_depth:
            raise ThrottleQueueFullError(
                queue_length=self._waiting,
                retry_after=self.request_delay * (self._waiting + 1),
            )

        started = time.monotonic()
        self._waiting += 1
        try:
            while True:
                if self._active < self.max_concurrent:
                    remaining = self._spacing_remaining()
                    if remaining <= 0:
                        break
                    await asyncio.sleep(remaining)
                else:
                    await asyncio.sleep(self.request_delay)
        finally:
            self._waiting -= 1

        self._active += 1
        self._last_admitted = time.monotonic()
        waited = self._last_admitted - started
        if waited > 0.001:
            logger.debug(
                "Request admitted after delay",
                extra={"waited_ms": round(waited * 1000, 1), "active": self._active},
            )
        else:
            waited = 0.0
        return Admission(waited_seconds=waited, queue_length=queue_length)

    def release(self) -> None:
        """Free a slot taken by acquire()."""
        if self._active > 0:
            self._active -= 1

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[Admission]:
        """Hold a slot for the duration of the block."""
        admission = await self.acquire()
        try:
            yield admission
        finally:
            self.release()
