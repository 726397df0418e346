"""
Request statistics collector.

Counts relay request outcomes. One instance is owned by the application
lifespan and shared through app.state, so tests can build their own.

Dependencies: None
System role: Request outcome accounting for periodic stats logging
"""

from dataclasses import dataclass
from enum import Enum


class RequestOutcome(str, Enum):
    """Outcome of one throttled request."""

    SUCCESS = "success"
    FAILURE = "failure"
    RETRY = "retry"


@dataclass(frozen=True)
class StatsSnapshot:
    """Point-in-time copy of the counters."""

    total: int
    success: int
    failed: int
    retries: int

    def to_dict(self) -> dict[str, int]:
        """Convert to JSON-serializable dictionary."""
        return {
            "total": self.total,
            "success": self.success,
            "failed": self.failed,
            "retries": self.retries,
        }


class RequestStats:
    """Mutable counters with record/snapshot/reset."""

    def __init__(self) -> None:
        self._total = 0
        self._success = 0
        self._failed = 0
        self._retries = 0

    def record(self, outcome: RequestOutcome) -> None:
        """
        Count one finished request.

        RETRY counts as a request that was delayed by the throttle gate
        before being admitted; it is tallied on top of its final outcome.

        Args:
            outcome: What happened to the request
        """
        if outcome is RequestOutcome.RETRY:
            self._retries += 1
            return
        self._total += 1
        if outcome is RequestOutcome.SUCCESS:
            self._success += 1
        else:
            self._failed += 1

    def record_status(self, status_code: int) -> None:
        """Record SUCCESS for 2xx statuses and FAILURE for everything else."""
        if 200 <= status_code < 300:
            self.record(RequestOutcome.SUCCESS)
        else:
            self.record(RequestOutcome.FAILURE)

    def snapshot(self) -> StatsSnapshot:
        """Return current counters without resetting them."""
        return StatsSnapshot(
            total=self._total,
            success=self._success,
            failed=self._failed,
            retries=self._retries,
        )

    def reset(self) -> StatsSnapshot:
        """Return current counters and zero them."""
        snapshot = self.snapshot()
        self._total = self._success = self._failed = self._retries = 0
        return snapshot
