"""
Exception hierarchy for the Chatbox relay and client.

Provides layered exception structure for domain-specific errors.
All exceptions include context for observability and debugging.

Dependencies: None (pure domain layer)
System role: Centralized exception handling across relay and client
"""

from typing import Any


class ChatboxException(Exception):
    """Base exception for all Chatbox errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """
        Initialize base exception with message and optional context.

        Args:
            message: Human-readable error message
            details: Optional dictionary of additional context for debugging
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation including details."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ValidationError(ChatboxException):
    """Raised when a relay request is malformed (missing model or messages)."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize validation error.

        Args:
            message: Error message
            field: Field name that failed validation
            details: Additional context
        """
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details)


class UpstreamUnavailableError(ChatboxException):
    """Raised when the upstream model server cannot be reached at all."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize upstream unavailable error.

        Args:
            message: Error message (usually the transport error text)
            url: Upstream URL that was being contacted
            details: Additional context
        """
        details = details or {}
        if url:
            details["url"] = url
        super().__init__(message, details)


class UpstreamResponseError(ChatboxException):
    """Raised when the upstream answers with a non-success status before streaming."""

    def __init__(
        self,
        message: str,
        status_code: int,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize upstream response error.

        Args:
            message: Error message (upstream body or reason phrase)
            status_code: HTTP status returned by the upstream server
            details: Additional context
        """
        details = details or {}
        details["status_code"] = status_code
        self.status_code = status_code
        super().__init__(message, details)


class ChunkParseError(ChatboxException):
    """Raised when one upstream NDJSON line is not valid JSON (non-fatal)."""

    def __init__(self, line: str, details: dict[str, Any] | None = None) -> None:
        """
        Initialize chunk parse error.

        Args:
            line: Raw line that failed to parse
            details: Additional context
        """
        self.line = line
        super().__init__("Parse error", details)


class ClientStreamError(ChatboxException):
    """Raised when the client fails while reading the relay's SSE body."""

    pass


class ImportFormatError(ChatboxException):
    """Raised when an imported chat file is not an array of message objects."""

    def __init__(
        self,
        message: str,
        index: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize import format error.

        Args:
            message: Error message
            index: Position of the offending entry, if any
            details: Additional context
        """
        details = details or {}
        if index is not None:
            details["index"] = index
        super().__init__(message, details)


class ThrottleQueueFullError(ChatboxException):
    """Raised when the throttle gate's wait queue is at capacity."""

    def __init__(
        self,
        queue_length: int,
        retry_after: float,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize queue full error.

        Args:
            queue_length: Number of requests currently waiting
            retry_after: Suggested wait in seconds before retrying
            details: Additional context
        """
        details = details or {}
        details["queue_length"] = queue_length
        self.queue_length = queue_length
        self.retry_after = retry_after
        super().__init__("Too many queued requests", details)
