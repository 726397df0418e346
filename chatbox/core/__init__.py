"""
Core business logic module.

Contains the exception hierarchy, SSE framing, request stats and the
throttle gate used by the relay.
"""

from chatbox.core.exceptions import (
    ChatboxException,
    ChunkParseError,
    ClientStreamError,
    ImportFormatError,
    ThrottleQueueFullError,
    UpstreamResponseError,
    UpstreamUnavailableError,
    ValidationError,
)
from chatbox.core.stats import RequestStats
from chatbox.core.throttle import ThrottleGate

__all__ = [
    # Exceptions
    "ChatboxException",
    "ValidationError",
    "UpstreamUnavailableError",
    "UpstreamResponseError",
    "ChunkParseError",
    "ClientStreamError",
    "ImportFormatError",
    "ThrottleQueueFullError",
    # Relay components
    "RequestStats",
    "ThrottleGate",
]
