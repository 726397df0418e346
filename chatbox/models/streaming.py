"""
Streaming event schemas for the SSE chat relay.

The relay passes upstream progress objects through verbatim; only the
terminal and error events are produced by the relay itself. The client parses
every event into a RelayEvent and dispatches on its kind.

Dependencies: pydantic
System role: Streaming protocol schemas
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel

PARSE_ERROR = "Parse error"


class RelayEventKind(str, Enum):
    """Classification of one SSE payload as seen by the client."""

    PROGRESS = "progress"
    DONE = "done"
    PARSE_ERROR = "parse_error"
    ERROR = "error"


class RelayEvent(BaseModel):
    """
    One decoded SSE payload.

    Attributes:
        kind: What the payload means to the consumer
        content: Message content carried by a progress payload ("" if none)
        error: Error text for error payloads
        payload: The raw decoded JSON object
    """

    kind: RelayEventKind
    content: str = ""
    error: str | None = None
    payload: dict[str, Any]

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "RelayEvent":
        """Classify a decoded JSON payload."""
        if "error" in payload and not payload.get("done"):
            error = str(payload.get("error"))
            kind = RelayEventKind.PARSE_ERROR if error == PARSE_ERROR else RelayEventKind.ERROR
            return cls(kind=kind, error=error, payload=payload)
        message = payload.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        return cls(
            kind=RelayEventKind.DONE if payload.get("done") else RelayEventKind.PROGRESS,
            content=content if isinstance(content, str) else "",
            payload=payload,
        )
