"""
NDJSON line buffering and Server-Sent Events framing.

The upstream model server emits one JSON object per line, but network reads
do not respect line boundaries: one read may carry several objects, or half of
one. NDJSONLineBuffer keeps the trailing partial line until the rest arrives.

Dependencies: json (stdlib)
System role: Wire framing helpers for the stream reframer
"""

import json
from typing import Any

SSE_DATA_PREFIX = "data: "
SSE_EVENT_TERMINATOR = "\n\n"


class NDJSONLineBuffer:
    """
    Accumulates raw bytes and yields complete, non-blank lines.

    Splitting happens on bytes so a multi-byte UTF-8 character split across
    two reads is only decoded once the whole line is present.
    """

    def __init__(self) -> None:
        self._pending = bytearray()

    @property
    def pending(self) -> bytes:
        """Bytes received after the last newline."""
        return bytes(self._pending)

    def feed(self, chunk: bytes) -> list[str]:
        """
        Append a network read and return every line it completed.

        Args:
            chunk: Raw bytes as read from the upstream response

        Returns:
            list[str]: Complete lines, stripped, blank lines dropped
        """
        self._pending.extend(chunk)
        *complete, rest = self._pending.split(b"\n")
        self._pending = bytearray(rest)
        return [line for line in (self._decode(raw) for raw in complete) if line]

    def flush(self) -> list[str]:
        """Return the trailing line left without a newline at stream end."""
        line = self._decode(bytes(self._pending))
        self._pending.clear()
        return [line] if line else []

    @staticmethod
    def _decode(raw: bytes) -> str:
        return raw.decode("utf-8", errors="replace").strip()


def format_sse(payload: Any) -> str:
    """
    Frame one JSON payload as an SSE data event.

    Args:
        payload: JSON-serializable value (normally a dict)

    Returns:
        str: "data: <json>\\n\\n"
    """
    return f"{SSE_DATA_PREFIX}{json.dumps(payload, ensure_ascii=False)}{SSE_EVENT_TERMINATOR}"


def done_event() -> str:
    """Terminal event emitted once the upstream stream has ended."""
    return format_sse({"done": True})


def error_event(message: str) -> str:
    """Error event emitted when the upstream stream fails mid-flight."""
    return format_sse({"error": message})


def parse_error_event(line: str) -> str:
    """Non-fatal event for one malformed upstream line."""
    return format_sse({"error": "Parse error", "line": line})
