"""
Logging utilities for safe structured logging.

Helpers that keep `extra=` context small and printable: streamed text and raw
upstream lines can be long or contain binary-ish payloads (base64 images).

Dependencies: logging (stdlib)
System role: Logging helper functions
"""

import logging
from typing import Any


def preview(text: str, limit: int = 80) -> str:
    """Return the first `limit` characters of text with an ellipsis marker."""
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def safe_log_value(value: Any, max_length: int = 500) -> str:
    """
    Safely convert any value to a string for logging.

    Collections are summarised by size rather than dumped.

    Args:
        value: Value to convert
        max_length: Maximum length before truncating

    Returns:
        str: Safe string representation
    """
    try:
        if value is None:
            return "None"
        if isinstance(value, (bytes, bytearray)):
            return f"bytes({len(value)})"
        if isinstance(value, (list, tuple)):
            return f"{type(value).__name__}({len(value)} items)"
        if isinstance(value, dict):
            return f"dict({len(value)} keys)"
        text = value if isinstance(value, str) else str(value)
        if len(text) > max_length:
            return text[:max_length] + f"... (truncated, {len(text)} total)"
        return text
    except Exception as e:
        return f"<unable to log: {type(e).__name__}>"


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    **context,
) -> None:
    """
    Log a message with structured context, safely converting all values.

    Args:
        logger: Logger instance
        level: Log level (logging.INFO, etc.)
        message: Log message
        **context: Arbitrary key-value pairs attached as record attributes
    """
    logger.log(level, message, extra={key: safe_log_value(val) for key, val in context.items()})


def log_exception_with_context(
    logger: logging.Logger,
    message: str,
    exc: BaseException,
    **context,
) -> None:
    """
    Log an exception (with traceback) and its type/message as context.

    Args:
        logger: Logger instance
        message: Log message
        exc: Exception instance
        **context: Additional context
    """
    safe_context = {key: safe_log_value(val) for key, val in context.items()}
    safe_context.update({
        "error_type": type(exc).__name__,
        "error_msg": str(exc),
    })
    logger.exception(message, extra=safe_context)
