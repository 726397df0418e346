"""
Chat export and import.

Export files are a JSON array of messages in the browser client's camelCase
shape. Import is strict about structure but lenient about missing fields,
which are filled with defaults.

Dependencies: pydantic, json (stdlib)
System role: Conversation file format
"""

import json
import logging
from collections.abc import Iterable
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from chatbox.core.exceptions import ImportFormatError
from chatbox.models.chat import Message, Sender

logger = logging.getLogger(__name__)

# Upstream wire fields that may leak into message dicts; never exported.
WIRE_ONLY_FIELDS = ("role", "content")
# Send-state flags; an imported message never has a send behind it.
SEND_STATE_FIELDS = ("isLoading", "is_loading", "isError", "is_error")


def export_messages(messages: Iterable[Message]) -> str:
    """
    Serialize messages for download.

    Args:
        messages: Conversation messages

    Returns:
        str: Pretty-printed JSON array (indent 2)
    """
    records = []
    for message in messages:
        record = message.to_record()
        for name in WIRE_ONLY_FIELDS:
            record.pop(name, None)
        records.append(record)
    return json.dumps(records, indent=2, ensure_ascii=False)


def parse_import(raw: str | bytes) -> list[Message]:
    """
    Parse and validate an imported chat file.

    Missing fields get defaults: a new id, the current timestamp, sender
    "bot", type "text", empty text and no image. Loading and error flags in
    the file are dropped, so every imported message is settled.

    Args:
        raw: File contents

    Returns:
        list[Message]: Validated messages, in file order

    Raises:
        ImportFormatError: If the content is not a JSON array of message objects
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ImportFormatError("Import file is not valid JSON", details={"error_msg": str(e)}) from e

    if not isinstance(data, list):
        raise ImportFormatError(
            "Import file must contain an array of messages",
            details={"found_type": type(data).__name__},
        )

    messages = [_parse_entry(index, entry) for index, entry in enumerate(data)]
    logger.info("Parsed chat import", extra={"message_count": len(messages)})
    return messages


def _parse_entry(index: int, entry: Any) -> Message:
    if not isinstance(entry, dict):
        raise ImportFormatError(
            "Each imported message must be an object",
            index=index,
            details={"found_type": type(entry).__name__},
        )

    ignored = WIRE_ONLY_FIELDS + SEND_STATE_FIELDS
    fields = {key: value for key, value in entry.items() if key not in ignored}
    # Explicit nulls count as missing.
    for key in ("id", "timestamp", "sender", "type", "text"):
        if fields.get(key) is None:
            fields.pop(key, None)
    fields.setdefault("sender", Sender.BOT)

    try:
        return Message.model_validate(fields)
    except PydanticValidationError as e:
        raise ImportFormatError(
            "Imported message has invalid fields",
            index=index,
            details={"errors": [err["msg"] for err in e.errors()]},
        ) from e
