"""
Chat domain models.

Messages and conversations as held by the client-side Conversation Store and
written to export files.

Dependencies: pydantic
System role: Chat data contracts
"""

import re
import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

CODE_FENCE = "```"
TITLE_MAX_LENGTH = 30
PLACEHOLDER_TITLE_PATTERN = re.compile(r"Chat \d+")


def new_id() -> str:
    """Generate an opaque unique identifier."""
    return str(uuid.uuid4())


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class Sender(str, Enum):
    """Author of a chat turn."""

    USER = "user"
    BOT = "bot"


class MessageType(str, Enum):
    """Rendering hint derived from message content."""

    TEXT = "text"
    MARKDOWN = "markdown"
    CODE = "code"


def detect_message_type(text: str, current: MessageType = MessageType.MARKDOWN) -> MessageType:
    """
    Derive the type for accumulated text.

    Promotion to CODE is one-way: once current is CODE it stays CODE.

    Args:
        text: Cumulative message text
        current: Type the message has so far

    Returns:
        MessageType: CODE if a fenced-code marker is present, else current
    """
    if current is MessageType.CODE or CODE_FENCE in text:
        return MessageType.CODE
    return current


class Message(BaseModel):
    """One chat turn."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)

    id: str = Field(default_factory=new_id, description="Opaque unique identifier")
    sender: Sender
    text: str = ""
    type: MessageType = MessageType.TEXT
    timestamp: str = Field(default_factory=utc_now_iso, description="Creation time (ISO-8601)")
    is_loading: bool = Field(default=False, alias="isLoading")
    is_error: bool = Field(default=False, alias="isError")
    image: str | None = Field(default=None, description="Inline data URL of an attached image")

    def to_api_message(self) -> dict[str, str]:
        """Map to the upstream {role, content} shape."""
        role = "user" if self.sender is Sender.USER else "assistant"
        return {"role": role, "content": self.text}

    def to_record(self) -> dict:
        """JSON-ready dict using the client's camelCase field names."""
        return self.model_dump(mode="json", by_alias=True)


class Chat(BaseModel):
    """A named, timestamped, ordered sequence of messages scoped to one model."""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    id: str = Field(default_factory=new_id)
    title: str
    created: str = Field(default_factory=utc_now_iso)
    updated: str = Field(default_factory=utc_now_iso)
    messages: list[Message] = Field(default_factory=list)
    model_name: str = Field(alias="modelName")
    title_is_manual: bool = Field(default=False, alias="titleIsManual")

    @property
    def has_placeholder_title(self) -> bool:
        """True while the title is the auto-generated "Chat N" form and was never set by hand."""
        if self.title_is_manual:
            return False
        return PLACEHOLDER_TITLE_PATTERN.fullmatch(self.title) is not None

    def to_record(self) -> dict:
        """JSON-ready dict using the client's camelCase field names."""
        return self.model_dump(mode="json", by_alias=True)


def derive_title(text: str) -> str:
    """Truncate a first user message into a conversation title."""
    if len(text) > TITLE_MAX_LENGTH:
        return text[:TITLE_MAX_LENGTH] + "..."
    return text
