"""
Relay and upstream model server schemas.

Request/response shapes for the /api/ollama endpoints and for the upstream
chat API the relay talks to.

Dependencies: pydantic
System role: Relay API contracts
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class OllamaMessage(BaseModel):
    """One message in an upstream chat request."""

    role: Literal["system", "user", "assistant"]
    content: str = ""
    images: list[str] | None = Field(
        default=None,
        description="Raw base64 image payloads (no data: prefix)",
    )


class ImageAttachment(BaseModel):
    """Image attached by the client to one outgoing message."""

    model_config = ConfigDict(populate_by_name=True)

    message_index: int = Field(alias="messageIndex", description="Index into messages")
    data: str = Field(description="Data URL, e.g. data:image/png;base64,....")


class ChatRelayRequest(BaseModel):
    """
    Body of POST /api/ollama/chat.

    model and messages are optional at the schema level so that their absence
    is reported as a 400 ValidationError by the relay service.
    """

    model: str | None = None
    messages: list[OllamaMessage] | None = None
    images: list[ImageAttachment] | None = None
    options: dict[str, Any] | None = None


class UpstreamChatRequest(BaseModel):
    """Body sent to the upstream /api/chat endpoint."""

    model: str
    messages: list[OllamaMessage]
    stream: bool = True
    options: dict[str, Any] | None = None


class OllamaModelDetails(BaseModel):
    """Optional model metadata reported by the upstream server."""

    model_config = ConfigDict(extra="allow")

    format: str | None = None
    family: str | None = None
    families: list[str] | None = None
    parameter_size: str | None = None
    quantization_level: str | None = None


class OllamaModel(BaseModel):
    """One entry of the upstream /api/tags listing."""

    model_config = ConfigDict(extra="allow")

    name: str
    size: int = 0
    digest: str = ""
    modified_at: str = ""
    details: OllamaModelDetails | None = None


class RelayHealthResponse(BaseModel):
    """Liveness of the relay process itself."""

    status: str
    message: str


class UpstreamHealthResponse(BaseModel):
    """Liveness of the upstream model server."""

    status: Literal["available", "unavailable"]
    url: str
    error: str | None = None
    details: str | None = None
