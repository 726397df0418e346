"""
Chat relay service.

Bridges one inbound relay request to one upstream streaming request and
re-frames the upstream NDJSON stream as Server-Sent Events.

Flow:
1. Validate the request and attach images to their target messages
2. Open the upstream stream (errors here become HTTP errors, not SSE)
3. Buffer raw reads into complete lines, forward each as one SSE event
4. Emit the terminal done event, or an error event if the upstream fails
5. Close the upstream connection on completion, failure or client disconnect

Dependencies: httpx, chatbox.boundary.ollama, chatbox.core.sse
System role: Stream Reframer
"""

import json
import logging
from collections.abc import AsyncGenerator, AsyncIterator, Awaitable, Callable

import httpx

from chatbox.boundary.ollama.ollama_client import OllamaClient, UpstreamStream
from chatbox.core.exceptions import ChunkParseError, ValidationError
from chatbox.core.sse import (
    NDJSONLineBuffer,
    done_event,
    error_event,
    format_sse,
    parse_error_event,
)
from chatbox.models.ollama import (
    ChatRelayRequest,
    ImageAttachment,
    OllamaMessage,
    UpstreamChatRequest,
)
from chatbox.observability.log_utils import log_exception_with_context, preview

logger = logging.getLogger(__name__)

DisconnectProbe = Callable[[], Awaitable[bool]]


def strip_data_url_prefix(data: str) -> str:
    """
    Return the base64 payload of a data URL.

    "data:image/png;base64,AAAA" -> "AAAA". Strings without a data: prefix
    are assumed to be bare base64 already.
    """
    if data.startswith("data:") and "," in data:
        return data.split(",", 1)[1]
    return data


def attach_images(
    messages: list[OllamaMessage],
    images: list[ImageAttachment] | None,
) -> list[OllamaMessage]:
    """
    Attach image payloads to the messages they were sent with.

    Attachments pointing outside the message list are skipped.

    Args:
        messages: Outgoing conversation messages
        images: Image attachments keyed by message index

    Returns:
        list[OllamaMessage]: Copies of the messages with images set
    """
    processed = [message.model_copy(deep=True) for message in messages]
    for image in images or []:
        index = image.message_index
        if not 0 <= index < len(processed):
            logger.debug(
                "Skipping image with out-of-range message index",
                extra={"message_index": index, "message_count": len(processed)},
            )
            continue
        payload = strip_data_url_prefix(image.data)
        if not payload:
            continue
        target = processed[index]
        target.images = [*(target.images or []), payload]
    return processed


class RelayEventStream:
    """
    SSE events for one relay request, owning the upstream stream.

    aclose() closes the upstream whether or not iteration ever started: an
    unstarted async generator never runs its finally block.
    """

    def __init__(self, upstream: UpstreamStream, events: AsyncGenerator[str, None]) -> None:
        self.upstream = upstream
        self._events = events

    def __aiter__(self) -> AsyncIterator[str]:
        return self

    async def __anext__(self) -> str:
        return await self._events.__anext__()

    async def aclose(self) -> None:
        try:
            await self._events.aclose()
        finally:
            await self.upstream.aclose()


class RelayService:
    """
    Chat relay between the client and the upstream model server.

    One instance is shared by all requests; per-request state lives in the
    relay() generator.
    """

    def __init__(self, ollama_client: OllamaClient) -> None:
        """
        Initialize relay service.

        Args:
            ollama_client: Upstream client adapter
        """
        self.ollama_client = ollama_client

    def validate_request(self, request: ChatRelayRequest) -> UpstreamChatRequest:
        """
        Validate a relay request and build the upstream payload.

        Args:
            request: Parsed request body

        Returns:
            UpstreamChatRequest: Payload with images attached and stream=True

        Raises:
            ValidationError: If messages or model are missing
        """
        if not request.messages:
            raise ValidationError("Messages array is required", field="messages")
        if not request.model:
            raise ValidationError("Model name is required", field="model")

        return UpstreamChatRequest(
            model=request.model,
            messages=attach_images(request.messages, request.images),
            stream=True,
            options=request.options,
        )

    async def open_stream(self, request: ChatRelayRequest) -> UpstreamStream:
        """
        Validate the request and open the upstream stream.

        Args:
            request: Parsed request body

        Returns:
            UpstreamStream: Open upstream stream, to be passed to relay()

        Raises:
            ValidationError: If the request is malformed
            UpstreamUnavailableError: If the upstream cannot be reached
            UpstreamResponseError: If the upstream rejects the request
        """
        upstream_request = self.validate_request(request)
        logger.info(
            f"Streaming chat request to model: {upstream_request.model}",
            extra={
                "model": upstream_request.model,
                "message_count": len(upstream_request.messages),
                "image_count": len(request.images or []),
            },
        )
        return await self.ollama_client.open_chat_stream(upstream_request)

    def relay(
        self,
        upstream: UpstreamStream,
        is_disconnected: DisconnectProbe | None = None,
    ) -> RelayEventStream:
        """
        Re-frame the upstream NDJSON stream as SSE events.

        The disconnect probe is consulted before every upstream read; once it
        reports a disconnect no further reads happen. The upstream stream is
        closed on every exit path, including task cancellation.

        Args:
            upstream: Stream returned by open_stream()
            is_disconnected: Coroutine reporting whether the client went away

        Returns:
            RelayEventStream: Async iterator of SSE-framed events
            ("data: <json>\\n\\n"); closing it closes the upstream even if
            iteration never started
        """
        return RelayEventStream(upstream, self._events(upstream, is_disconnected))

    async def _events(
        self,
        upstream: UpstreamStream,
        is_disconnected: DisconnectProbe | None,
    ) -> AsyncGenerator[str, None]:
        buffer = NDJSONLineBuffer()
        event_count = 0
        try:
            while True:
                if is_disconnected is not None and await is_disconnected():
                    logger.info(
                        "Client disconnected, closing upstream stream",
                        extra={"events_sent": event_count},
                    )
                    return

                try:
                    chunk = await upstream.read_chunk()
                except httpx.HTTPError as e:
                    logger.error(
                        "Error in chat stream from upstream",
                        extra={"error_type": type(e).__name__, "error_msg": str(e)},
                    )
                    yield error_event(str(e) or type(e).__name__)
                    return
                except Exception as e:
                    log_exception_with_context(
                        logger, "Unexpected error reading upstream stream", e
                    )
                    yield error_event(str(e) or type(e).__name__)
                    return

                if chunk is None:
                    break
                for line in buffer.feed(chunk):
                    event_count += 1
                    yield self._reframe(line)

            for line in buffer.flush():
                event_count += 1
                yield self._reframe(line)

            yield done_event()
            logger.info(
                "Chat streaming completed successfully",
                extra={"events_sent": event_count, "upstream_reads": upstream.reads},
            )
        finally:
            await upstream.aclose()

    @staticmethod
    def _reframe(line: str) -> str:
        """Turn one upstream line into one SSE event."""
        try:
            return format_sse(json.loads(line))
        except json.JSONDecodeError as e:
            error = ChunkParseError(line, details={"error_msg": str(e)})
            logger.warning(
                f"Error parsing streaming response: {preview(line)}",
                extra=error.details,
            )
            return parse_error_event(error.line)
