"""
Test suite for RelayService.

Tests request validation, image attachment, and re-framing of the upstream
NDJSON stream as SSE, using an httpx MockTransport as the upstream server.

System role: Verification of the stream reframer
"""

import json

import httpx
import pytest

from chatbox.application.services.relay_service import (
    RelayService,
    attach_images,
    strip_data_url_prefix,
)
from chatbox.boundary.ollama import OllamaClient
from chatbox.core.exceptions import (
    UpstreamResponseError,
    UpstreamUnavailableError,
    ValidationError,
)
from chatbox.models.ollama import ChatRelayRequest, ImageAttachment, OllamaMessage


class CountingStream(httpx.AsyncByteStream):
    """Upstream body that records how many chunks were pulled."""

    def __init__(self, chunks: list[bytes], fail_after: int | None = None) -> None:
        self.chunks = chunks
        self.fail_after = fail_after
        self.pulled = 0
        self.closed = False

    async def __aiter__(self):
        for index, chunk in enumerate(self.chunks):
            if self.fail_after is not None and index >= self.fail_after:
                raise httpx.ReadError("connection reset by peer")
            self.pulled += 1
            yield chunk

    async def aclose(self) -> None:
        self.closed = True


def payloads(events: list[str]) -> list[dict]:
    """Decode SSE events produced by the relay."""
    decoded = []
    for event in events:
        assert event.startswith("data: ") and event.endswith("\n\n")
        decoded.append(json.loads(event[len("data: "):-2]))
    return decoded


@pytest.fixture
def chat_request() -> ChatRelayRequest:
    """Provide a minimal valid relay request."""
    return ChatRelayRequest(
        model="llama3",
        messages=[OllamaMessage(role="user", content="Hi")],
    )


def relay_service_for(stream: httpx.AsyncByteStream, status_code: int = 200) -> RelayService:
    transport = httpx.MockTransport(lambda request: httpx.Response(status_code, stream=stream))
    return RelayService(OllamaClient(base_url="http://ollama.test", transport=transport))


async def collect(service: RelayService, request: ChatRelayRequest, probe=None) -> list[str]:
    upstream = await service.open_stream(request)
    return [event async for event in service.relay(upstream, is_disconnected=probe)]


class TestValidateRequest:
    """Test suite for RelayService.validate_request()."""

    def test_missing_messages_should_raise(self) -> None:
        """Test a request without messages is rejected."""
        # Arrange
        service = RelayService(OllamaClient())

        # Act / Assert
        with pytest.raises(ValidationError) as exc_info:
            service.validate_request(ChatRelayRequest(model="llama3", messages=[]))
        assert exc_info.value.message == "Messages array is required"
        assert exc_info.value.details["field"] == "messages"

    def test_missing_model_should_raise(self) -> None:
        """Test a request without a model is rejected."""
        # Arrange
        service = RelayService(OllamaClient())
        request = ChatRelayRequest(messages=[OllamaMessage(role="user", content="Hi")])

        # Act / Assert
        with pytest.raises(ValidationError) as exc_info:
            service.validate_request(request)
        assert exc_info.value.message == "Model name is required"

    def test_valid_request_should_force_streaming_and_keep_options(self) -> None:
        """Test the upstream payload always streams and passes options through."""
        # Arrange
        service = RelayService(OllamaClient())
        request = ChatRelayRequest(
            model="llama3",
            messages=[OllamaMessage(role="user", content="Hi")],
            options={"temperature": 0.2},
        )

        # Act
        upstream_request = service.validate_request(request)

        # Assert
        assert upstream_request.stream is True
        assert upstream_request.options == {"temperature": 0.2}


class TestAttachImages:
    """Test suite for attach_images()."""

    def test_should_strip_data_url_prefix_and_attach_to_index(self) -> None:
        """Test an image lands on its target message as bare base64."""
        # Arrange
        messages = [
            OllamaMessage(role="user", content="first"),
            OllamaMessage(role="user", content="look"),
        ]
        images = [ImageAttachment(messageIndex=1, data="data:image/png;base64,QUJD")]

        # Act
        processed = attach_images(messages, images)

        # Assert
        assert processed[1].images == ["QUJD"]
        assert processed[0].images is None
        assert messages[1].images is None

    def test_out_of_range_indices_should_be_skipped(self) -> None:
        """Test negative and too-large indices are ignored."""
        # Arrange
        messages = [OllamaMessage(role="user", content="look")]
        images = [
            ImageAttachment(messageIndex=-1, data="QUJD"),
            ImageAttachment(messageIndex=5, data="QUJD"),
        ]

        # Act
        processed = attach_images(messages, images)

        # Assert
        assert processed[0].images is None

    def test_strip_data_url_prefix_should_leave_bare_base64(self) -> None:
        assert strip_data_url_prefix("QUJD") == "QUJD"


class TestRelayStreaming:
    """Test suite for RelayService.relay()."""

    @pytest.mark.asyncio
    async def test_objects_split_across_reads_should_become_one_event_each(
        self, chat_request: ChatRelayRequest
    ) -> None:
        """Test reads that cut objects in half still yield one event per object."""
        # Arrange
        stream = CountingStream([
            b'{"message": {"content": "Hel"}}\n{"message": {"con',
            b'tent": "lo"}}\n',
            b'{"done": true}\n',
        ])
        service = relay_service_for(stream)

        # Act
        events = await collect(service, chat_request)

        # Assert
        assert payloads(events) == [
            {"message": {"content": "Hel"}},
            {"message": {"content": "lo"}},
            {"done": True},
            {"done": True},
        ]

    @pytest.mark.asyncio
    async def test_malformed_line_should_emit_parse_error_and_continue(
        self, chat_request: ChatRelayRequest
    ) -> None:
        """Test a bad line becomes a parse error event without ending the stream."""
        # Arrange
        stream = CountingStream([b'not json\n{"message": {"content": "ok"}}\n'])
        service = relay_service_for(stream)

        # Act
        events = payloads(await collect(service, chat_request))

        # Assert
        assert events[0] == {"error": "Parse error", "line": "not json"}
        assert events[1] == {"message": {"content": "ok"}}
        assert events[-1] == {"done": True}

    @pytest.mark.asyncio
    async def test_trailing_line_without_newline_should_be_flushed(
        self, chat_request: ChatRelayRequest
    ) -> None:
        """Test the last object is relayed even without a final newline."""
        # Arrange
        stream = CountingStream([b'{"message": {"content": "end"}}'])
        service = relay_service_for(stream)

        # Act
        events = payloads(await collect(service, chat_request))

        # Assert
        assert events == [{"message": {"content": "end"}}, {"done": True}]

    @pytest.mark.asyncio
    async def test_upstream_failure_mid_stream_should_emit_error_event(
        self, chat_request: ChatRelayRequest
    ) -> None:
        """Test a transport error after some output ends with an error event."""
        # Arrange
        stream = CountingStream(
            [b'{"message": {"content": "partial"}}\n', b"never sent"],
            fail_after=1,
        )
        service = relay_service_for(stream)

        # Act
        events = payloads(await collect(service, chat_request))

        # Assert
        assert events[0] == {"message": {"content": "partial"}}
        assert events[-1] == {"error": "connection reset by peer"}
        assert {"done": True} not in events

    @pytest.mark.asyncio
    async def test_client_disconnect_should_stop_reading_and_close_upstream(
        self, chat_request: ChatRelayRequest
    ) -> None:
        """Test no upstream read happens after the client goes away."""
        # Arrange
        stream = CountingStream([
            b'{"message": {"content": "a"}}\n',
            b'{"message": {"content": "b"}}\n',
            b'{"message": {"content": "c"}}\n',
        ])
        service = relay_service_for(stream)
        checks = {"count": 0}

        async def disconnect_after_first_read() -> bool:
            checks["count"] += 1
            return checks["count"] > 1

        # Act
        upstream = await service.open_stream(chat_request)
        events = [event async for event in service.relay(upstream, disconnect_after_first_read)]

        # Assert
        assert payloads(events) == [{"message": {"content": "a"}}]
        assert stream.pulled == 1
        assert upstream.closed
        assert stream.closed

    @pytest.mark.asyncio
    async def test_abandoned_generator_should_close_upstream(
        self, chat_request: ChatRelayRequest
    ) -> None:
        """Test closing the generator early (task cancelled) closes the upstream."""
        # Arrange
        stream = CountingStream([b'{"message": {"content": "a"}}\n'] * 3)
        service = relay_service_for(stream)
        upstream = await service.open_stream(chat_request)
        generator = service.relay(upstream)

        # Act
        await generator.__anext__()
        await generator.aclose()

        # Assert
        assert upstream.closed

    @pytest.mark.asyncio
    async def test_closing_unstarted_stream_should_close_upstream(
        self, chat_request: ChatRelayRequest
    ) -> None:
        """Test a stream closed before its first event still closes the upstream."""
        # Arrange
        stream = CountingStream([b'{"message": {"content": "a"}}\n'])
        service = relay_service_for(stream)
        upstream = await service.open_stream(chat_request)
        events = service.relay(upstream)

        # Act
        await events.aclose()

        # Assert
        assert upstream.closed
        assert stream.pulled == 0


class TestOpenStream:
    """Test suite for RelayService.open_stream() error mapping."""

    @pytest.mark.asyncio
    async def test_unreachable_upstream_should_raise_unavailable(
        self, chat_request: ChatRelayRequest
    ) -> None:
        """Test a connection failure surfaces before any streaming starts."""
        # Arrange
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = OllamaClient(base_url="http://ollama.test", transport=httpx.MockTransport(refuse))
        service = RelayService(client)

        # Act / Assert
        with pytest.raises(UpstreamUnavailableError):
            await service.open_stream(chat_request)

    @pytest.mark.asyncio
    async def test_error_status_should_raise_response_error(
        self, chat_request: ChatRelayRequest
    ) -> None:
        """Test a non-2xx upstream status carries the upstream's error text."""
        # Arrange
        transport = httpx.MockTransport(
            lambda request: httpx.Response(404, json={"error": "model 'llama3' not found"})
        )
        service = RelayService(OllamaClient(base_url="http://ollama.test", transport=transport))

        # Act / Assert
        with pytest.raises(UpstreamResponseError) as exc_info:
            await service.open_stream(chat_request)
        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "model 'llama3' not found"

    @pytest.mark.asyncio
    async def test_request_body_should_stream_with_images_attached(
        self, make_transport
    ) -> None:
        """Test the upstream receives stream=true and bare base64 images."""
        # Arrange
        transport = make_transport(lambda request: httpx.Response(200, content=b'{"done": true}\n'))
        service = RelayService(OllamaClient(base_url="http://ollama.test", transport=transport))
        request = ChatRelayRequest(
            model="llava",
            messages=[OllamaMessage(role="user", content="what is this?")],
            images=[ImageAttachment(messageIndex=0, data="data:image/png;base64,QUJD")],
        )

        # Act
        await collect(service, request)

        # Assert
        body = json.loads(transport.requests[0].content)
        assert transport.requests[0].url.path == "/api/chat"
        assert body["stream"] is True
        assert body["messages"][0]["images"] == ["QUJD"]
