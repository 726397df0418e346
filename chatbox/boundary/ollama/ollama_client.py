"""
HTTP client for the upstream model server.

Health probe, model listing and streaming chat against an Ollama-compatible
API. Every chat stream gets its own httpx.AsyncClient so that one send owns
exactly one upstream connection and closing the stream closes the socket.

Dependencies: httpx, chatbox.configs, chatbox.models.ollama
System role: Upstream Client Adapter
"""

import logging
from typing import Any

import httpx

from chatbox.core.exceptions import UpstreamResponseError, UpstreamUnavailableError
from chatbox.models.ollama import OllamaModel, UpstreamChatRequest

logger = logging.getLogger(__name__)


def _error_text(exc: Exception) -> str:
    return str(exc) or type(exc).__name__


class UpstreamStream:
    """
    Open streaming response from the upstream /api/chat endpoint.

    read_chunk() pulls one network read at a time so the caller decides when
    (and whether) the next read happens.
    """

    def __init__(self, response: httpx.Response, client: httpx.AsyncClient) -> None:
        """
        Wrap an open streaming response.

        Args:
            response: Response returned by client.send(..., stream=True)
            client: Client owning the connection, closed together with the response
        """
        self._response = response
        self._client = client
        self._chunks = response.aiter_bytes()
        self._closed = False
        self.reads = 0

    @property
    def closed(self) -> bool:
        return self._closed

    async def read_chunk(self) -> bytes | None:
        """
        Read the next chunk of raw bytes.

        Returns:
            bytes | None: Next chunk, or None once the upstream has finished

        Raises:
            httpx.HTTPError: On transport failures while reading
        """
        if self._closed:
            return None
        self.reads += 1
        try:
            return await anext(self._chunks)
        except StopAsyncIteration:
            return None

    async def aclose(self) -> None:
        """Close the response and its connection (idempotent)."""
        if self._closed:
            return
        self._closed = True
        try:
            await self._response.aclose()
        finally:
            await self._client.aclose()


class OllamaClient:
    """Client for the upstream model server."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        connect_timeout: float = 5.0,
        read_timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize upstream client.

        Args:
            base_url: Upstream server base URL
            connect_timeout: Seconds allowed to connect
            read_timeout: Seconds allowed between reads (None = no limit)
            transport: Optional httpx transport (tests inject MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self._timeout = httpx.Timeout(read_timeout, connect=connect_timeout)
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def ping(self) -> None:
        """
        Check that the upstream server answers on its root endpoint.

        Raises:
            UpstreamUnavailableError: If the server cannot be reached or answers with an error
        """
        try:
            async with self._client() as client:
                response = await client.get("/")
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise UpstreamUnavailableError(_error_text(e), url=self.base_url) from e

    async def list_models(self) -> list[OllamaModel]:
        """
        Fetch the models installed on the upstream server.

        Returns:
            list[OllamaModel]: Models reported by /api/tags

        Raises:
            UpstreamUnavailableError: If the server cannot be reached
            UpstreamResponseError: If the server answers with an error status
        """
        try:
            async with self._client() as client:
                response = await client.get("/api/tags")
        except httpx.RequestError as e:
            raise UpstreamUnavailableError(_error_text(e), url=self.base_url) from e

        if response.is_error:
            raise UpstreamResponseError(
                _upstream_message(response),
                status_code=response.status_code,
            )
        data = response.json()
        return [OllamaModel.model_validate(item) for item in data.get("models", [])]

    async def open_chat_stream(self, request: UpstreamChatRequest) -> UpstreamStream:
        """
        Start a streaming chat generation.

        The connection is established and the status line checked before
        returning, so connection failures surface before any SSE bytes are sent.

        Args:
            request: Upstream chat payload (stream=True)

        Returns:
            UpstreamStream: Open stream; the caller must aclose() it

        Raises:
            UpstreamUnavailableError: If the server cannot be reached
            UpstreamResponseError: If the server rejects the request
        """
        client = self._client()
        payload: dict[str, Any] = request.model_dump(exclude_none=True)
        try:
            response = await client.send(
                client.build_request("POST", "/api/chat", json=payload),
                stream=True,
            )
        except httpx.RequestError as e:
            await client.aclose()
            raise UpstreamUnavailableError(_error_text(e), url=self.base_url) from e

        if response.is_error:
            try:
                await response.aread()
                message = _upstream_message(response)
            finally:
                await response.aclose()
                await client.aclose()
            raise UpstreamResponseError(message, status_code=response.status_code)

        logger.debug(
            "Upstream chat stream opened",
            extra={"model": request.model, "status_code": response.status_code},
        )
        return UpstreamStream(response, client)


def _upstream_message(response: httpx.Response) -> str:
    """Extract the upstream's error text from a JSON or plain body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return response.reason_phrase
