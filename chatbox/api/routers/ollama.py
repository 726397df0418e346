"""
Upstream model server API endpoints.

Routes:
- GET /api/ollama/health - Upstream reachability
- GET /api/ollama/tags - Installed models
- POST /api/ollama/chat - Streaming chat relay (Server-Sent Events)

Dependencies: fastapi, chatbox.application.services.relay_service
System role: Relay HTTP API
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse

from chatbox.api.deps import get_ollama_client, get_relay_service
from chatbox.application.services import RelayService
from chatbox.application.services.relay_service import RelayEventStream
from chatbox.boundary.ollama import OllamaClient
from chatbox.core.exceptions import UpstreamResponseError, UpstreamUnavailableError
from chatbox.models.common import ErrorResponse
from chatbox.models.ollama import ChatRelayRequest, OllamaModel, UpstreamHealthResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/ollama", tags=["ollama"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class RelayStreamingResponse(StreamingResponse):
    """
    SSE response that closes the relay stream however the response ends.

    Starlette only closes a body iterator it has started; a disconnect
    during http.response.start would otherwise leave the upstream open.
    """

    def __init__(self, content: RelayEventStream, **kwargs) -> None:
        super().__init__(content, media_type="text/event-stream", headers=SSE_HEADERS, **kwargs)
        self.relay_stream = content

    async def __call__(self, scope, receive, send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.relay_stream.aclose()


@router.get("/health", response_model=UpstreamHealthResponse)
async def upstream_health(
    ollama_client: OllamaClient = Depends(get_ollama_client),
):
    """
    Check whether the upstream model server answers.

    Returns:
        UpstreamHealthResponse: 200 "available", or 503 "unavailable" with the error
    """
    try:
        await ollama_client.ping()
    except UpstreamUnavailableError as e:
        logger.error(
            "Ollama health check failed",
            extra={"upstream_url": ollama_client.base_url, "error_msg": e.message},
        )
        body = UpstreamHealthResponse(
            status="unavailable",
            url=ollama_client.base_url,
            error="Ollama server is not available",
            details=e.message,
        )
        return JSONResponse(status_code=503, content=body.model_dump())

    return UpstreamHealthResponse(status="available", url=ollama_client.base_url)


@router.get("/tags", response_model=list[OllamaModel])
async def list_models(
    ollama_client: OllamaClient = Depends(get_ollama_client),
):
    """
    List the models installed on the upstream server.

    Returns:
        list[OllamaModel]: Models; 503 if unreachable, 500 on any other upstream failure
    """
    try:
        models = await ollama_client.list_models()
    except UpstreamUnavailableError as e:
        logger.error("Error fetching Ollama models", extra={"error_msg": e.message})
        body = ErrorResponse(message="Ollama server is not available", details=e.message)
        return JSONResponse(status_code=503, content=body.model_dump())
    except UpstreamResponseError as e:
        logger.error(
            "Error fetching Ollama models",
            extra={"status_code": e.status_code, "error_msg": e.message},
        )
        body = ErrorResponse(message="Failed to fetch models", details=e.message)
        return JSONResponse(status_code=500, content=body.model_dump())

    logger.info("Fetched Ollama models", extra={"model_count": len(models)})
    return models


@router.post("/chat")
async def chat(
    payload: ChatRelayRequest,
    request: Request,
    relay_service: RelayService = Depends(get_relay_service),
) -> StreamingResponse:
    """
    Relay a chat request and stream the reply as Server-Sent Events.

    Validation and upstream connection errors are raised before the response
    starts and become JSON errors (400, 503 or 502) via the app's handlers.

    Args:
        payload: Relay request body
        request: Incoming request, used to detect client disconnects
        relay_service: Relay service (injected via Depends)

    Returns:
        RelayStreamingResponse: text/event-stream of "data: <json>" events
    """
    upstream = await relay_service.open_stream(payload)
    return RelayStreamingResponse(
        relay_service.relay(upstream, is_disconnected=request.is_disconnected)
    )
