"""
Health check API endpoints.

Routes: GET /health, GET /

Dependencies: fastapi, chatbox.models.ollama
System role: Relay liveness HTTP API
"""

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from chatbox.models.ollama import RelayHealthResponse

BANNER = "Chatbox relay is running"

router = APIRouter(tags=["health"])


@router.get("/health", response_model=RelayHealthResponse)
async def health_check() -> RelayHealthResponse:
    """Basic health check. Says nothing about the upstream model server."""
    return RelayHealthResponse(status="healthy", message="Backend is healthy")


@router.get("/", response_class=PlainTextResponse)
async def banner() -> str:
    """Plain-text banner for humans poking at the port."""
    return BANNER
