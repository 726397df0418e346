"""
Dependency injection container.

Factory functions for FastAPI dependencies.

Dependencies: chatbox.configs, chatbox.application, chatbox.boundary
System role: DI container for service injection
"""

from functools import lru_cache

from fastapi import Depends

from chatbox.application.services import RelayService
from chatbox.boundary.ollama import OllamaClient
from chatbox.configs import Settings, get_settings


@lru_cache
def get_settings_dependency() -> Settings:
    """Get settings singleton."""
    return get_settings()


@lru_cache
def get_ollama_client() -> OllamaClient:
    """
    Get the upstream client singleton.

    The client holds no connection pool; every call opens its own
    httpx client, so one instance serves all requests.

    Returns:
        OllamaClient: Client configured from OllamaSettings
    """
    settings = get_settings_dependency().ollama
    return OllamaClient(
        base_url=settings.base_url,
        connect_timeout=settings.connect_timeout,
        read_timeout=settings.read_timeout,
    )


def get_relay_service(
    ollama_client: OllamaClient = Depends(get_ollama_client),
) -> RelayService:
    """
    Get relay service instance.

    Args:
        ollama_client: Upstream client (injected via Depends)

    Returns:
        RelayService: Relay service bound to the upstream client
    """
    return RelayService(ollama_client=ollama_client)

