"""API-specific dependencies."""

# Re-export common dependencies
from .dependencies import (
    get_ollama_client,
    get_relay_service,
    get_settings_dependency,
)

__all__ = [
    "get_ollama_client",
    "get_relay_service",
    "get_settings_dependency",
]
