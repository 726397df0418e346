"""Upstream model server boundary."""

from chatbox.boundary.ollama.ollama_client import OllamaClient, UpstreamStream

__all__ = ["OllamaClient", "UpstreamStream"]
