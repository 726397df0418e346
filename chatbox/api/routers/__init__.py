"""API routers."""

from .health import router as health_router
from .ollama import router as ollama_router

__all__ = [
    "health_router",
    "ollama_router",
]
