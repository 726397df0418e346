"""
API routes module.

FastAPI routers and middleware for the relay's HTTP endpoints.
"""

from fastapi import APIRouter

from .routers import health_router, ollama_router

api_router = APIRouter()

# Include all routers
api_router.include_router(health_router)
api_router.include_router(ollama_router)

__all__ = ["api_router"]
