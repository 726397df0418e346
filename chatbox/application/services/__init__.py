"""Service orchestrators."""

from .relay_service import RelayService

__all__ = [
    "RelayService",
]
