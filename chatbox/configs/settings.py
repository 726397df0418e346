"""
Unified application settings.

Aggregates all configuration modules into a single Settings class.
Provides dependency injection factory for FastAPI.

Dependencies: All config modules
System role: Central configuration aggregator for the application
"""

from functools import lru_cache

from chatbox.configs.base import BaseSettings
from chatbox.configs.client import ClientSettings
from chatbox.configs.database import DatabaseSettings
from chatbox.configs.ollama import OllamaSettings
from chatbox.configs.throttle import ThrottleSettings


class Settings(BaseSettings):
    """Unified application settings aggregating all config modules."""

    # Aggregated settings
    database: DatabaseSettings = DatabaseSettings()
    ollama: OllamaSettings = OllamaSettings()
    throttle: ThrottleSettings = ThrottleSettings()
    client: ClientSettings = ClientSettings()


@lru_cache
def get_settings() -> Settings:
    """
    Get application settings singleton.

    Returns Settings instance, cached for dependency injection.
    Environment variables loaded once at startup.

    Returns:
        Settings: Application settings instance

    Usage:
        from chatbox.configs import get_settings
        settings = get_settings()
    """
    return Settings()
