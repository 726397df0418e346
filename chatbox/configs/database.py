"""
Database configuration settings.

Manages the connection URL for the conversation store's persisted state.
SQLite through aiosqlite by default; any SQLAlchemy async URL works.

Dependencies: pydantic, pydantic_settings
System role: Persistence configuration for the chat state blob
"""

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from chatbox.configs.base import BaseSettings


class DatabaseSettings(BaseSettings):
    """Chat state database configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CHATBOX_DB_",
        case_sensitive=False,
        extra="ignore",
    )

    url: str = Field(
        default="sqlite+aiosqlite:///./chatbox.db",
        description="SQLAlchemy async database URL",
    )
    echo_sql: bool = Field(default=False, description="Echo SQL statements to logs")
