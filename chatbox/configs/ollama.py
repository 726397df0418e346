"""
Upstream model server configuration.

Dependencies: pydantic_settings
System role: Connection settings for the Ollama-compatible inference server
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class OllamaSettings(BaseSettings):
    """Settings for reaching the upstream model server."""

    model_config = SettingsConfigDict(
        env_prefix="OLLAMA_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    base_url: str = Field(
        default="http://localhost:11434",
        description="Base URL of the upstream model server",
    )
    connect_timeout: float = Field(
        default=5.0,
        description="Seconds allowed to establish the upstream connection",
    )
    read_timeout: float | None = Field(
        default=None,
        description="Seconds between upstream bytes before giving up (None waits for the transport)",
    )
