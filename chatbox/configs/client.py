"""
Client-side configuration.

Settings used by the chat client library when talking to the relay.

Dependencies: pydantic_settings
System role: Relay client configuration (health backoff, base URL)
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Relay client configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CHATBOX_CLIENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    relay_base_url: str = Field(
        default="http://localhost:3001",
        description="Base URL of the relay server",
    )
    max_connection_retries: int = Field(
        default=5,
        description="Health check attempts before giving up",
    )
    max_backoff_seconds: float = Field(
        default=30.0,
        description="Upper bound for exponential health check backoff",
    )
    request_timeout: float = Field(
        default=10.0,
        description="Timeout for non-streaming relay calls in seconds",
    )
