"""
Throttle gate configuration.

Bounds concurrent relay sessions on /api/ollama/* and paces admissions.

Dependencies: pydantic_settings
System role: Rate limiting configuration
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ThrottleSettings(BaseSettings):
    """Concurrency and pacing limits for upstream-bound requests."""

    model_config = SettingsConfigDict(
        env_prefix="THROTTLE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    max_concurrent: int = Field(default=3, description="Maximum in-flight requests")
    request_delay_ms: int = Field(
        default=333,
        description="Minimum spacing between admissions and queue poll interval (ms)",
    )
    max_queue_depth: int = Field(
        default=50,
        description="Maximum number of delayed requests before answering 429",
    )
    stats_log_interval_seconds: int = Field(
        default=300,
        description="Interval for periodic request stats logging",
    )
