"""
Common response models.

Error body shared by every non-streaming failure of the relay.

Dependencies: pydantic
System role: Common API response structures
"""

from typing import Any

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error response schema."""

    error: bool = True
    message: str = Field(description="Error message")
    details: Any | None = Field(default=None, description="Additional error context")
