"""
SQLAlchemy declarative base and the save-time mixin.

Dependencies: sqlalchemy
System role: Foundation for the chat state table
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Declarative base; every table registered here is created by create_all_tables()."""


class TimestampMixin:
    """
    Row timestamps for persisted state.

    Attributes:
        created_at: First save of the row (UTC)
        updated_at: Latest save of the row (UTC), refreshed on every upsert
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )
