"""
Database boundary layer: ORM models, CRUD operations, and connection management.

Exports:
  - Base, TimestampMixin: Model building blocks
  - get_async_engine(), get_async_session_factory(), get_async_db(): Async connection management
  - create_all_tables(): Idempotent schema creation
  - ChatStateModel, chat_state_crud: Persisted Conversation Store blob

Dependencies: sqlalchemy, aiosqlite, chatbox.configs
System role: Database adapter providing durable storage for chat state.
"""

from chatbox.boundary.db.base import Base, TimestampMixin
from chatbox.boundary.db.connection import (
    create_all_tables,
    get_async_db,
    get_async_engine,
    get_async_session_factory,
)
from chatbox.boundary.db.models import ChatStateModel
from chatbox.boundary.db.CRUD import BaseCRUD, ChatStateCRUD, chat_state_crud

__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    # Connection management
    "create_all_tables",
    "get_async_db",
    "get_async_engine",
    "get_async_session_factory",
    # Models and CRUD
    "ChatStateModel",
    "BaseCRUD",
    "ChatStateCRUD",
    "chat_state_crud",
]
