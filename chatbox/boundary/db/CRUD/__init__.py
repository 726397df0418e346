"""
CRUD operations for database models.

Exports base CRUD class and model-specific CRUD implementations
with pre-instantiated singletons for direct use.

Usage:
    from chatbox.boundary.db.CRUD import chat_state_crud

    payload = await chat_state_crud.get_payload(db, "v1")
"""

from chatbox.boundary.db.CRUD.base_crud import BaseCRUD
from chatbox.boundary.db.CRUD.chat_state_crud import ChatStateCRUD, chat_state_crud

__all__ = [
    "BaseCRUD",
    "ChatStateCRUD",
    "chat_state_crud",
]
