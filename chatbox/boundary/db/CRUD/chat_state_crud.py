"""
Chat state CRUD operations.

Dependencies: sqlalchemy, chatbox.boundary.db.models
System role: Read/write of the persisted Conversation Store blob
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from chatbox.boundary.db.CRUD.base_crud import BaseCRUD
from chatbox.boundary.db.models.chat_state_model import ChatStateModel


class ChatStateCRUD(BaseCRUD[ChatStateModel]):
    """CRUD operations for ChatStateModel."""

    def __init__(self) -> None:
        super().__init__(ChatStateModel)

    async def get_payload(self, session: AsyncSession, key: str) -> dict[str, Any] | None:
        """
        Load the payload stored under a schema version key.

        Args:
            session: Async database session
            key: Schema version key

        Returns:
            dict | None: Stored payload, or None if nothing was saved yet
        """
        row = await self.get(session, key)
        return dict(row.payload) if row is not None else None

    async def upsert(
        self,
        session: AsyncSession,
        key: str,
        payload: dict[str, Any],
    ) -> ChatStateModel:
        """
        Insert or replace the payload stored under a key.

        The caller commits.

        Args:
            session: Async database session
            key: Schema version key
            payload: JSON-serializable blob

        Returns:
            ChatStateModel: The written row
        """
        row = await self.get(session, key)
        if row is None:
            return await self.create(session, key=key, payload=payload)
        row.payload = payload
        await session.flush()
        return row


chat_state_crud = ChatStateCRUD()
