"""
Chat state adapter.

Loads and saves the Conversation Store blob through ChatStateCRUD, one short
transaction per call.

Dependencies: sqlalchemy, chatbox.boundary.db
System role: Persistence adapter for the client-side Conversation Store
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import async_sessionmaker

from chatbox.boundary.db.CRUD.chat_state_crud import chat_state_crud

logger = logging.getLogger(__name__)

STATE_SCHEMA_VERSION = "chatbox-state-v1"


class ChatStateAdapter:
    """
    Persistence port used by ChatStore.

    Every save() is committed before it returns, so a crash after a chunk
    has been processed loses at most the chunk being processed.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        key: str = STATE_SCHEMA_VERSION,
    ) -> None:
        """
        Initialize chat state adapter.

        Args:
            session_factory: Async session factory bound to the state database
            key: Schema version key the blob is stored under
        """
        self.session_factory = session_factory
        self.key = key

    async def load(self) -> dict[str, Any] | None:
        """
        Load the persisted blob.

        Returns:
            dict | None: Stored blob, or None on first run
        """
        async with self.session_factory() as db:
            return await chat_state_crud.get_payload(db, self.key)

    async def save(self, payload: dict[str, Any]) -> None:
        """
        Persist the blob, replacing any previous version.

        Args:
            payload: Serialized store state
        """
        async with self.session_factory() as db:
            await chat_state_crud.upsert(db, self.key, payload)
            await db.commit()
        logger.debug("Chat state saved", extra={"state_key": self.key})
