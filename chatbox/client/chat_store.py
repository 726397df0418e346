"""
Conversation Store.

Ordered conversations per model plus the active conversation pointer. The
store is the only authority for persisted message state: the streaming
consumer writes the whole message list back after every chunk, and every
mutation is saved through the persistence port before the call returns.

Dependencies: pydantic, chatbox.models.chat, chatbox.application.adapters
System role: Chat History Store
"""

import logging
from collections.abc import Iterable
from typing import Any, Protocol

from chatbox.application.adapters.chat_state_adapter import STATE_SCHEMA_VERSION
from chatbox.models.chat import Chat, Message, Sender, derive_title, utc_now_iso

logger = logging.getLogger(__name__)


class StatePersistence(Protocol):
    """Where the store's blob lives (ChatStateAdapter in production)."""

    async def load(self) -> dict[str, Any] | None: ...

    async def save(self, payload: dict[str, Any]) -> None: ...


class ChatStore:
    """
    Conversations keyed by model name, most recent first.

    A secondary index maps chat id -> model name so lookups by id do not scan
    every model's list. Objects handed in or out are copies; callers never
    share mutable state with the store.
    """

    def __init__(
        self,
        persistence: StatePersistence | None = None,
        schema_version: str = STATE_SCHEMA_VERSION,
    ) -> None:
        """
        Initialize an empty store.

        Args:
            persistence: Where to save state; None keeps the store in memory only
            schema_version: Version tag written into and expected from the blob
        """
        self._persistence = persistence
        self.schema_version = schema_version
        self._chats: dict[str, list[Chat]] = {}
        self._model_by_chat: dict[str, str] = {}
        self.active_chat_id: str | None = None

    @classmethod
    async def load(
        cls,
        persistence: StatePersistence,
        schema_version: str = STATE_SCHEMA_VERSION,
    ) -> "ChatStore":
        """
        Build a store from persisted state.

        A blob written with a different schema version is ignored. The active
        chat selection is not persisted and starts out empty. Bot messages
        saved while still loading had their send cut off by the restart and
        come back finished, keeping the text received so far.

        Args:
            persistence: Persistence port to read from and save to
            schema_version: Expected version tag

        Returns:
            ChatStore: Restored store
        """
        store = cls(persistence, schema_version)
        blob = await persistence.load()
        if not blob:
            return store
        if blob.get("version") != schema_version:
            logger.warning(
                "Ignoring persisted chat state with unknown schema version",
                extra={"found_version": blob.get("version"), "expected_version": schema_version},
            )
            return store

        for model_name, entries in (blob.get("chats") or {}).items():
            store._chats[model_name] = [Chat.model_validate(entry) for entry in entries]
        store._reindex()
        settled = store._settle_loading_messages()
        if settled:
            logger.warning(
                "Finished messages left loading by an interrupted send",
                extra={"message_count": settled},
            )
        logger.info(
            "Chat state restored",
            extra={"model_count": len(store._chats), "chat_count": len(store._model_by_chat)},
        )
        return store

    # ── Queries ────────────────────────────────────────────────────

    @property
    def model_names(self) -> list[str]:
        return list(self._chats)

    def snapshot(self) -> dict[str, Any]:
        """Serialize the conversations map (never the active selection)."""
        return {
            "version": self.schema_version,
            "chats": {
                model_name: [chat.to_record() for chat in chats]
                for model_name, chats in self._chats.items()
            },
        }

    def chats_for_model(self, model_name: str) -> list[Chat]:
        """Copies of a model's conversations, most recent first."""
        return [chat.model_copy(deep=True) for chat in self._chats.get(model_name, [])]

    def get_chat(self, chat_id: str) -> Chat | None:
        """Copy of one conversation, or None if it does not exist."""
        chat = self._find(chat_id)
        return chat.model_copy(deep=True) if chat is not None else None

    def get_messages(self, chat_id: str) -> list[Message]:
        """Copies of a conversation's messages ([] for unknown ids)."""
        chat = self._find(chat_id)
        if chat is None:
            return []
        return [message.model_copy(deep=True) for message in chat.messages]

    def get_active_chat(self) -> Chat | None:
        """Copy of the active conversation, if any."""
        return self.get_chat(self.active_chat_id) if self.active_chat_id else None

    # ── Mutations ──────────────────────────────────────────────────

    async def create_chat(self, model_name: str) -> Chat:
        """
        Create a conversation, put it first in the model's list and activate it.

        Args:
            model_name: Model the conversation is scoped to

        Returns:
            Chat: Copy of the new conversation
        """
        chat = self._create(model_name)
        await self._persist()
        logger.info("Chat created", extra={"chat_id": chat.id, "model": model_name})
        return chat.model_copy(deep=True)

    def set_active_chat(self, chat_id: str | None) -> None:
        """
        Select the active conversation.

        Raises:
            KeyError: If chat_id is neither None nor a known conversation
        """
        if chat_id is not None and chat_id not in self._model_by_chat:
            raise KeyError(chat_id)
        self.active_chat_id = chat_id

    async def ensure_active_chat(self, model_name: str) -> Chat:
        """
        Make sure a conversation of this model is active.

        Keeps the current selection if it already belongs to the model,
        otherwise activates the model's most recent conversation, creating one
        if the model has none.

        Args:
            model_name: Newly selected model

        Returns:
            Chat: Copy of the active conversation
        """
        if self.active_chat_id and self._model_by_chat.get(self.active_chat_id) == model_name:
            return self.get_chat(self.active_chat_id)
        chats = self._chats.get(model_name)
        if chats:
            self.active_chat_id = chats[0].id
            return chats[0].model_copy(deep=True)
        return await self.create_chat(model_name)

    async def update_chat_messages(self, chat_id: str, messages: Iterable[Message]) -> bool:
        """
        Replace a conversation's message list wholesale.

        Refreshes `updated` and derives the title from the first user message
        while the title is still the auto-generated placeholder.

        Args:
            chat_id: Conversation to update
            messages: New message list

        Returns:
            bool: False if the conversation no longer exists (nothing changes)
        """
        chat = self._find(chat_id)
        if chat is None:
            logger.debug("Ignoring message update for unknown chat", extra={"chat_id": chat_id})
            return False
        self._replace_messages(chat, messages)
        await self._persist()
        return True

    async def rename_chat(self, chat_id: str, title: str) -> bool:
        """
        Set a manual title; later messages never overwrite it.

        Returns:
            bool: False if the conversation does not exist
        """
        chat = self._find(chat_id)
        if chat is None:
            return False
        chat.title = title
        chat.title_is_manual = True
        await self._persist()
        return True

    async def delete_chat(self, chat_id: str) -> bool:
        """
        Delete a conversation.

        If it was active, the model's first remaining conversation becomes
        active (or None when the model has no conversations left).

        Returns:
            bool: False if the conversation does not exist
        """
        model_name = self._model_by_chat.pop(chat_id, None)
        if model_name is None:
            return False
        chats = self._chats[model_name]
        chats[:] = [chat for chat in chats if chat.id != chat_id]
        if self.active_chat_id == chat_id:
            self.active_chat_id = chats[0].id if chats else None
        await self._persist()
        logger.info("Chat deleted", extra={"chat_id": chat_id, "model": model_name})
        return True

    async def clear_chats_for_model(self, model_name: str) -> int:
        """
        Delete every conversation of a model.

        Resets the active selection if it pointed at one of them.

        Returns:
            int: Number of conversations removed
        """
        chats = self._chats.get(model_name)
        if not chats:
            return 0
        removed = len(chats)
        for chat in chats:
            self._model_by_chat.pop(chat.id, None)
            if chat.id == self.active_chat_id:
                self.active_chat_id = None
        self._chats[model_name] = []
        await self._persist()
        return removed

    async def import_chat(self, model_name: str, messages: Iterable[Message]) -> Chat:
        """
        Create a new active conversation holding imported messages.

        Args:
            model_name: Model to file the conversation under
            messages: Validated messages (see chatbox.client.transfer)

        Returns:
            Chat: Copy of the new conversation
        """
        chat = self._create(model_name)
        self._replace_messages(chat, messages)
        await self._persist()
        logger.info(
            "Chat imported",
            extra={"chat_id": chat.id, "model": model_name, "message_count": len(chat.messages)},
        )
        return chat.model_copy(deep=True)

    # ── Internals ──────────────────────────────────────────────────

    def _find(self, chat_id: str | None) -> Chat | None:
        model_name = self._model_by_chat.get(chat_id) if chat_id else None
        if model_name is None:
            return None
        return next((chat for chat in self._chats[model_name] if chat.id == chat_id), None)

    def _create(self, model_name: str) -> Chat:
        chats = self._chats.setdefault(model_name, [])
        chat = Chat(title=f"Chat {len(chats) + 1}", model_name=model_name)
        chats.insert(0, chat)
        self._model_by_chat[chat.id] = model_name
        self.active_chat_id = chat.id
        return chat

    @staticmethod
    def _replace_messages(chat: Chat, messages: Iterable[Message]) -> None:
        chat.messages = [message.model_copy(deep=True) for message in messages]
        chat.updated = utc_now_iso()
        if not chat.has_placeholder_title:
            return
        first_user = next((m for m in chat.messages if m.sender is Sender.USER), None)
        if first_user is not None and first_user.text:
            chat.title = derive_title(first_user.text)

    def _settle_loading_messages(self) -> int:
        settled = 0
        for chats in self._chats.values():
            for chat in chats:
                for message in chat.messages:
                    if message.is_loading:
                        message.is_loading = False
                        settled += 1
        return settled

    def _reindex(self) -> None:
        self._model_by_chat = {
            chat.id: model_name
            for model_name, chats in self._chats.items()
            for chat in chats
        }

    async def _persist(self) -> None:
        if self._persistence is not None:
            await self._persistence.save(self.snapshot())
