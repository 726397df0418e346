"""Application adapters."""

from chatbox.application.adapters.chat_state_adapter import (
    STATE_SCHEMA_VERSION,
    ChatStateAdapter,
)

__all__ = ["ChatStateAdapter", "STATE_SCHEMA_VERSION"]
