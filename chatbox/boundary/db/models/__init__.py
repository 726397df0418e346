"""ORM models."""

from chatbox.boundary.db.models.chat_state_model import ChatStateModel

__all__ = ["ChatStateModel"]
