"""
Chat state ORM model.

One row per schema version holding the serialized Conversation Store.

Dependencies: sqlalchemy, chatbox.boundary.db.base
System role: Durable storage for the client's conversation map
"""

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from chatbox.boundary.db.base import Base, TimestampMixin


class ChatStateModel(Base, TimestampMixin):
    """
    Persisted Conversation Store blob.

    Attributes:
        key: Schema version the payload was written with (primary key)
        payload: {"version": ..., "chats": {model_name: [chat, ...]}}
        created_at: Row creation timestamp (UTC)
        updated_at: Last save timestamp (UTC)
    """

    __tablename__ = "chat_state"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    payload: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        doc="Serialized conversations map keyed by model name",
    )
