"""
Per-send stream accumulator.

Holds the text of the bot message being streamed for one send operation and
enforces its lifecycle: append-only while loading, frozen afterwards.

Dependencies: chatbox.models.chat
System role: Transient cache mirrored into the Conversation Store per chunk
"""

from dataclasses import dataclass, field

from chatbox.models.chat import (
    Message,
    MessageType,
    Sender,
    detect_message_type,
    new_id,
    utc_now_iso,
)


class AccumulatorClosedError(RuntimeError):
    """Raised when a finished accumulator is written to."""


@dataclass
class StreamAccumulator:
    """
    Accumulated state of one in-flight bot message.

    Attributes:
        conversation_id: Chat the message belongs to
        message_id: Id of the placeholder bot message
        text: Text accumulated so far (including any advisory prefix)
        type: Current message type, promoted to CODE at most once
        is_loading: True until finish() or fail()
        is_error: True after fail()
    """

    conversation_id: str
    message_id: str = field(default_factory=new_id)
    text: str = ""
    type: MessageType = MessageType.MARKDOWN
    timestamp: str = field(default_factory=utc_now_iso)
    is_loading: bool = True
    is_error: bool = False
    chunks: int = 0

    def add_note(self, note: str) -> None:
        """
        Put an advisory note in front of the streamed content.

        Only allowed before the first chunk; the note stays as a permanent
        prefix of the message text.

        Raises:
            AccumulatorClosedError: If the message already finished
            ValueError: If content has already been streamed
        """
        self._ensure_open()
        if self.chunks:
            raise ValueError("Notes must be added before streamed content")
        self.text += note

    def append(self, content: str) -> None:
        """
        Append streamed content and re-derive the message type.

        Args:
            content: Content of one progress event

        Raises:
            AccumulatorClosedError: If the message already finished
        """
        self._ensure_open()
        self.text += content
        self.type = detect_message_type(self.text, self.type)
        self.chunks += 1

    def finish(self) -> None:
        """Mark the message complete; text and type are frozen from here on."""
        self._ensure_open()
        self.is_loading = False

    def fail(self, error: str) -> None:
        """
        Replace the text with an error marker and close the message.

        Args:
            error: Human-readable failure reason
        """
        self._ensure_open()
        self.text = f"Error: {error}"
        self.is_error = True
        self.is_loading = False

    def to_message(self) -> Message:
        """Render the current state as a bot Message."""
        return Message(
            id=self.message_id,
            sender=Sender.BOT,
            text=self.text,
            type=self.type,
            timestamp=self.timestamp,
            is_loading=self.is_loading,
            is_error=self.is_error,
        )

    def _ensure_open(self) -> None:
        if not self.is_loading:
            raise AccumulatorClosedError(f"Message {self.message_id} is no longer streaming")
