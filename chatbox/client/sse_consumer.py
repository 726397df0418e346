"""
SSE stream consumer.

Sends one chat turn to the relay and turns the relay's Server-Sent Events
into incremental updates of a single bot message in the Conversation Store.

Flow:
1. Guard: a model is selected, the relay is connected, a conversation is
   active and has no send in flight
2. Persist the user message and a loading bot placeholder
3. POST the conversation history to the relay and parse SSE events as bytes
   arrive (partial events are buffered across reads)
4. Append every content chunk and persist the message after each one
5. Finalise the message as completed, or as an error bubble on failure

Dependencies: httpx, chatbox.client, chatbox.models
System role: SSE Stream Consumer
"""

import asyncio
import codecs
import json
import logging
from dataclasses import dataclass
from enum import Enum

import httpx

from chatbox.client.accumulator import StreamAccumulator
from chatbox.client.chat_store import ChatStore
from chatbox.client.connection import RelayConnection
from chatbox.client.model_utils import is_multimodal_model
from chatbox.configs.client import ClientSettings
from chatbox.core.exceptions import ClientStreamError
from chatbox.models.chat import Message, MessageType, Sender
from chatbox.models.streaming import RelayEvent, RelayEventKind
from chatbox.observability.log_utils import log_with_context, preview

logger = logging.getLogger(__name__)

CHAT_PATH = "/api/ollama/chat"

IMAGE_UNSUPPORTED_NOTE = (
    "⚠️ You've attached an image, but the current model doesn't appear to support image input. "
    "Please select a multimodal model (like llava, bakllava or others that support images) "
    "for best results.\n\n"
)
IMAGE_ATTACHED_NOTE = (
    "📷 Image attached. This model supports image input and should respond to the image content.\n\n"
)


class SendState(str, Enum):
    """Lifecycle of one send operation."""

    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class SendOutcome:
    """Result of one send: final state plus the bot message as persisted."""

    conversation_id: str
    state: SendState
    message: Message


class SSEEventParser:
    """
    Incremental SSE parser.

    Bytes are decoded with an incremental UTF-8 decoder so multi-byte
    characters split across reads survive. Events end at a blank line; an
    event's data lines are joined with newlines.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> list[str]:
        """
        Add one network read.

        Args:
            chunk: Raw response bytes

        Returns:
            list[str]: Data of every event completed by this read
        """
        self._buffer += self._decoder.decode(chunk)
        self._buffer = self._buffer.replace("\r\n", "\n")
        events = []
        while "\n\n" in self._buffer:
            raw, self._buffer = self._buffer.split("\n\n", 1)
            data = self._event_data(raw)
            if data is not None:
                events.append(data)
        return events

    def flush(self) -> list[str]:
        """Return a final event left without its blank-line terminator."""
        self._buffer += self._decoder.decode(b"", final=True)
        raw, self._buffer = self._buffer, ""
        data = self._event_data(raw.replace("\r\n", "\n"))
        return [data] if data is not None else []

    @staticmethod
    def _event_data(raw: str) -> str | None:
        lines = []
        for line in raw.split("\n"):
            if not line.startswith("data:"):
                continue
            value = line[len("data:"):]
            lines.append(value[1:] if value.startswith(" ") else value)
        return "\n".join(lines) if lines else None


class ChatStreamConsumer:
    """
    Sends messages for the active conversation and streams the replies.

    At most one send is in flight per conversation.
    """

    def __init__(
        self,
        store: ChatStore,
        connection: RelayConnection,
        settings: ClientSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize consumer.

        Args:
            store: Conversation store receiving every update
            connection: Relay connection (status and selected model)
            settings: Client settings (defaults from the environment)
            transport: Optional httpx transport, used by tests
        """
        self.store = store
        self.connection = connection
        self.settings = settings or connection.settings
        self._transport = transport
        self._in_flight: set[str] = set()
        self.states: dict[str, SendState] = {}

    @property
    def in_flight(self) -> frozenset[str]:
        """Conversations with a send currently streaming."""
        return frozenset(self._in_flight)

    def state_of(self, chat_id: str) -> SendState:
        """State of the latest send for a conversation (IDLE if none)."""
        return self.states.get(chat_id, SendState.IDLE)

    async def send_message(self, text: str, image: str | None = None) -> SendOutcome | None:
        """
        Send a user turn to the active conversation and stream the reply.

        Args:
            text: User message text
            image: Optional data URL of an attached image

        Returns:
            SendOutcome | None: Outcome, or None if the send was refused by a guard
        """
        model_name = self.connection.selected_model
        chat_id = self.store.active_chat_id

        if not model_name:
            logger.error("Cannot send message: no model selected")
            return None
        if not self.connection.is_connected:
            logger.error(
                "Cannot send message: relay not connected",
                extra={"status": self.connection.status.value},
            )
            return None
        if chat_id is None or self.store.get_chat(chat_id) is None:
            logger.error("Cannot send message: no active chat")
            return None
        if chat_id in self._in_flight:
            logger.error("Cannot send message: a reply is still streaming", extra={"chat_id": chat_id})
            return None

        self._in_flight.add(chat_id)
        try:
            return await self._send(chat_id, model_name, text, image)
        finally:
            self._in_flight.discard(chat_id)

    async def _send(
        self,
        chat_id: str,
        model_name: str,
        text: str,
        image: str | None,
    ) -> SendOutcome:
        history = [message for message in self.store.get_messages(chat_id) if not message.is_error]
        user_message = Message(sender=Sender.USER, text=text, type=MessageType.TEXT, image=image)
        accumulator = StreamAccumulator(conversation_id=chat_id)
        if image:
            accumulator.add_note(
                IMAGE_ATTACHED_NOTE if is_multimodal_model(model_name) else IMAGE_UNSUPPORTED_NOTE
            )

        await self.store.update_chat_messages(
            chat_id,
            [*self.store.get_messages(chat_id), user_message, accumulator.to_message()],
        )

        body = self._build_request(model_name, history, user_message)
        log_with_context(
            logger,
            logging.INFO,
            f"Sending chat message to model: {model_name}",
            chat_id=chat_id,
            history_length=len(history),
            has_image=bool(image),
        )

        state = self.states[chat_id] = SendState.SENDING
        try:
            state = await self._stream(accumulator, body)
        except asyncio.CancelledError:
            logger.info("Send cancelled, keeping partial reply", extra={"chat_id": chat_id})
            if accumulator.is_loading:
                accumulator.finish()
            self.states[chat_id] = SendState.COMPLETED
            await self._sync(accumulator)
            raise
        except (httpx.HTTPError, ClientStreamError) as e:
            message = e.message if isinstance(e, ClientStreamError) else (str(e) or type(e).__name__)
            log_with_context(
                logger,
                logging.ERROR,
                "Error sending message",
                chat_id=chat_id,
                error_type=type(e).__name__,
                error_msg=message,
            )
            accumulator.fail(message)
            state = SendState.FAILED

        self.states[chat_id] = state
        await self._sync(accumulator)
        return SendOutcome(conversation_id=chat_id, state=state, message=accumulator.to_message())

    @staticmethod
    def _build_request(model_name: str, history: list[Message], user_message: Message) -> dict:
        api_messages = [message.to_api_message() for message in history]
        api_messages.append(user_message.to_api_message())
        body: dict = {"model": model_name, "messages": api_messages}
        if user_message.image:
            body["images"] = [{"messageIndex": len(api_messages) - 1, "data": user_message.image}]
        return body

    async def _stream(self, accumulator: StreamAccumulator, body: dict) -> SendState:
        """Run the HTTP exchange; returns COMPLETED or raises on failure."""
        timeout = httpx.Timeout(self.settings.request_timeout, read=None)
        async with httpx.AsyncClient(
            base_url=self.settings.relay_base_url,
            timeout=timeout,
            transport=self._transport,
        ) as client:
            async with client.stream("POST", CHAT_PATH, json=body) as response:
                if not response.is_success:
                    await response.aread()
                    raise ClientStreamError(
                        _relay_error_message(response),
                        details={"status_code": response.status_code},
                    )

                self.states[accumulator.conversation_id] = SendState.STREAMING
                parser = SSEEventParser()
                async for chunk in response.aiter_bytes():
                    for data in parser.feed(chunk):
                        if await self._handle_event(accumulator, data):
                            accumulator.finish()
                            return SendState.COMPLETED
                for data in parser.flush():
                    if await self._handle_event(accumulator, data):
                        break

        # Stream ended, with or without a done event.
        accumulator.finish()
        return SendState.COMPLETED

    async def _handle_event(self, accumulator: StreamAccumulator, data: str) -> bool:
        """
        Apply one SSE event to the accumulator.

        Returns:
            bool: True if the event ends the stream

        Raises:
            ClientStreamError: If the relay reported an upstream failure
        """
        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            logger.warning("Skipping malformed stream event", extra={"data": preview(data)})
            return False
        if not isinstance(payload, dict):
            logger.warning("Skipping non-object stream event", extra={"data": preview(data)})
            return False

        event = RelayEvent.from_payload(payload)
        if event.kind is RelayEventKind.PARSE_ERROR:
            logger.warning(
                "Relay could not parse an upstream line",
                extra={"line": preview(str(payload.get("line", "")))},
            )
            return False
        if event.kind is RelayEventKind.ERROR:
            raise ClientStreamError(event.error or "Unknown stream error")

        if event.content:
            accumulator.append(event.content)
            await self._sync(accumulator)
        return event.kind is RelayEventKind.DONE

    async def _sync(self, accumulator: StreamAccumulator) -> bool:
        """Write the accumulated bot message into its conversation."""
        current = self.store.get_messages(accumulator.conversation_id)
        updated = accumulator.to_message()
        messages = [updated if message.id == updated.id else message for message in current]
        return await self.store.update_chat_messages(accumulator.conversation_id, messages)


def _relay_error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"HTTP error! status: {response.status_code}"
