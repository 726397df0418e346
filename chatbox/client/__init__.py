"""
Chat client library.

Talks to the relay over HTTP: connection tracking, streaming consumption of
chat replies, and the persisted Conversation Store.
"""

from .accumulator import StreamAccumulator
from .chat_store import ChatStore
from .connection import ConnectionStatus, RelayConnection
from .image_encoder import encode_image, encode_image_file
from .model_utils import get_model_capabilities, is_multimodal_model
from .sse_consumer import ChatStreamConsumer, SendOutcome, SendState, SSEEventParser
from .transfer import export_messages, parse_import

__all__ = [
    "ChatStore",
    "ChatStreamConsumer",
    "ConnectionStatus",
    "RelayConnection",
    "SSEEventParser",
    "SendOutcome",
    "SendState",
    "StreamAccumulator",
    "encode_image",
    "encode_image_file",
    "export_messages",
    "get_model_capabilities",
    "is_multimodal_model",
    "parse_import",
]
