"""
Test suite for chat export and import.

System role: Verification of the conversation file format
"""

import json

import pytest

from chatbox.client.transfer import export_messages, parse_import
from chatbox.core.exceptions import ImportFormatError
from chatbox.models.chat import Message, MessageType, Sender


class TestExportMessages:
    """Test suite for export_messages()."""

    def test_export_should_use_camel_case_and_keep_images(self) -> None:
        # Arrange
        messages = [
            Message(sender=Sender.USER, text="look", image="data:image/png;base64,QUJD"),
            Message(sender=Sender.BOT, text="```py\nx\n```", type=MessageType.CODE),
        ]

        # Act
        exported = json.loads(export_messages(messages))

        # Assert
        assert exported[0]["image"] == "data:image/png;base64,QUJD"
        assert exported[0]["isLoading"] is False
        assert exported[1]["type"] == "code"
        assert "role" not in exported[0] and "content" not in exported[0]

    def test_export_should_be_indented(self) -> None:
        text = export_messages([Message(sender=Sender.USER, text="hi")])
        assert text.startswith("[\n  {")

    def test_exported_file_should_import_back(self) -> None:
        # Arrange
        original = [Message(sender=Sender.USER, text="hi"), Message(sender=Sender.BOT, text="hello")]

        # Act
        imported = parse_import(export_messages(original))

        # Assert
        assert [(m.id, m.sender, m.text) for m in imported] == [
            (m.id, m.sender, m.text) for m in original
        ]


class TestParseImport:
    """Test suite for parse_import()."""

    def test_missing_fields_should_get_defaults(self) -> None:
        """Test a bare object becomes a bot text message with fresh id and timestamp."""
        # Act
        [message] = parse_import('[{}]')

        # Assert
        assert message.sender is Sender.BOT
        assert message.type is MessageType.TEXT
        assert message.text == ""
        assert message.image is None
        assert message.id
        assert message.timestamp

    def test_explicit_nulls_should_count_as_missing(self) -> None:
        [message] = parse_import('[{"id": null, "sender": null, "text": null}]')
        assert message.sender is Sender.BOT
        assert message.text == ""

    def test_each_message_should_get_a_unique_default_id(self) -> None:
        first, second = parse_import("[{}, {}]")
        assert first.id != second.id

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            '{"messages": []}',
            '"just a string"',
        ],
    )
    def test_non_array_content_should_raise(self, raw: str) -> None:
        with pytest.raises(ImportFormatError):
            parse_import(raw)

    def test_non_object_entry_should_raise_with_index(self) -> None:
        # Act / Assert
        with pytest.raises(ImportFormatError) as exc_info:
            parse_import('[{"text": "ok"}, 42]')
        assert exc_info.value.details["index"] == 1

    def test_invalid_sender_should_raise(self) -> None:
        with pytest.raises(ImportFormatError):
            parse_import('[{"sender": "robot"}]')

    def test_wire_fields_should_be_ignored(self) -> None:
        [message] = parse_import('[{"role": "user", "content": "x", "sender": "user", "text": "hi"}]')
        assert (message.sender, message.text) == (Sender.USER, "hi")

    def test_loading_and_error_flags_should_be_dropped(self) -> None:
        """Test a chat exported mid-stream imports with no message left loading."""
        # Arrange
        raw = json.dumps([
            {"text": "hi", "sender": "user"},
            {"text": "partial", "sender": "bot", "isLoading": True},
            {"text": "Error: boom", "sender": "bot", "is_error": True},
        ])

        # Act
        messages = parse_import(raw)

        # Assert
        assert [message.text for message in messages] == ["hi", "partial", "Error: boom"]
        assert not any(message.is_loading for message in messages)
        assert not any(message.is_error for message in messages)
