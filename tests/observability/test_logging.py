"""
Test suite for logging helpers and correlation ID propagation.

System role: Verification of observability utilities
"""

import logging

from chatbox.observability.correlation import (
    clear_correlation_id,
    get_correlation_id,
    set_correlation_id,
)
from chatbox.observability.log_utils import log_with_context, preview, safe_log_value
from chatbox.observability.logger import CorrelationIdFilter


class TestCorrelationId:
    """Test suite for correlation ID context helpers."""

    def test_set_without_value_should_generate_id(self) -> None:
        # Act
        value = set_correlation_id()

        # Assert
        assert value
        assert get_correlation_id() == value
        clear_correlation_id()
        assert get_correlation_id() == ""

    def test_filter_should_attach_current_id(self) -> None:
        # Arrange
        set_correlation_id("req-1")
        record = logging.LogRecord("t", logging.INFO, __file__, 1, "msg", None, None)

        # Act
        CorrelationIdFilter().filter(record)

        # Assert
        assert record.correlation_id == "req-1"
        clear_correlation_id()

    def test_filter_outside_request_should_use_placeholder(self) -> None:
        record = logging.LogRecord("t", logging.INFO, __file__, 1, "msg", None, None)
        CorrelationIdFilter().filter(record)
        assert record.correlation_id == "-"


class TestLogUtils:
    """Test suite for log_utils helpers."""

    def test_preview_should_truncate_long_text(self) -> None:
        assert preview("x" * 100, limit=10) == "xxxxxxx..."
        assert preview("short") == "short"

    def test_safe_log_value_should_summarise_collections(self) -> None:
        assert safe_log_value([1, 2, 3]) == "list(3 items)"
        assert safe_log_value({"a": 1}) == "dict(1 keys)"
        assert safe_log_value(b"\x00\x01") == "bytes(2)"
        assert safe_log_value(None) == "None"

    def test_log_with_context_should_attach_sanitised_extra(self, caplog) -> None:
        # Arrange
        logger = logging.getLogger("chatbox.test")

        # Act
        with caplog.at_level(logging.INFO, logger="chatbox.test"):
            log_with_context(logger, logging.INFO, "hello", images=["a", "b"])

        # Assert
        assert caplog.records[0].images == "list(2 items)"
