"""Tests for structured logging."""

import json
import logging
import sys

from tunebridge.infrastructure.observability.logging import (
    CompactExceptionFormatter,
    CorrelationIdFilter,
    CustomJsonFormatter,
    configure_logging,
    get_correlation_id,
    redact_secrets,
    set_correlation_id,
)


def make_record(msg: str, *args: object) -> logging.LogRecord:
    return logging.LogRecord("tunebridge.test", logging.INFO, __file__, 10, msg, args, None)


class TestCorrelationId:
    """Test correlation ID functionality."""

    def test_set_and_get_correlation_id(self):
        """Test setting and getting correlation ID."""
        test_id = "test-123-abc"
        result = set_correlation_id(test_id)
        assert result == test_id
        assert get_correlation_id() == test_id

    def test_set_correlation_id_generates_uuid_when_none(self):
        """Test that setting None generates a UUID."""
        result = set_correlation_id(None)
        assert result is not None
        assert len(result) > 0
        assert get_correlation_id() == result

    def test_filter_adds_correlation_id(self):
        """The filter copies the context value onto every record."""
        set_correlation_id("job-42")
        record = make_record("hello")
        assert CorrelationIdFilter().filter(record) is True
        assert record.correlation_id == "job-42"


class TestRedaction:
    """Plex tokens travel in query strings and must not reach log output."""

    def test_redact_secrets(self):
        text = "GET https://plex:32400/search?query=x&X-Plex-Token=abc123&type=10"
        assert redact_secrets(text) == "GET https://plex:32400/search?query=x&X-Plex-Token=***&type=10"

    def test_compact_formatter_redacts(self):
        formatter = CompactExceptionFormatter("%(message)s")
        record = make_record("failed: %s", "https://plex/?X-Plex-Token=secret")
        assert "secret" not in formatter.format(record)

    def test_json_formatter_redacts(self):
        formatter = CustomJsonFormatter("%(message)s")
        record = make_record("failed: %s", "https://plex/?X-Plex-Token=secret")
        output = formatter.format(record)
        assert "secret" not in output
        assert json.loads(output)["level"] == "INFO"


class TestCompactExceptionFormatter:
    def test_shows_root_cause_first(self):
        formatter = CompactExceptionFormatter("%(message)s")
        try:
            try:
                raise ValueError("inner")
            except ValueError as e:
                raise RuntimeError("outer") from e
        except RuntimeError:
            text = formatter.formatException(sys.exc_info())
        lines = [line for line in text.splitlines() if line.startswith("╰─►")]
        assert lines == ["╰─► ValueError: inner", "╰─► RuntimeError: outer"]


class TestLoggingConfiguration:
    """Test logging configuration."""

    def test_configure_logging_debug_level(self):
        """Test configuring logging with DEBUG level."""
        configure_logging(log_level="DEBUG", json_format=False, app_name="test-app")
        logger = logging.getLogger("test")
        assert logger.getEffectiveLevel() <= logging.DEBUG

    def test_configure_logging_info_level(self):
        """Test configuring logging with INFO level."""
        configure_logging(log_level="INFO", json_format=False, app_name="test-app")
        logger = logging.getLogger("test")
        assert logger.getEffectiveLevel() == logging.INFO

    def test_configure_logging_json_format(self):
        """Test configuring logging with JSON format."""
        configure_logging(log_level="INFO", json_format=True, app_name="test-app")
        root_logger = logging.getLogger()
        assert len(root_logger.handlers) == 1
        assert isinstance(root_logger.handlers[0].formatter, CustomJsonFormatter)

    def test_http_libraries_are_quieted(self):
        configure_logging(log_level="DEBUG", json_format=False, app_name="test-app")
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING
