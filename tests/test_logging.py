"""
Unit tests for logging configuration and redaction.
"""

import io
import json
import logging
import sys

import pytest

from ai_content_core.config.logging import (
    REDACTED,
    RedactingFormatter,
    StructuredFormatter,
    configure_logging,
    redact_text,
    sanitize,
)


def make_record(msg="hello %s", args=("world",), level=logging.INFO, exc_info=None, **extra):
    record = logging.LogRecord(
        name="ai_content_core.sdk.base",
        level=level,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=args,
        exc_info=exc_info,
        func="generate",
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def package_logger():
    """Restore the package logger after each test."""
    logger = logging.getLogger("ai_content_core")
    handlers, level = logger.handlers[:], logger.level
    yield logger
    logger.handlers[:] = handlers
    logger.setLevel(level)


class TestRedaction:
    """Test secret masking."""

    @pytest.mark.parametrize("text", [
        "key sk-proj-abcdefghijklmnop",
        "key pplx-abcdefgh12345678",
        "key AIzaSyA1234567890abcdefghijkl",
        "Authorization: Bearer abc.def-ghi_jkl",
    ])
    def test_key_shaped_strings(self, text):
        """Verify key-shaped substrings are masked."""
        redacted = redact_text(text)
        assert REDACTED in redacted
        assert redacted.startswith(text.split()[0])

    def test_plain_text_untouched(self):
        assert redact_text("skipped 3 tasks") == "skipped 3 tasks"

    def test_sensitive_keys_nested(self):
        """Verify values under sensitive keys are masked at any depth."""
        data = {
            "api_key": "abc",
            "request": {"Authorization": "x", "model": "gpt-5"},
            "access_token": "t",
            "tokens_used": 30,
        }
        assert sanitize("extra", data) == {
            "api_key": REDACTED,
            "request": {"Authorization": REDACTED, "model": "gpt-5"},
            "access_token": REDACTED,
            "tokens_used": 30,
        }


class TestStructuredFormatter:
    """Test JSON log output."""

    def test_basic_fields(self):
        """Verify one JSON object with the standard fields."""
        data = json.loads(StructuredFormatter().format(make_record()))
        assert data["level"] == "INFO"
        assert data["logger"] == "ai_content_core.sdk.base"
        assert data["message"] == "hello world"
        assert data["function"] == "generate"
        assert data["line"] == 10
        assert data["timestamp"].endswith("Z")
        assert "extra" not in data

    def test_message_redacted(self):
        """Verify keys in formatted messages are masked."""
        record = make_record("using key %s", ("sk-abcdefghijklmnop",))
        data = json.loads(StructuredFormatter().format(record))
        assert "sk-abcdefghijklmnop" not in data["message"]
        assert REDACTED in data["message"]

    def test_extra_fields(self):
        """Verify extra attributes are included and sensitive ones masked."""
        record = make_record(provider="openai", api_key="sk-abcdefghijklmnop", latency_ms=12.5)
        data = json.loads(StructuredFormatter().format(record))
        assert data["extra"] == {"provider": "openai", "api_key": REDACTED, "latency_ms": 12.5}

    def test_exception_info(self):
        """Verify exceptions are serialized with their type and message."""
        try:
            raise ValueError("bad key sk-abcdefghijklmnop")
        except ValueError:
            record = make_record(level=logging.ERROR, exc_info=sys.exc_info())
        data = json.loads(StructuredFormatter().format(record))
        assert data["exception"]["type"] == "ValueError"
        assert data["exception"]["message"] == f"bad key {REDACTED}"
        assert "Traceback" in data["exception"]["traceback"]


class TestConfigureLogging:
    """Test handler installation."""

    def test_json_output(self, package_logger):
        """Verify JSON lines reach the configured stream."""
        stream = io.StringIO()
        configure_logging("DEBUG", json_output=True, stream=stream)
        logging.getLogger("ai_content_core.services").debug("tracked %d", 3)

        data = json.loads(stream.getvalue().strip())
        assert data["message"] == "tracked 3"
        assert package_logger.level == logging.DEBUG

    def test_human_output_redacted(self, package_logger):
        """Verify the text formatter masks keys too."""
        stream = io.StringIO()
        handler = configure_logging("INFO", stream=stream)
        logging.getLogger("ai_content_core").info("key sk-abcdefghijklmnop")

        assert isinstance(handler.formatter, RedactingFormatter)
        assert "sk-abcdefghijklmnop" not in stream.getvalue()
        assert "ai_content_core - INFO - key " in stream.getvalue()

    def test_reconfigure_replaces_handler(self, package_logger):
        """Verify repeated calls do not stack handlers."""
        first = configure_logging("INFO", stream=io.StringIO())
        second = configure_logging("WARNING", stream=io.StringIO())

        assert first not in package_logger.handlers
        assert second in package_logger.handlers
        assert package_logger.level == logging.WARNING

    def test_vendor_loggers_quieted(self, package_logger):
        configure_logging("DEBUG", stream=io.StringIO())
        assert logging.getLogger("httpx").level == logging.WARNING
