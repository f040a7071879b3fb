"""
Logging configuration.

Console logging in either a human-readable or a JSON format. The JSON
formatter redacts sensitive fields and key-shaped strings so credentials
never reach log sinks.
"""

import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO

SENSITIVE_KEY_TOKENS = ("api_key", "apikey", "secret", "authorization", "password")
REDACTED = "***REDACTED***"

# Key-shaped strings: OpenAI/Perplexity keys, Google keys, bearer headers
_SECRET_PATTERNS = (
    re.compile(r"\b(?:sk|pplx)-[A-Za-z0-9_\-]{8,}"),
    re.compile(r"\bAIza[0-9A-Za-z_\-]{20,}"),
    re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._\-]{8,}"),
)

_STANDARD_ATTRS = frozenset({
    "name", "msg", "args", "levelname", "levelno", "pathname", "filename", "module",
    "exc_info", "exc_text", "stack_info", "lineno", "funcName", "created", "msecs",
    "relativeCreated", "thread", "threadName", "processName", "process", "message",
    "taskName",
})

HUMAN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def is_sensitive_key(key: str) -> bool:
    lowered = key.lower()
    if lowered == "token" or lowered.endswith("_token"):
        return True
    return any(part in lowered for part in SENSITIVE_KEY_TOKENS)


def redact_text(text: str) -> str:
    """Mask key-shaped substrings in free text."""
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(REDACTED, text)
    return text


def sanitize(key: str, value: Any) -> Any:
    """Recursively redact values stored under sensitive keys."""
    if isinstance(value, dict):
        return {
            k: REDACTED if is_sensitive_key(str(k)) else sanitize(str(k), v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [sanitize(key, item) for item in value]
    if isinstance(value, str):
        return REDACTED if is_sensitive_key(key) else redact_text(value)
    return value


class StructuredFormatter(logging.Formatter):
    """JSON formatter, one object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": redact_text(record.getMessage()),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": redact_text(str(record.exc_info[1])),
                "traceback": redact_text(self.formatException(record.exc_info)),
            }

        extra = {
            key: value for key, value in vars(record).items()
            if key not in _STANDARD_ATTRS and not key.startswith("_") and not callable(value)
        }
        if extra:
            log_data["extra"] = sanitize("extra", extra)

        return json.dumps(log_data, default=str)


class RedactingFormatter(logging.Formatter):
    """Human-readable formatter that masks key-shaped strings."""

    def format(self, record: logging.LogRecord) -> str:
        return redact_text(super().format(record))


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    stream: Optional[TextIO] = None,
) -> logging.Handler:
    """Install a console handler on the package logger.

    Calling it again replaces the handler instead of stacking a new one.

    Args:
        level: Log level name
        json_output: Emit JSON lines instead of human-readable text
        stream: Output stream, stderr by default

    Returns:
        The installed handler
    """
    logger = logging.getLogger("ai_content_core")
    for handler in logger.handlers[:]:
        if getattr(handler, "_ai_content_core", False):
            logger.removeHandler(handler)
            handler.close()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter() if json_output else RedactingFormatter(HUMAN_FORMAT, DATE_FORMAT))
    handler._ai_content_core = True
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Vendor SDK loggers echo request details at DEBUG
    for noisy in ("httpx", "httpcore", "openai", "google_genai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    return handler
