"""
Error taxonomy for provider adapters.

Every vendor failure leaving an adapter is a ProviderError so callers never
need knowledge of vendor-specific exception shapes.
"""

import asyncio
from enum import Enum
from typing import Any, Optional


RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})
NETWORK_ERROR_CODES = frozenset({"ECONNRESET", "ETIMEDOUT", "ECONNREFUSED"})


class ErrorKind(Enum):
    """Normalized category of a provider failure."""
    AUTH = "auth"
    QUOTA = "quota"
    RATE_LIMIT = "rate_limit"
    BAD_REQUEST = "bad_request"
    NOT_FOUND = "not_found"
    SERVER_ERROR = "server_error"
    CONTENT_BLOCKED = "content_blocked"
    NETWORK = "network"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


RETRYABLE_KINDS = frozenset({ErrorKind.RATE_LIMIT, ErrorKind.SERVER_ERROR, ErrorKind.NETWORK})


class GenerationError(Exception):
    """Base class for all errors raised by this package."""


class UnsupportedModelError(GenerationError, ValueError):
    """Raised when a model id is absent from a provider's registry."""

    def __init__(self, model: str, provider: Optional[str] = None):
        message = f"Unsupported model: {model}"
        if provider:
            message += f" (provider: {provider})"
        super().__init__(message)
        self.model = model
        self.provider = provider


class UnsupportedCapabilityError(GenerationError, ValueError):
    """Raised when a request needs a capability the model does not have."""

    def __init__(self, model: str, capability: str):
        super().__init__(f"Model {model} does not support {capability}")
        self.model = model
        self.capability = capability


class ProviderError(GenerationError):
    """Normalized vendor failure.

    Attributes:
        kind: Category of the failure
        status: HTTP status when the vendor returned one
        provider: Provider name that produced the failure
        retryable: Whether the retry executor may try again
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        status: Optional[int] = None,
        provider: Optional[str] = None,
        retryable: Optional[bool] = None,
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.status = status
        self.provider = provider
        self.retryable = kind in RETRYABLE_KINDS if retryable is None else retryable

    def to_dict(self) -> dict:
        """Serializable view used in error stream chunks and CLI output."""
        return {
            "message": self.message,
            "kind": self.kind.value,
            "status": self.status,
            "provider": self.provider,
            "retryable": self.retryable,
        }


class NetworkError(ProviderError):
    """Transport-level failure (connection reset, timeout)."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message, kind=ErrorKind.NETWORK, provider=provider, retryable=True)


class ParseFailureError(GenerationError):
    """Raised by a parsing stage that could not produce artifacts.

    Never escapes the output parser; the pipeline absorbs it and moves on
    to the next stage.
    """


def kind_for_status(status: int) -> ErrorKind:
    """Map an HTTP status code to an error kind."""
    if status == 400:
        return ErrorKind.BAD_REQUEST
    if status in (401, 403):
        return ErrorKind.AUTH
    if status == 404:
        return ErrorKind.NOT_FOUND
    if status == 429:
        return ErrorKind.RATE_LIMIT
    if status >= 500:
        return ErrorKind.SERVER_ERROR
    if 400 <= status < 500:
        return ErrorKind.BAD_REQUEST
    return ErrorKind.UNKNOWN


def extract_status(exc: BaseException) -> Optional[int]:
    """Read an integer HTTP status from common exception attributes."""
    for attr in ("status_code", "status", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool) and 100 <= value < 600:
            return value
    return None


def is_network_failure(exc: BaseException) -> bool:
    """True for connection resets and timeouts."""
    if isinstance(exc, (ConnectionError, TimeoutError, asyncio.TimeoutError)):
        return True
    return getattr(exc, "code", None) in NETWORK_ERROR_CODES


def is_retryable_error(exc: BaseException) -> bool:
    """Classify an error as transient (retry) or terminal.

    Args:
        exc: Exception raised by a vendor call, normalized or not

    Returns:
        True for rate limits, 5xx responses and transport failures
    """
    if isinstance(exc, ProviderError):
        return exc.retryable
    if isinstance(exc, (UnsupportedModelError, UnsupportedCapabilityError)):
        return False
    status = extract_status(exc)
    if status is not None:
        return status in RETRYABLE_STATUSES
    return is_network_failure(exc)


def normalize_error(exc: BaseException, provider: Optional[str] = None) -> ProviderError:
    """Convert any exception into a ProviderError.

    Used when no vendor-specific normalizer applies.
    """
    if isinstance(exc, ProviderError):
        return exc
    label = provider or "provider"
    message = str(exc) or exc.__class__.__name__
    if is_network_failure(exc):
        return NetworkError(f"{label} network error: {message}", provider=provider)
    status = extract_status(exc)
    if status is not None:
        return ProviderError(
            f"{label} error ({status}): {message}",
            kind=kind_for_status(status),
            status=status,
            provider=provider,
            retryable=status in RETRYABLE_STATUSES,
        )
    return ProviderError(f"{label} error: {message}", provider=provider, retryable=False)


def describe_error(exc: Any) -> str:
    """Short human-readable description of an exception."""
    if isinstance(exc, ProviderError):
        return exc.message
    return str(exc) or exc.__class__.__name__
