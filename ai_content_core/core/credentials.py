"""
API key providers.

Adapters never read key material themselves; a credential provider is
injected at construction time.
"""

import base64
import binascii
import logging
import os
from typing import Dict, Mapping, Optional, Protocol, Union

from .errors import ErrorKind, ProviderError
from .models import ProviderName

logger = logging.getLogger(__name__)


ENV_VARS: Dict[ProviderName, tuple] = {
    ProviderName.OPENAI: ("OPENAI_API_KEY",),
    ProviderName.GOOGLE: ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
    ProviderName.PERPLEXITY: ("PERPLEXITY_API_KEY",),
}


class CredentialProvider(Protocol):
    """Source of API keys."""

    def get_api_key(self, provider: ProviderName) -> str:
        ...


def _missing(provider: ProviderName, where: str) -> ProviderError:
    return ProviderError(
        f"No API key configured for {provider.value} ({where})",
        kind=ErrorKind.AUTH,
        provider=provider.value,
        retryable=False,
    )


class EnvironmentCredentialProvider:
    """Reads keys from environment variables."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self._environ = os.environ if environ is None else environ

    def get_api_key(self, provider: ProviderName) -> str:
        provider = ProviderName(provider)
        names = ENV_VARS[provider]
        for name in names:
            value = self._environ.get(name)
            if value and value.strip():
                return value.strip()
        raise _missing(provider, f"set {' or '.join(names)}")


class StaticCredentialProvider:
    """Keys held in memory, mostly for tests and scripts."""

    def __init__(self, keys: Mapping[Union[ProviderName, str], str]):
        self._keys = {ProviderName(k): v for k, v in keys.items()}

    def get_api_key(self, provider: ProviderName) -> str:
        provider = ProviderName(provider)
        key = self._keys.get(provider)
        if not key:
            raise _missing(provider, "static credentials")
        return key


class EncodedSettingsCredentialProvider:
    """Decodes the base64 key strings kept by the legacy settings store.

    Base64 is obfuscation, not encryption. Prefer a secret manager and use
    this only to read settings written by older deployments.
    """

    def __init__(self, encoded_keys: Mapping[Union[ProviderName, str], str]):
        self._encoded = {ProviderName(k): v for k, v in encoded_keys.items()}
        logger.warning(
            "Using base64-encoded API keys from settings; this is not encryption, "
            "move keys to a secret manager"
        )

    def get_api_key(self, provider: ProviderName) -> str:
        provider = ProviderName(provider)
        encoded = self._encoded.get(provider)
        if not encoded:
            raise _missing(provider, "encoded settings")
        try:
            key = base64.b64decode(encoded, validate=True).decode("utf-8").strip()
        except (binascii.Error, UnicodeDecodeError) as e:
            raise ProviderError(
                f"Stored API key for {provider.value} is not valid base64",
                kind=ErrorKind.AUTH,
                provider=provider.value,
                retryable=False,
            ) from e
        if not key:
            raise _missing(provider, "encoded settings")
        return key


def encode_api_key(key: str) -> str:
    """Encode a key the way the settings store expects."""
    return base64.b64encode(key.encode("utf-8")).decode("ascii")
