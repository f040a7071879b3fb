"""
Adapter factory.

Builds adapters with their default vendor clients. Intended to run once at
process start; the resulting adapters are passed to the services that need
them.
"""

import logging
from typing import Dict, Optional, Union

from ..core.credentials import CredentialProvider
from ..core.errors import ProviderError
from ..core.models import ProviderName
from ..core.retry import RetryPolicy
from .base import ProviderAdapter
from .google_client import GenAIClient, GoogleAdapter
from .openai_client import AsyncOpenAIClient, OpenAIAdapter
from .perplexity_client import PERPLEXITY_BASE_URL, PerplexityAdapter

logger = logging.getLogger(__name__)


def create_adapter(
    provider: Union[ProviderName, str],
    credentials: CredentialProvider,
    retry_policy: Optional[RetryPolicy] = None,
    base_url: Optional[str] = None,
    timeout: Optional[float] = None,
) -> ProviderAdapter:
    """Create an adapter backed by the vendor's SDK.

    Args:
        provider: Provider to build
        credentials: Source of the API key
        retry_policy: Default retry limits for the adapter
        base_url: Override of the vendor endpoint (OpenAI-compatible vendors)
        timeout: Request timeout in seconds

    Returns:
        ProviderAdapter for the provider

    Raises:
        ProviderError: If no API key is available
        ValueError: If the provider is unknown
    """
    provider = ProviderName(provider)
    api_key = credentials.get_api_key(provider)

    if provider == ProviderName.OPENAI:
        client = AsyncOpenAIClient(api_key, base_url=base_url, timeout=timeout)
        return OpenAIAdapter(client, retry_policy=retry_policy)
    if provider == ProviderName.GOOGLE:
        return GoogleAdapter(GenAIClient(api_key), retry_policy=retry_policy)
    if provider == ProviderName.PERPLEXITY:
        client = AsyncOpenAIClient(api_key, base_url=base_url or PERPLEXITY_BASE_URL, timeout=timeout)
        return PerplexityAdapter(client, retry_policy=retry_policy)
    raise ValueError(f"Unsupported provider: {provider}")


def build_adapters(config, credentials: CredentialProvider) -> Dict[ProviderName, ProviderAdapter]:
    """Build one adapter per configured provider.

    Providers without credentials are skipped with a warning so that one
    missing key does not disable the others.

    Args:
        config: AppConfig with per-provider settings
        credentials: Source of API keys

    Returns:
        Mapping of provider to adapter
    """
    adapters: Dict[ProviderName, ProviderAdapter] = {}
    for provider, settings in config.providers.items():
        try:
            adapters[provider] = create_adapter(
                provider,
                credentials,
                retry_policy=RetryPolicy(settings.max_retries, settings.base_delay_ms),
                base_url=settings.base_url,
                timeout=settings.timeout_seconds,
            )
        except ProviderError as e:
            logger.warning("Skipping %s adapter: %s", provider.value, e.message)
    return adapters
