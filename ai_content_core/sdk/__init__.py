"""
SDK for AI Content Core.

Provider adapters exposing a uniform generate/stream/test-connection
contract over the OpenAI, Google and Perplexity APIs.
"""

from .base import ProviderAdapter
from .factory import build_adapters, create_adapter
from .google_client import GoogleAdapter
from .openai_client import OpenAIAdapter
from .perplexity_client import PerplexityAdapter

__all__ = [
    "ProviderAdapter",
    "OpenAIAdapter",
    "GoogleAdapter",
    "PerplexityAdapter",
    "create_adapter",
    "build_adapters",
]
