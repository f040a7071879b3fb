"""
Configuration management and loading.

Reads provider, credential and logging settings from YAML with strict
validation, so a typo fails loudly instead of silently using a default.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ai_content_core.core.credentials import (
    CredentialProvider,
    EncodedSettingsCredentialProvider,
    EnvironmentCredentialProvider,
)
from ai_content_core.core.models import ProviderName
from ai_content_core.core.pricing import get_registry
from ai_content_core.core.retry import DEFAULT_BASE_DELAY_MS, DEFAULT_MAX_RETRIES

DEFAULT_MODELS: Dict[ProviderName, str] = {
    ProviderName.OPENAI: "gpt-4.1-mini",
    ProviderName.GOOGLE: "gemini-2.5-flash",
    ProviderName.PERPLEXITY: "sonar-pro",
}

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class CredentialSource(Enum):
    """Where API keys come from."""
    ENV = "env"
    ENCODED = "encoded"


@dataclass(frozen=True)
class ProviderSettings:
    """Per-provider adapter settings."""
    default_model: str
    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS
    base_url: Optional[str] = None
    timeout_seconds: Optional[float] = None

    def __post_init__(self):
        """Validate retry and timeout values."""
        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        if self.base_delay_ms <= 0:
            raise ValueError("base_delay_ms must be > 0")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")


@dataclass(frozen=True)
class LoggingSettings:
    """Console logging settings."""
    level: str = "INFO"
    json: bool = False

    def __post_init__(self):
        """Validate log level name."""
        if self.level not in LOG_LEVELS:
            raise ValueError(f"level must be one of: {list(LOG_LEVELS)}")


@dataclass(frozen=True)
class CredentialSettings:
    """API key source settings."""
    source: CredentialSource = CredentialSource.ENV
    encoded: Dict[ProviderName, str] = field(default_factory=dict)

    def __post_init__(self):
        """Validate encoded keys are only given for the encoded source."""
        if self.source == CredentialSource.ENCODED and not self.encoded:
            raise ValueError("credentials.encoded is required when source is 'encoded'")
        if self.source == CredentialSource.ENV and self.encoded:
            raise ValueError("credentials.encoded is only allowed when source is 'encoded'")


@dataclass(frozen=True)
class AppConfig:
    """Complete application configuration."""
    providers: Dict[ProviderName, ProviderSettings]
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    credentials: CredentialSettings = field(default_factory=CredentialSettings)

    @classmethod
    def default(cls) -> "AppConfig":
        """Configuration used when no file is given: every provider, env keys."""
        return cls(providers={p: ProviderSettings(default_model=m) for p, m in DEFAULT_MODELS.items()})

    def provider_settings(self, provider: ProviderName) -> ProviderSettings:
        """Settings for a provider, falling back to defaults if not configured."""
        provider = ProviderName(provider)
        return self.providers.get(provider) or ProviderSettings(default_model=DEFAULT_MODELS[provider])


def build_credentials(config: AppConfig) -> CredentialProvider:
    """Credential provider matching the configured source."""
    if config.credentials.source == CredentialSource.ENCODED:
        return EncodedSettingsCredentialProvider(config.credentials.encoded)
    return EnvironmentCredentialProvider()


def load_config(path: Optional[str] = None) -> AppConfig:
    """Load and validate configuration from a YAML file.

    Args:
        path: Path to YAML configuration file; None returns the defaults

    Returns:
        Validated AppConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    if path is None:
        return AppConfig.default()

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    _check_keys(raw_config, {'providers', 'logging', 'credentials'}, "configuration")

    providers_data = _section(raw_config, 'providers')
    if not providers_data:
        raise ValueError("'providers' must configure at least one provider")
    providers = {}
    for name, provider_data in providers_data.items():
        try:
            provider = ProviderName(name)
        except ValueError:
            valid = [p.value for p in ProviderName]
            raise ValueError(f"Unknown provider 'providers.{name}', must be one of: {valid}")
        providers[provider] = _parse_provider(provider_data, provider, f"providers.{name}")

    return AppConfig(
        providers=providers,
        logging=_parse_logging(_section(raw_config, 'logging')),
        credentials=_parse_credentials(_section(raw_config, 'credentials')),
    )


def _check_keys(data: Dict, allowed: set, path: str) -> None:
    unknown_keys = set(data.keys()) - allowed
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")


def _section(raw_config: Dict, name: str) -> Dict[str, Any]:
    data = raw_config.get(name) or {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")
    return data


def _parse_provider(data: Any, provider: ProviderName, path: str) -> ProviderSettings:
    """Parse and validate one provider section.

    Raises:
        ValueError: If the section is invalid or names an unknown model
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"'{path}' must be a dictionary")
    _check_keys(data, {'default_model', 'max_retries', 'base_delay_ms', 'base_url', 'timeout_seconds'}, path)

    default_model = data.get('default_model', DEFAULT_MODELS[provider])
    if not isinstance(default_model, str) or default_model not in get_registry(provider):
        raise ValueError(f"'default_model' in {path} is not a supported {provider.value} model: {default_model}")

    max_retries = data.get('max_retries', DEFAULT_MAX_RETRIES)
    if isinstance(max_retries, bool) or not isinstance(max_retries, int) or max_retries < 0:
        raise ValueError(f"'max_retries' in {path} must be an integer >= 0")

    base_delay_ms = data.get('base_delay_ms', DEFAULT_BASE_DELAY_MS)
    if isinstance(base_delay_ms, bool) or not isinstance(base_delay_ms, int) or base_delay_ms <= 0:
        raise ValueError(f"'base_delay_ms' in {path} must be an integer > 0")

    base_url = data.get('base_url')
    if base_url is not None and not isinstance(base_url, str):
        raise ValueError(f"'base_url' in {path} must be a string")

    timeout = data.get('timeout_seconds')
    if timeout is not None and (isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0):
        raise ValueError(f"'timeout_seconds' in {path} must be > 0")

    return ProviderSettings(
        default_model=default_model,
        max_retries=max_retries,
        base_delay_ms=base_delay_ms,
        base_url=base_url,
        timeout_seconds=float(timeout) if timeout is not None else None,
    )


def _parse_logging(data: Dict[str, Any]) -> LoggingSettings:
    _check_keys(data, {'level', 'json'}, "logging")

    level = data.get('level', 'INFO')
    if not isinstance(level, str):
        raise ValueError("'level' in logging must be a string")
    level = level.upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"'level' in logging must be one of: {list(LOG_LEVELS)}")

    json_output = data.get('json', False)
    if not isinstance(json_output, bool):
        raise ValueError("'json' in logging must be true or false")

    return LoggingSettings(level=level, json=json_output)


def _parse_credentials(data: Dict[str, Any]) -> CredentialSettings:
    _check_keys(data, {'source', 'encoded'}, "credentials")

    source_str = data.get('source', 'env')
    if not isinstance(source_str, str):
        raise ValueError("'source' in credentials must be a string")
    try:
        source = CredentialSource(source_str.lower())
    except ValueError:
        valid_sources = [s.value for s in CredentialSource]
        raise ValueError(f"'source' in credentials must be one of: {valid_sources}")

    encoded_data = data.get('encoded') or {}
    if not isinstance(encoded_data, dict):
        raise ValueError("'encoded' in credentials must be a dictionary")
    encoded = {}
    for name, value in encoded_data.items():
        try:
            provider = ProviderName(name)
        except ValueError:
            raise ValueError(f"Unknown provider 'credentials.encoded.{name}'")
        if not isinstance(value, str) or not value:
            raise ValueError(f"'credentials.encoded.{name}' must be a non-empty string")
        encoded[provider] = value

    if source == CredentialSource.ENCODED and not encoded:
        raise ValueError("'encoded' in credentials is required when source is 'encoded'")
    if source == CredentialSource.ENV and encoded:
        raise ValueError("'encoded' in credentials is only allowed when source is 'encoded'")

    return CredentialSettings(source=source, encoded=encoded)
