"""
Configuration management for Resilient Embed.

Loads configuration from environment variables (typically from a .env file).
Uses python-dotenv to load .env automatically.

Usage:
    from resilient_embed.config import config

    # Access provider configs
    azure_config = config.get_provider_config("azure")

    # Access pipeline tuning
    budget = config.pipeline.budget()

    # Access database config
    db_url = config.database.connection_string
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, TYPE_CHECKING

from dotenv import load_dotenv

if TYPE_CHECKING:
    from .services.batch_sizing import BatchSizeBudget

# Look for .env in project root (parent of src/)
env_path = Path(__file__).parent.parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


SUPPORTED_PROVIDERS = ("azure", "openai", "openai_compatible")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {value!r}") from e


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {value!r}") from e


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ProviderConfig:
    """Configuration for a specific embedding provider."""
    name: str
    api_key: str
    endpoint: Optional[str] = None
    model: Optional[str] = None
    deployment_name: Optional[str] = None
    api_version: Optional[str] = None
    dimensions: Optional[int] = None

    def __post_init__(self):
        """Validate that required fields are present."""
        if not self.api_key:
            raise ValueError(
                f"API key not set for {self.name} provider. "
                f"Please set the appropriate environment variable."
            )

    @property
    def model_name(self) -> Optional[str]:
        """Model identifier sent with each request (deployment name on Azure)."""
        return self.deployment_name or self.model


@dataclass
class DatabaseConfig:
    """Database configuration for the idempotency store and error log."""
    connection_string: Optional[str] = None

    @property
    def enabled(self) -> bool:
        return bool(self.connection_string)


@dataclass
class PipelineConfig:
    """
    Tuning knobs for the batch embedding pipeline.

    Attributes:
        max_retries: Retries per batch after the first attempt (default: 3)
        initial_delay_ms: First backoff delay in milliseconds (default: 1000)
        backoff_factor: Multiplier applied to the delay after each retry (default: 2)
        max_delay_ms: Upper bound for a single backoff delay (default: 60000)
        max_payload_bytes: Serialized payload budget per request (default: 30000)
        min_batch_size: Lower clamp for the estimated batch size (default: 1)
        max_batch_size: Upper clamp for the estimated batch size (default: 50)
        max_concurrency: Slices embedded at the same time (default: 1, sequential)
        max_text_chars: Truncate longer content before sending (None disables)
        retry_permanent_errors: Retry auth/malformed-request errors like
            transient ones instead of degrading immediately (default: False)
    """
    max_retries: int = 3
    initial_delay_ms: int = 1000
    backoff_factor: float = 2.0
    max_delay_ms: int = 60000
    max_payload_bytes: int = 30000
    min_batch_size: int = 1
    max_batch_size: int = 50
    max_concurrency: int = 1
    max_text_chars: Optional[int] = None
    retry_permanent_errors: bool = False

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.initial_delay_ms < 0:
            raise ValueError(f"initial_delay_ms must be >= 0, got {self.initial_delay_ms}")
        if self.backoff_factor < 1:
            raise ValueError(f"backoff_factor must be >= 1, got {self.backoff_factor}")
        if self.max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {self.max_concurrency}")
        if self.max_text_chars is not None and self.max_text_chars <= 0:
            raise ValueError(f"max_text_chars must be positive, got {self.max_text_chars}")

    @property
    def initial_delay(self) -> float:
        """Initial backoff delay in seconds."""
        return self.initial_delay_ms / 1000.0

    @property
    def max_delay(self) -> float:
        """Maximum backoff delay in seconds."""
        return self.max_delay_ms / 1000.0

    def budget(self) -> "BatchSizeBudget":
        """Build the ``BatchSizeBudget`` described by this config."""
        from .services.batch_sizing import BatchSizeBudget

        return BatchSizeBudget(
            max_payload_bytes=self.max_payload_bytes,
            min_batch_size=self.min_batch_size,
            max_batch_size=self.max_batch_size,
        )

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Read ``EMBED_*`` environment variables, falling back to defaults."""
        max_text_chars = _env_int("EMBED_MAX_TEXT_CHARS", 0)
        return cls(
            max_retries=_env_int("EMBED_MAX_RETRIES", 3),
            initial_delay_ms=_env_int("EMBED_INITIAL_DELAY_MS", 1000),
            backoff_factor=_env_float("EMBED_BACKOFF_FACTOR", 2.0),
            max_delay_ms=_env_int("EMBED_MAX_DELAY_MS", 60000),
            max_payload_bytes=_env_int("EMBED_MAX_PAYLOAD_BYTES", 30000),
            min_batch_size=_env_int("EMBED_MIN_BATCH_SIZE", 1),
            max_batch_size=_env_int("EMBED_MAX_BATCH_SIZE", 50),
            max_concurrency=_env_int("EMBED_MAX_CONCURRENCY", 1),
            max_text_chars=max_text_chars or None,
            retry_permanent_errors=_env_bool("EMBED_RETRY_PERMANENT_ERRORS", False),
        )


class Config:
    """
    Application configuration loaded from environment variables.

    Environment variables can be set:
    1. In a .env file in the project root
    2. In the system environment
    3. In a container/deployment environment
    """

    def __init__(self):
        """Load configuration from environment."""
        self.database = DatabaseConfig(
            connection_string=os.getenv("DATABASE_URL") or None
        )
        self.pipeline = PipelineConfig.from_env()
        self.idempotency_cache_dir = os.getenv("IDEMPOTENCY_CACHE_DIR", ".cache")

        # Provider configurations (lazy-loaded to avoid requiring all keys)
        self._provider_configs = {}

    def get_provider_config(self, provider_name: str) -> ProviderConfig:
        """
        Get configuration for a specific provider.

        Args:
            provider_name: Name of provider ('azure', 'openai', 'openai_compatible')

        Returns:
            ProviderConfig with credentials and settings

        Raises:
            ValueError: If required environment variables are missing
        """
        provider_name = provider_name.lower()

        # Return cached config if already loaded
        if provider_name in self._provider_configs:
            return self._provider_configs[provider_name]

        dimensions = _env_int("EMBEDDING_DIMENSIONS", 0) or None

        if provider_name == "azure":
            config = ProviderConfig(
                name="azure",
                api_key=os.getenv("AZURE_OPENAI_API_KEY", ""),
                endpoint=os.getenv("AZURE_OPENAI_ENDPOINT", ""),
                deployment_name=os.getenv(
                    "AZURE_OPENAI_EMBEDDING_DEPLOYMENT", "text-embedding-3-small"
                ),
                api_version=os.getenv("AZURE_OPENAI_API_VERSION", "2024-02-15-preview"),
                dimensions=dimensions,
            )
        elif provider_name == "openai":
            config = ProviderConfig(
                name="openai",
                api_key=os.getenv("OPENAI_API_KEY", ""),
                endpoint=os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1"),
                model=os.getenv("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small"),
                dimensions=dimensions,
            )
        elif provider_name == "openai_compatible":
            config = ProviderConfig(
                name="openai_compatible",
                # Local servers (TEI, Ollama, vLLM) usually accept any token
                api_key=os.getenv("EMBEDDING_API_KEY", "not-needed"),
                endpoint=os.getenv("EMBEDDING_BASE_URL", "http://localhost:8080/v1"),
                model=os.getenv("EMBEDDING_MODEL", "bge-m3"),
                dimensions=dimensions,
            )
        else:
            raise ValueError(f"Unknown provider: {provider_name}")

        # Cache for future use
        self._provider_configs[provider_name] = config
        return config

    def get_available_providers(self) -> list[str]:
        """
        Get list of providers that have API keys configured.

        Returns:
            List of provider names with credentials set
        """
        available = []
        for provider in SUPPORTED_PROVIDERS:
            try:
                self.get_provider_config(provider)
                available.append(provider)
            except ValueError:
                # API key not set - skip this provider
                pass
        return available


# Global config instance
config = Config()


def require_provider(provider_name: str) -> ProviderConfig:
    """
    Get provider config, raising helpful error if not configured.

    Args:
        provider_name: Name of provider to load

    Returns:
        ProviderConfig

    Raises:
        ValueError: With instructions on how to configure the provider
    """
    try:
        return config.get_provider_config(provider_name)
    except ValueError as e:
        raise ValueError(
            f"\n{'='*60}\n"
            f"Provider '{provider_name}' is not configured.\n\n"
            f"To use {provider_name}, set these environment variables:\n"
            f"{_get_provider_instructions(provider_name)}\n"
            f"You can set these in a .env file in the project root.\n"
            f"{'='*60}\n"
        ) from e


def _get_provider_instructions(provider_name: str) -> str:
    """Get environment variable instructions for a provider."""
    instructions = {
        "azure": """
  AZURE_OPENAI_API_KEY=your-api-key
  AZURE_OPENAI_ENDPOINT=https://your-resource.openai.azure.com/
  AZURE_OPENAI_EMBEDDING_DEPLOYMENT=text-embedding-3-small
  AZURE_OPENAI_API_VERSION=2024-02-15-preview
        """,
        "openai": """
  OPENAI_API_KEY=your-api-key
  OPENAI_EMBEDDING_MODEL=text-embedding-3-small
        """,
        "openai_compatible": """
  EMBEDDING_BASE_URL=http://localhost:8080/v1
  EMBEDDING_MODEL=bge-m3
  EMBEDDING_API_KEY=not-needed
        """,
    }
    return instructions.get(provider_name, "  (Unknown provider)")
