"""
Provider Factory - Creates embedding provider instances by name.

This factory enables dynamic provider creation and switching without
needing to import provider classes directly.
"""

from typing import Optional

from .base_embedding import BaseEmbeddingProvider
from .azure_embedding_provider import AzureEmbeddingProvider
from .openai_compatible_embedding_provider import OpenAICompatibleEmbeddingProvider
from ..config import ProviderConfig, Config, SUPPORTED_PROVIDERS


class EmbeddingProviderFactory:
    """
    Factory for creating embedding provider instances.

    Usage:
        # From config
        factory = EmbeddingProviderFactory()
        provider = factory.create_from_config("azure")

        # With explicit config
        config = ProviderConfig(name="openai", api_key="...", model="...")
        provider = factory.create("openai", config)
    """

    def __init__(self, config: Optional[Config] = None):
        """
        Initialize the factory.

        Args:
            config: Optional Config instance. If not provided, creates a new one.
        """
        self.config = config or Config()

    def create(
        self,
        provider_name: str,
        provider_config: ProviderConfig,
    ) -> BaseEmbeddingProvider:
        """
        Create a provider instance from a ProviderConfig.

        Args:
            provider_name: Name of provider ('azure', 'openai', 'openai_compatible')
            provider_config: ProviderConfig instance with credentials and settings

        Returns:
            BaseEmbeddingProvider instance

        Raises:
            ValueError: If provider_name is unknown
        """
        provider_name = provider_name.lower()

        if provider_name == "azure":
            return AzureEmbeddingProvider(provider_config)
        elif provider_name in ("openai", "openai_compatible"):
            if not provider_config.endpoint:
                raise ValueError(f"{provider_name} provider requires an endpoint (base_url)")
            return OpenAICompatibleEmbeddingProvider(
                base_url=provider_config.endpoint,
                api_key=provider_config.api_key,
                model=provider_config.model_name or "",
                dimensions=provider_config.dimensions,
                provider_label=provider_name,
            )
        else:
            raise ValueError(
                f"Unknown provider: {provider_name}. "
                f"Available providers: {', '.join(self.get_available_providers())}"
            )

    def create_from_config(self, provider_name: str) -> BaseEmbeddingProvider:
        """
        Create a provider instance from application configuration.

        Raises:
            ValueError: If provider_name is unknown or not configured
        """
        provider_config = self.config.get_provider_config(provider_name)
        return self.create(provider_name, provider_config)

    @staticmethod
    def get_available_providers() -> list[str]:
        """Return list of supported provider names."""
        return list(SUPPORTED_PROVIDERS)

    def get_configured_providers(self) -> list[str]:
        """Return list of providers that have credentials configured."""
        return self.config.get_available_providers()
