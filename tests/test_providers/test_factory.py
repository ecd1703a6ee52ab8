"""
Tests for EmbeddingProviderFactory.
"""

import pytest
from unittest.mock import patch

from resilient_embed.providers.factory import EmbeddingProviderFactory
from resilient_embed.providers.azure_embedding_provider import AzureEmbeddingProvider
from resilient_embed.providers.openai_compatible_embedding_provider import (
    OpenAICompatibleEmbeddingProvider,
)
from resilient_embed.config import ProviderConfig, Config


def test_factory_get_available_providers():
    """Factory lists every supported provider name."""
    providers = EmbeddingProviderFactory.get_available_providers()

    assert providers == ["azure", "openai", "openai_compatible"]


def test_factory_create_azure_provider():
    """Azure config yields an AzureEmbeddingProvider."""
    config = ProviderConfig(
        name="azure",
        api_key="test-key",
        endpoint="https://test.openai.azure.com/",
        deployment_name="text-embedding-3-small",
        api_version="2024-02-15-preview",
    )

    with patch("resilient_embed.providers.azure_embedding_provider.AsyncAzureOpenAI"):
        provider = EmbeddingProviderFactory(Config()).create("azure", config)

    assert isinstance(provider, AzureEmbeddingProvider)
    assert provider.model == "text-embedding-3-small"


@pytest.mark.parametrize("name", ["openai", "openai_compatible", "OpenAI_Compatible"])
def test_factory_create_openai_compatible(name):
    """openai and openai_compatible both use the OpenAI-protocol provider (case-insensitive)."""
    config = ProviderConfig(
        name=name,
        api_key="sk-test",
        endpoint="http://localhost:8080/v1",
        model="bge-m3",
        dimensions=512,
    )

    with patch(
        "resilient_embed.providers.openai_compatible_embedding_provider.AsyncOpenAI"
    ):
        provider = EmbeddingProviderFactory(Config()).create(name, config)

    assert isinstance(provider, OpenAICompatibleEmbeddingProvider)
    assert provider.get_provider_name() == name.lower()
    assert provider.model == "bge-m3"
    assert provider.dimensions == 512


def test_factory_openai_requires_endpoint():
    """An OpenAI-protocol provider without a base URL is rejected."""
    config = ProviderConfig(name="openai", api_key="sk-test", model="m")

    with pytest.raises(ValueError, match="endpoint"):
        EmbeddingProviderFactory(Config()).create("openai", config)


def test_factory_create_unknown_provider():
    """Unknown provider names raise ValueError listing the supported ones."""
    config = ProviderConfig(name="unknown", api_key="test-key")

    with pytest.raises(ValueError, match="Unknown provider"):
        EmbeddingProviderFactory(Config()).create("unknown", config)


def test_factory_create_from_config(monkeypatch):
    """create_from_config reads the provider settings from the environment."""
    monkeypatch.setenv("EMBEDDING_BASE_URL", "http://tei:80/v1")
    monkeypatch.setenv("EMBEDDING_MODEL", "e5-large")

    with patch(
        "resilient_embed.providers.openai_compatible_embedding_provider.AsyncOpenAI"
    ) as MockClient:
        provider = EmbeddingProviderFactory(Config()).create_from_config("openai_compatible")

    assert provider.model == "e5-large"
    assert MockClient.call_args.kwargs["base_url"] == "http://tei:80/v1"
