"""
Embedding Provider Abstraction Layer

This package provides a unified interface for interacting with different
embedding providers (Azure OpenAI, OpenAI, any OpenAI-compatible server).

All providers implement the BaseEmbeddingProvider interface and report
failures through the typed errors in ``providers.errors``.
"""

from .base_embedding import BaseEmbeddingProvider, EmbeddingResult
from .errors import (
    ProviderError,
    PayloadTooLargeError,
    TransientProviderError,
    PermanentProviderError,
    EmbeddingFailedError,
    classify_provider_error,
)
from .openai_client_provider import OpenAIClientEmbeddingProvider
from .azure_embedding_provider import AzureEmbeddingProvider
from .openai_compatible_embedding_provider import OpenAICompatibleEmbeddingProvider
from .factory import EmbeddingProviderFactory

__all__ = [
    "BaseEmbeddingProvider",
    "EmbeddingResult",
    "ProviderError",
    "PayloadTooLargeError",
    "TransientProviderError",
    "PermanentProviderError",
    "EmbeddingFailedError",
    "classify_provider_error",
    "OpenAIClientEmbeddingProvider",
    "AzureEmbeddingProvider",
    "OpenAICompatibleEmbeddingProvider",
    "EmbeddingProviderFactory",
]
