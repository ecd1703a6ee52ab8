"""
OpenAI-Compatible Embedding Provider.

Uses the vanilla ``AsyncOpenAI`` client with a configurable ``base_url``,
making it work with any endpoint that speaks the OpenAI embeddings protocol:
HuggingFace TEI, Ollama, vLLM, Together AI, Fireworks, direct OpenAI, etc.
"""

from typing import Optional

from openai import AsyncOpenAI

from .openai_client_provider import OpenAIClientEmbeddingProvider
from ..utils.logging_config import get_logger

logger = get_logger(__name__)


class OpenAICompatibleEmbeddingProvider(OpenAIClientEmbeddingProvider):
    """Embedding provider for any OpenAI-protocol-compatible endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "not-needed",
        model: str = "",
        dimensions: Optional[int] = None,
        provider_label: str = "openai_compatible",
        max_retries: int = 0,
    ) -> None:
        """
        Args:
            base_url: Root URL of the embedding endpoint
                      (e.g. ``http://localhost:8080/v1``).
            api_key: API key / bearer token. Defaults to ``"not-needed"``
                     for local servers that don't require auth.
            model: Model name sent by ``embed_batch``.
            dimensions: Optional output dimension override.
            provider_label: Human-readable label returned by
                            ``get_provider_name()``.
            max_retries: Retries performed inside the SDK. Defaults to 0
                         because the batch embedder owns retry and backoff.
        """
        self._base_url = base_url
        super().__init__(
            AsyncOpenAI(base_url=base_url, api_key=api_key, max_retries=max_retries),
            model=model,
            dimensions=dimensions,
            provider_label=provider_label,
        )
        logger.info(
            "Initialized OpenAICompatibleEmbeddingProvider (base_url=%s, label=%s, model=%s)",
            base_url,
            provider_label,
            model,
        )
