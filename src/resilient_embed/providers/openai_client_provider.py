"""
Shared plumbing for providers that talk to an ``openai`` SDK client.

Azure and OpenAI-compatible endpoints expose the same ``embeddings.create``
call, so the request shape, response ordering and client shutdown live
here. Subclasses only build the client.
"""

from typing import List, Optional, Union

from openai import AsyncAzureOpenAI, AsyncOpenAI

from .base_embedding import BaseEmbeddingProvider, EmbeddingResult


class OpenAIClientEmbeddingProvider(BaseEmbeddingProvider):
    """Embedding provider backed by an ``AsyncOpenAI``-style client.

    Args:
        client: SDK client exposing ``embeddings.create`` and ``close``.
        model: Model or deployment name sent by ``embed_batch``.
        dimensions: Optional output dimension override.
        provider_label: Value returned by ``get_provider_name()``.
    """

    def __init__(
        self,
        client: Union[AsyncOpenAI, AsyncAzureOpenAI],
        model: str,
        dimensions: Optional[int],
        provider_label: str,
    ) -> None:
        self._client = client
        self.model = model
        self.dimensions = dimensions
        self._provider_label = provider_label

    async def create_embeddings(
        self,
        texts: List[str],
        model: str,
        dimensions: Optional[int] = None,
    ) -> List[EmbeddingResult]:
        params: dict = {"model": model, "input": texts}
        if dimensions is not None:
            params["dimensions"] = dimensions

        response = await self._client.embeddings.create(**params)

        sorted_data = sorted(response.data, key=lambda e: e.index)
        return [
            EmbeddingResult(vector=item.embedding, index=item.index)
            for item in sorted_data
        ]

    def get_provider_name(self) -> str:
        return self._provider_label

    async def close(self) -> None:
        await self._client.close()
