"""
Azure OpenAI Embedding Provider.

Embeds through an Azure deployment. ``model`` is the deployment name, which
is what Azure expects in the ``model`` field of the request.
"""

from openai import AsyncAzureOpenAI

from .openai_client_provider import OpenAIClientEmbeddingProvider
from ..config import ProviderConfig
from ..utils.logging_config import get_logger

logger = get_logger(__name__)


class AzureEmbeddingProvider(OpenAIClientEmbeddingProvider):
    """Embedding provider backed by Azure OpenAI Service."""

    def __init__(self, config: ProviderConfig, max_retries: int = 0) -> None:
        if not config.endpoint:
            raise ValueError("Azure endpoint is required")
        if not config.api_version:
            raise ValueError("Azure API version is required")

        client = AsyncAzureOpenAI(
            api_key=config.api_key,
            api_version=config.api_version,
            azure_endpoint=config.endpoint,
            max_retries=max_retries,
        )
        super().__init__(
            client,
            model=config.model_name or "",
            dimensions=config.dimensions,
            provider_label="azure",
        )
        logger.info(
            "Initialized AzureEmbeddingProvider (endpoint=%s, api_version=%s, deployment=%s)",
            config.endpoint,
            config.api_version,
            self.model,
        )

    async def validate_model(self, model: str) -> bool:
        """Check the deployment with a one-word embedding call."""
        try:
            await self._client.embeddings.create(model=model, input=["test"])
            return True
        except Exception as exc:
            logger.warning("Azure deployment validation failed for %s: %s", model, exc)
            return False
