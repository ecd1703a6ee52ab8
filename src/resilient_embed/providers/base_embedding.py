"""
Base classes for embedding provider abstraction.

Defines the interface that all embedding providers must implement,
ensuring consistent behavior whether embeddings come from Azure OpenAI,
HuggingFace TEI, local models, or any OpenAI-compatible endpoint.

Concrete providers implement ``create_embeddings``. Callers use
``embed_batch``, which applies the provider's configured model and maps
every failure into the typed errors of ``providers.errors``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from .errors import classify_provider_error
from ..utils.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class EmbeddingResult:
    """Provider-neutral embedding result.

    Attributes:
        vector: The embedding vector as a list of floats.
        index: Position of this result in the input batch.
    """

    vector: List[float]
    index: int


class BaseEmbeddingProvider(ABC):
    """
    Abstract base class for all embedding providers.

    All embedding provider implementations must inherit from this class
    and implement its abstract methods. This keeps the batch embedder
    decoupled from any specific SDK or transport.
    """

    #: Model or deployment name used by ``embed_batch``.
    model: str = ""
    #: Optional output dimension override used by ``embed_batch``.
    dimensions: Optional[int] = None

    @abstractmethod
    async def create_embeddings(
        self,
        texts: List[str],
        model: str,
        dimensions: Optional[int] = None,
    ) -> List[EmbeddingResult]:
        """
        Generate embeddings for one or more texts in a single API call.

        Args:
            texts: Input texts to embed.
            model: Model or deployment name.
            dimensions: Optional output dimension override
                        (only supported by some models).

        Returns:
            List of ``EmbeddingResult`` objects in the same order as *texts*.

        Raises:
            Exception: Provider-specific errors (rate limits, auth, etc.).
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for this provider (e.g. ``'azure'``)."""

    @abstractmethod
    async def close(self) -> None:
        """Release any underlying resources (HTTP clients, etc.)."""

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """
        Embed *texts* with one provider call and return raw vectors in order.

        Raises:
            PayloadTooLargeError: The request exceeded the provider's size limit.
            TransientProviderError: Rate limit, timeout, network or 5xx failure.
            PermanentProviderError: Auth, permission or malformed request.
        """
        try:
            results = await self.create_embeddings(
                texts, self.model, dimensions=self.dimensions
            )
        except Exception as exc:
            error = classify_provider_error(exc)
            logger.debug(
                "%s embed_batch failed (%s): %s",
                self.get_provider_name(),
                type(error).__name__,
                error.message,
            )
            if error is exc:
                raise
            raise error from exc

        ordered = sorted(results, key=lambda r: r.index)
        return [list(r.vector) for r in ordered]

    # ------------------------------------------------------------------
    # Optional hooks with sensible defaults
    # ------------------------------------------------------------------

    async def validate_model(self, model: str) -> bool:
        """Check whether *model* is available on this provider.

        The default implementation returns ``True`` (assume valid).
        Override in providers that support model listing / probing.
        """
        return True

    # Context-manager support
    async def __aenter__(self) -> "BaseEmbeddingProvider":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
