"""
Business Logic Layer (Services)

This package contains the services that turn text records into normalized
embeddings around an unreliable provider:

- Batch size estimation from a payload byte budget
- Retry with exponential backoff and recursive batch splitting
- L2 normalization of returned vectors
- The top-level batch embedding pipeline
- Idempotent (at-most-once) execution of keyed runs
- Structured error reporting

All services are provider-agnostic and work with any BaseEmbeddingProvider.
"""

from .records import (
    EmbeddableRecord,
    EmbeddingOutcome,
    outcomes_to_dicts,
    outcomes_from_dicts,
    summarize_outcomes,
)
from .normalization import normalize_vector
from .batch_sizing import BatchSizeBudget, estimate_batch_size
from .error_reporter import ErrorCode, ErrorReporter
from .retrying_embedder import RetryingBatchEmbedder
from .pipeline import DynamicBatchEmbeddingPipeline
from .idempotency_store import (
    IdempotencyState,
    IdempotencyStore,
    SQLAlchemyIdempotencyStore,
    FileIdempotencyStore,
)
from .idempotency import (
    IdempotencyCoordinator,
    IdempotencyError,
    IdempotencyConflictError,
)

__all__ = [
    "EmbeddableRecord",
    "EmbeddingOutcome",
    "outcomes_to_dicts",
    "outcomes_from_dicts",
    "summarize_outcomes",
    "normalize_vector",
    "BatchSizeBudget",
    "estimate_batch_size",
    "ErrorCode",
    "ErrorReporter",
    "RetryingBatchEmbedder",
    "DynamicBatchEmbeddingPipeline",
    "IdempotencyState",
    "IdempotencyStore",
    "SQLAlchemyIdempotencyStore",
    "FileIdempotencyStore",
    "IdempotencyCoordinator",
    "IdempotencyError",
    "IdempotencyConflictError",
]
