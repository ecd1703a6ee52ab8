"""
Resilient Embed - Core Package

Adaptive, fault-tolerant batch embedding for downstream similarity search.

This package provides:
- Provider abstraction layer for embedding APIs with typed error classification
- Service layer: batch sizing, retry/split/backoff, normalization, pipeline
- Idempotent execution of keyed runs backed by a database or cache files
- Database layer for idempotency state and the structured error log
"""

__version__ = "0.1.0"

from .providers import BaseEmbeddingProvider, EmbeddingResult
from .services import (
    BatchSizeBudget,
    DynamicBatchEmbeddingPipeline,
    EmbeddableRecord,
    EmbeddingOutcome,
    IdempotencyCoordinator,
    RetryingBatchEmbedder,
    estimate_batch_size,
    normalize_vector,
)

from . import db
from . import services
from . import utils

__all__ = [
    "BaseEmbeddingProvider",
    "EmbeddingResult",
    "BatchSizeBudget",
    "DynamicBatchEmbeddingPipeline",
    "EmbeddableRecord",
    "EmbeddingOutcome",
    "IdempotencyCoordinator",
    "RetryingBatchEmbedder",
    "estimate_batch_size",
    "normalize_vector",
    "db",
    "services",
    "utils",
]
