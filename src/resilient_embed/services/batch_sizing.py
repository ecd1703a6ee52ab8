"""
Batch size estimation from a payload byte budget.

The estimate is a heuristic computed once per pipeline run from a short
leading sample: ``floor(max_payload_bytes / average_record_bytes)`` clamped
to ``[min_batch_size, max_batch_size]``. Highly non-uniform content can still
produce an oversized request; the retrying embedder recovers from that by
splitting.
"""

import json
import math
from dataclasses import dataclass
from typing import Sequence

from .records import EmbeddableRecord

SAMPLE_SIZE = 10


@dataclass(frozen=True)
class BatchSizeBudget:
    """Payload budget and batch size bounds for one pipeline run."""

    max_payload_bytes: int = 30000
    min_batch_size: int = 1
    max_batch_size: int = 50

    def __post_init__(self):
        if self.max_payload_bytes <= 0:
            raise ValueError(f"max_payload_bytes must be positive, got {self.max_payload_bytes}")
        if self.min_batch_size < 1:
            raise ValueError(f"min_batch_size must be >= 1, got {self.min_batch_size}")
        if self.max_batch_size < self.min_batch_size:
            raise ValueError(
                f"max_batch_size ({self.max_batch_size}) must be >= "
                f"min_batch_size ({self.min_batch_size})"
            )


def serialized_size(record: EmbeddableRecord) -> int:
    """UTF-8 byte length of the record's JSON payload, e.g. ``{"text": "..."}``."""
    payload = json.dumps(record.to_payload(), ensure_ascii=False)
    return len(payload.encode("utf-8"))


def estimate_batch_size(
    sample: Sequence[EmbeddableRecord], budget: BatchSizeBudget
) -> int:
    """
    Estimate how many records fit in one request under *budget*.

    Args:
        sample: Leading records of the input (the pipeline passes at most
                ``SAMPLE_SIZE``). An empty sample yields ``max_batch_size``.
        budget: Byte budget and clamping bounds.

    Returns:
        A batch size in ``[budget.min_batch_size, budget.max_batch_size]``.
    """
    if not sample:
        return budget.max_batch_size

    sizes = [serialized_size(record) for record in sample]
    average = sum(sizes) / len(sizes)
    optimal = math.floor(budget.max_payload_bytes / average)
    return max(budget.min_batch_size, min(budget.max_batch_size, optimal))
