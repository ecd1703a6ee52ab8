"""
Dynamic Batch Embedding Pipeline - top-level driver for embedding runs.

Partitions an arbitrarily large sequence of records into provider-sized
slices, embeds each slice through ``RetryingBatchEmbedder`` and assembles one
outcome per input record, in input order.

Usage:
    from resilient_embed.providers import EmbeddingProviderFactory
    from resilient_embed.services import DynamicBatchEmbeddingPipeline

    provider = EmbeddingProviderFactory().create_from_config("openai")
    pipeline = DynamicBatchEmbeddingPipeline(provider)

    outcomes = await pipeline.process(records)
    vectors = [o.embedding for o in outcomes if o.is_indexable]
"""

import asyncio
from typing import List, Optional, Sequence, Tuple

from ..config import PipelineConfig
from ..providers.base_embedding import BaseEmbeddingProvider
from ..providers.errors import EmbeddingFailedError
from ..utils.logging_config import get_logger
from ..utils.text_utils import is_blank
from .batch_sizing import SAMPLE_SIZE, BatchSizeBudget, estimate_batch_size
from .error_reporter import ErrorCode, ErrorReporter
from .records import EmbeddableRecord, EmbeddingOutcome, summarize_outcomes
from .retrying_embedder import SleepFn, RetryingBatchEmbedder

logger = get_logger(__name__)

OPERATION_NAME = "embedding_pipeline"


class DynamicBatchEmbeddingPipeline:
    """
    Adaptive, fault-tolerant batch embedding.

    Guarantees:
    - ``len(process(records)) == len(records)`` and ``result[i].record is records[i]``
    - Provider failures never raise; they yield degraded outcomes.
    - A failure inside one slice never affects other slices.

    Args:
        provider: Embedding provider (dependency-injected)
        config: PipelineConfig with retry/budget/concurrency settings.
            Defaults to ``PipelineConfig()``.
        reporter: ErrorReporter for structured failure events
        sleep: Optional backoff sleep coroutine (tests inject a recorder)
    """

    def __init__(
        self,
        provider: BaseEmbeddingProvider,
        config: Optional[PipelineConfig] = None,
        reporter: Optional[ErrorReporter] = None,
        sleep: Optional[SleepFn] = None,
    ):
        self.provider = provider
        self.config = config or PipelineConfig()
        self.reporter = reporter or ErrorReporter()
        self.embedder = RetryingBatchEmbedder(
            provider,
            max_retries=self.config.max_retries,
            initial_delay=self.config.initial_delay,
            backoff_factor=self.config.backoff_factor,
            max_delay=self.config.max_delay,
            retry_permanent_errors=self.config.retry_permanent_errors,
            max_text_chars=self.config.max_text_chars,
            reporter=self.reporter,
            sleep=sleep,
        )

    async def process(
        self,
        records: Sequence[EmbeddableRecord],
        budget: Optional[BatchSizeBudget] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[EmbeddingOutcome]:
        """
        Embed *records* and return one outcome per record, in order.

        Args:
            records: Input records. Blank-content records are not sent to
                the provider; they come back as skipped outcomes.
            budget: Payload budget; defaults to the config's budget.
            cancel_event: Once set, no new provider calls are issued and
                every record not yet embedded is returned degraded.

        Returns:
            List of ``EmbeddingOutcome`` with ``len == len(records)``.
        """
        records = list(records)
        if not records:
            return []

        budget = budget or self.config.budget()
        results: List[Optional[EmbeddingOutcome]] = [None] * len(records)

        embeddable: List[Tuple[int, EmbeddableRecord]] = []
        for position, record in enumerate(records):
            if is_blank(record.content):
                results[position] = EmbeddingOutcome.skipped_for(record)
            else:
                embeddable.append((position, record))

        if embeddable:
            sample = [record for _, record in embeddable[:SAMPLE_SIZE]]
            batch_size = estimate_batch_size(sample, budget)
            slices = [
                embeddable[i:i + batch_size]
                for i in range(0, len(embeddable), batch_size)
            ]
            logger.info(
                "Embedding %d records (%d skipped) in %d slice(s) of up to %d",
                len(embeddable),
                len(records) - len(embeddable),
                len(slices),
                batch_size,
            )

            if self.config.max_concurrency > 1 and len(slices) > 1:
                await self._process_concurrently(slices, results, cancel_event)
            else:
                for index, slice_ in enumerate(slices):
                    await self._process_slice(index, slice_, results, cancel_event)

        outcomes: List[EmbeddingOutcome] = results  # type: ignore[assignment]
        logger.info("Embedding run finished: %s", summarize_outcomes(outcomes))
        return outcomes

    async def embed_text(self, text: str) -> List[float]:
        """
        Embed a single text and return its normalized vector.

        Raises:
            ValueError: If *text* is blank.
            EmbeddingFailedError: If the provider could not embed it.
        """
        if is_blank(text):
            raise ValueError(
                "Cannot generate embedding for empty text. "
                "Text must contain at least one non-whitespace character."
            )
        outcome = (await self.embedder.embed([EmbeddableRecord(content=text)]))[0]
        if outcome.degraded:
            raise EmbeddingFailedError(f"Embedding failed: {outcome.error}")
        return outcome.embedding

    async def _process_concurrently(
        self,
        slices: List[List[Tuple[int, EmbeddableRecord]]],
        results: List[Optional[EmbeddingOutcome]],
        cancel_event: Optional[asyncio.Event],
    ) -> None:
        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def _bounded(index: int, slice_: List[Tuple[int, EmbeddableRecord]]) -> None:
            async with semaphore:
                await self._process_slice(index, slice_, results, cancel_event)

        await asyncio.gather(*(_bounded(i, s) for i, s in enumerate(slices)))

    async def _process_slice(
        self,
        index: int,
        slice_: List[Tuple[int, EmbeddableRecord]],
        results: List[Optional[EmbeddingOutcome]],
        cancel_event: Optional[asyncio.Event],
    ) -> None:
        positions = [position for position, _ in slice_]
        batch = [record for _, record in slice_]
        try:
            outcomes = await self.embedder.embed(batch, cancel_event=cancel_event)
            if len(outcomes) != len(batch):
                raise RuntimeError(
                    f"Embedder returned {len(outcomes)} outcomes for {len(batch)} records"
                )
        except Exception as exc:
            logger.exception("Slice %d failed unexpectedly", index)
            self.reporter.report(
                OPERATION_NAME,
                ErrorCode.BATCH_PROCESSING_ERROR,
                f"Slice {index} failed: {exc}",
                context={"slice": index, "batchSize": len(batch)},
                error=exc,
            )
            outcomes = [EmbeddingOutcome.degraded_for(record, str(exc)) for record in batch]

        for position, outcome in zip(positions, outcomes):
            results[position] = outcome
