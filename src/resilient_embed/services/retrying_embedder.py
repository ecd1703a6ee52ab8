"""
Retrying Batch Embedder - retry, backoff, and split around one provider call.

For one batch of records the embedder:

1. Sends the whole batch to the provider in one request.
2. On success, L2-normalizes each returned vector.
3. On ``PayloadTooLargeError`` with more than one record, splits the batch at
   ``len // 2`` and embeds each half recursively with the same retry budget
   and the current backoff delay. Splitting does not consume a retry.
4. On ``TransientProviderError`` (or a single oversized record), sleeps,
   multiplies the delay by ``backoff_factor`` and tries again, for at most
   ``max_retries + 1`` attempts in total.
5. On ``PermanentProviderError``, or once retries are exhausted, returns one
   degraded outcome per record.

Provider failures never propagate: the result always has one outcome per
input record, in input order.

Usage:
    embedder = RetryingBatchEmbedder(provider, max_retries=3, initial_delay=1.0)
    outcomes = await embedder.embed(records)
"""

import asyncio
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple, Type

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    stop_when_event_set,
    wait_exponential,
)

from ..providers.base_embedding import BaseEmbeddingProvider
from ..providers.errors import (
    PayloadTooLargeError,
    PermanentProviderError,
    ProviderError,
    TransientProviderError,
)
from ..utils.logging_config import get_logger
from ..utils.text_utils import truncate_large_text
from .error_reporter import ErrorCode, ErrorReporter
from .normalization import normalize_vector
from .records import EmbeddableRecord, EmbeddingOutcome

logger = get_logger(__name__)

OPERATION_NAME = "embedding_batch"
CANCELLED_MESSAGE = "cancelled"

SleepFn = Callable[[float], Awaitable[None]]


def _is_cancelled(cancel_event: Optional[asyncio.Event]) -> bool:
    return cancel_event is not None and cancel_event.is_set()


class RetryingBatchEmbedder:
    """
    Wraps a ``BaseEmbeddingProvider`` with classification-aware retry,
    exponential backoff and recursive batch splitting.

    Args:
        provider: Embedding provider; injected, never global.
        max_retries: Retries after the first attempt (default: 3)
        initial_delay: First backoff delay in seconds (default: 1.0)
        backoff_factor: Delay multiplier per retry (default: 2.0)
        max_delay: Upper bound on a single delay in seconds (default: 60.0)
        retry_permanent_errors: Retry permanent errors like transient ones
            instead of degrading immediately (default: False)
        max_text_chars: Truncate provider-facing text longer than this
            (default: None, no truncation)
        expected_dimension: Fixed vector length; learned from the first
            successful response when None.
        reporter: ErrorReporter receiving retry/split/degrade events
        sleep: Coroutine used for backoff delays. Defaults to an
            ``asyncio`` sleep that wakes early on cancellation.
    """

    def __init__(
        self,
        provider: BaseEmbeddingProvider,
        max_retries: int = 3,
        initial_delay: float = 1.0,
        backoff_factor: float = 2.0,
        max_delay: float = 60.0,
        retry_permanent_errors: bool = False,
        max_text_chars: Optional[int] = None,
        expected_dimension: Optional[int] = None,
        reporter: Optional[ErrorReporter] = None,
        sleep: Optional[SleepFn] = None,
    ):
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")
        if backoff_factor < 1:
            raise ValueError(f"backoff_factor must be >= 1, got {backoff_factor}")

        self.provider = provider
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.backoff_factor = backoff_factor
        self.max_delay = max_delay
        self.retry_permanent_errors = retry_permanent_errors
        self.max_text_chars = max_text_chars
        self.expected_dimension = expected_dimension
        self.reporter = reporter or ErrorReporter()
        self._sleep = sleep

    async def embed(
        self,
        batch: Sequence[EmbeddableRecord],
        max_retries: Optional[int] = None,
        initial_delay: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[EmbeddingOutcome]:
        """
        Embed *batch*, returning exactly one outcome per record in order.

        Args:
            batch: Records to embed in (ideally) one request.
            max_retries: Override of the instance retry budget.
            initial_delay: Override of the instance initial delay (seconds).
            cancel_event: When set, no further provider calls are made and
                pending records come back degraded.

        Returns:
            List of ``EmbeddingOutcome``; degraded entries carry ``[]``.
        """
        records = list(batch)
        if not records:
            return []
        retries = self.max_retries if max_retries is None else max_retries
        delay = self.initial_delay if initial_delay is None else initial_delay
        return await self._embed(records, retries, delay, cancel_event)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    async def _embed(
        self,
        records: List[EmbeddableRecord],
        max_retries: int,
        delay: float,
        cancel_event: Optional[asyncio.Event],
    ) -> List[EmbeddingOutcome]:
        if _is_cancelled(cancel_event):
            return self._degrade(records, CANCELLED_MESSAGE, ErrorCode.CANCELLED)

        stop = stop_after_attempt(max_retries + 1)
        if cancel_event is not None:
            stop = stop | stop_when_event_set(cancel_event)

        retryer = AsyncRetrying(
            stop=stop,
            wait=wait_exponential(
                multiplier=delay, exp_base=self.backoff_factor, max=self.max_delay
            ),
            retry=retry_if_exception_type(self._retryable_errors()),
            sleep=self._sleeper(cancel_event),
            before_sleep=self._log_retry(len(records), max_retries),
            reraise=True,
        )

        try:
            async for attempt in retryer:
                with attempt:
                    if _is_cancelled(cancel_event):
                        return self._degrade(records, CANCELLED_MESSAGE, ErrorCode.CANCELLED)
                    try:
                        vectors = await self.provider.embed_batch(
                            [self._provider_text(r) for r in records]
                        )
                    except PayloadTooLargeError as exc:
                        if len(records) > 1:
                            current_delay = self._current_delay(
                                delay, attempt.retry_state.attempt_number
                            )
                            return await self._split(
                                records, max_retries, current_delay, cancel_event, exc
                            )
                        raise
                    return self._build_outcomes(records, vectors)
        except ProviderError as exc:
            if _is_cancelled(cancel_event):
                return self._degrade(records, CANCELLED_MESSAGE, ErrorCode.CANCELLED)
            return self._degrade(records, exc.message, exc.error_code, error=exc)

        raise RuntimeError("retry loop exited without an outcome")

    async def _split(
        self,
        records: List[EmbeddableRecord],
        max_retries: int,
        delay: float,
        cancel_event: Optional[asyncio.Event],
        error: PayloadTooLargeError,
    ) -> List[EmbeddingOutcome]:
        mid = len(records) // 2
        self.reporter.report(
            OPERATION_NAME,
            ErrorCode.BATCH_SPLIT,
            f"Payload too large, splitting batch of {len(records)} into {mid} + {len(records) - mid}",
            context={"batchSize": len(records), "delay": delay},
            error=error,
        )
        first = await self._embed(records[:mid], max_retries, delay, cancel_event)
        second = await self._embed(records[mid:], max_retries, delay, cancel_event)
        return first + second

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _retryable_errors(self) -> Tuple[Type[ProviderError], ...]:
        if self.retry_permanent_errors:
            return (TransientProviderError, PayloadTooLargeError, PermanentProviderError)
        return (TransientProviderError, PayloadTooLargeError)

    def _current_delay(self, delay: float, attempt_number: int) -> float:
        current = delay * self.backoff_factor ** (attempt_number - 1)
        return min(current, self.max_delay)

    def _provider_text(self, record: EmbeddableRecord) -> str:
        if self.max_text_chars:
            return truncate_large_text(record.content, self.max_text_chars)
        return record.content

    def _sleeper(self, cancel_event: Optional[asyncio.Event]) -> SleepFn:
        if self._sleep is not None:
            return self._sleep

        async def _sleep(seconds: float) -> None:
            if cancel_event is None:
                await asyncio.sleep(seconds)
                return
            try:
                await asyncio.wait_for(cancel_event.wait(), timeout=seconds)
            except asyncio.TimeoutError:
                pass

        return _sleep

    def _log_retry(
        self, batch_size: int, max_retries: int
    ) -> Callable[[RetryCallState], None]:
        def _before_sleep(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            next_delay = retry_state.next_action.sleep if retry_state.next_action else None
            code = getattr(error, "error_code", ErrorCode.RETRY_SCHEDULED)
            self.reporter.report(
                OPERATION_NAME,
                code,
                f"Retry {retry_state.attempt_number}/{max_retries} after {next_delay}s: {error}",
                context={
                    "batchSize": batch_size,
                    "attempt": retry_state.attempt_number,
                    "delay": next_delay,
                },
                error=error,
            )

        return _before_sleep

    def _build_outcomes(
        self, records: List[EmbeddableRecord], vectors: List[List[float]]
    ) -> List[EmbeddingOutcome]:
        if len(vectors) != len(records):
            raise PermanentProviderError(
                f"Provider returned {len(vectors)} embeddings for {len(records)} inputs"
            )
        for vector in vectors:
            if not vector:
                raise PermanentProviderError("Provider returned an empty embedding")
            if self.expected_dimension is None:
                self.expected_dimension = len(vector)
            elif len(vector) != self.expected_dimension:
                raise PermanentProviderError(
                    f"Provider returned a {len(vector)}-dim embedding, "
                    f"expected {self.expected_dimension}"
                )
        return [
            EmbeddingOutcome(record=record, embedding=normalize_vector(vector))
            for record, vector in zip(records, vectors)
        ]

    def _degrade(
        self,
        records: List[EmbeddableRecord],
        message: str,
        error_code,
        error: Optional[BaseException] = None,
    ) -> List[EmbeddingOutcome]:
        self.reporter.report(
            OPERATION_NAME,
            ErrorCode.CANCELLED if error_code == ErrorCode.CANCELLED else ErrorCode.BATCH_DEGRADED,
            f"Degrading {len(records)} record(s): {message}",
            context={
                "batchSize": len(records),
                "cause": getattr(error_code, "value", error_code),
                "contentSample": (records[0].content or "")[:100],
            },
            error=error,
        )
        return [EmbeddingOutcome.degraded_for(record, message) for record in records]
