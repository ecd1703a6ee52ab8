"""
Idempotency Coordinator - at-most-once execution of keyed operations.

``run(key, operation)`` executes *operation* only if no earlier call with the
same key has completed. The lifecycle of the persisted record is
``processing -> completed`` on success and ``processing -> failed`` on error;
a ``completed`` record short-circuits every later call with its stored
result.

Claiming a key is atomic (create-if-absent, or a conditional update over a
``failed`` / stale ``processing`` record). A live ``processing`` record held
by another caller raises ``IdempotencyConflictError`` instead of running the
operation a second time.

Usage:
    store = SQLAlchemyIdempotencyStore(DatabaseConnection(url))
    coordinator = IdempotencyCoordinator(store)

    outcomes = await coordinator.run(
        "sync-2024-05-01",
        lambda: pipeline.process(records),
        serialize=outcomes_to_dicts,
        deserialize=outcomes_from_dicts,
    )
"""

import inspect
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from ..utils.logging_config import get_logger
from .error_reporter import ErrorCode, ErrorReporter
from .idempotency_store import IdempotencyState, IdempotencyStore, as_utc

logger = get_logger(__name__)

T = TypeVar("T")

OPERATION_NAME = "idempotency"
DEFAULT_STALE_AFTER = 3600.0
MAX_CLAIM_ATTEMPTS = 3


class IdempotencyError(Exception):
    """Base class for idempotency bookkeeping errors."""


class IdempotencyConflictError(IdempotencyError):
    """Another caller is currently running the operation for this key."""

    def __init__(self, key: str, started_at: Optional[datetime] = None):
        self.key = key
        self.started_at = started_at
        detail = f" (started at {started_at.isoformat()})" if started_at else ""
        super().__init__(f"Operation for idempotency key '{key}' is already in progress{detail}")


class IdempotencyCoordinator:
    """
    Runs operations at most once per idempotency key.

    Args:
        store: IdempotencyStore; None disables idempotency and every call
            runs the operation directly.
        stale_after: Seconds after which a ``processing`` record is assumed
            to belong to a crashed attempt and may be taken over. None means
            never (default: 3600).
        reporter: ErrorReporter for conflict/failure events
    """

    def __init__(
        self,
        store: Optional[IdempotencyStore] = None,
        stale_after: Optional[float] = DEFAULT_STALE_AFTER,
        reporter: Optional[ErrorReporter] = None,
    ):
        self.store = store
        self.stale_after = stale_after
        self.reporter = reporter or ErrorReporter()

    async def run(
        self,
        key: str,
        operation: Callable[[], Union[T, Awaitable[T]]],
        operation_name: str = "pipeline",
        serialize: Optional[Callable[[T], Any]] = None,
        deserialize: Optional[Callable[[Any], T]] = None,
    ) -> T:
        """
        Execute *operation* under *key* with at-most-once semantics.

        Args:
            key: Caller-supplied idempotency key.
            operation: Zero-argument callable or coroutine function.
            operation_name: Name stored with the record.
            serialize: Converts the result into JSON-compatible data for
                storage (default: stored as-is).
            deserialize: Inverse of *serialize*, applied to replayed results.

        Returns:
            The operation's result, or the stored result of an earlier
            completed run.

        Raises:
            IdempotencyConflictError: A live attempt holds the key.
            Exception: Whatever *operation*, *serialize* or the completion
                write raised (after recording the attempt as failed).
        """
        if not key:
            raise ValueError("idempotency key must be a non-empty string")

        if self.store is None:
            logger.debug("No idempotency store configured; running %s directly", operation_name)
            return await self._invoke(operation)

        claimed = self._claim(key, operation_name)
        if isinstance(claimed, IdempotencyState):
            logger.info(
                "Operation %s with key %s already completed, skipping", operation_name, key
            )
            stored = claimed.result
            return deserialize(stored) if deserialize else stored

        started_at = claimed
        try:
            result = await self._invoke(operation)
            stored = serialize(result) if serialize else result
            completed = self.store.mark_completed(key, started_at, stored)
        except Exception as exc:
            # A result that cannot be stored fails the attempt like the operation would
            recorded = self.store.mark_failed(key, started_at, str(exc) or type(exc).__name__)
            self.reporter.report(
                OPERATION_NAME,
                ErrorCode.IDEMPOTENCY_FAILED,
                f"Operation {operation_name} failed for key {key}: {exc}",
                context={"idempotencyKey": key, "recorded": recorded},
                error=exc,
            )
            raise

        if not completed:
            logger.warning(
                "Completion for key %s was not recorded; the attempt was taken over", key
            )
        else:
            logger.info("Operation %s with key %s completed", operation_name, key)
        return result

    def get_state(self, key: str) -> Optional[IdempotencyState]:
        """Return the stored state for *key* (None without a store or record)."""
        if self.store is None:
            return None
        return self.store.get(key)

    # ------------------------------------------------------------------

    def _claim(self, key: str, operation_name: str) -> Union[datetime, IdempotencyState]:
        """Return the new attempt's ``started_at``, or the completed state."""
        for _ in range(MAX_CLAIM_ATTEMPTS):
            state = self.store.get(key)
            started_at = datetime.now(timezone.utc)

            if state is None:
                if self.store.try_create(key, operation_name, started_at):
                    logger.debug("Claimed new idempotency key %s", key)
                    return started_at
                continue

            if state.is_completed:
                return state

            if state.is_processing and not self._is_stale(state):
                self.reporter.report(
                    OPERATION_NAME,
                    ErrorCode.IDEMPOTENCY_CONFLICT,
                    f"Key {key} is already being processed",
                    context={
                        "idempotencyKey": key,
                        "startedAt": state.started_at.isoformat() if state.started_at else None,
                    },
                )
                raise IdempotencyConflictError(key, state.started_at)

            if self.store.try_reclaim(key, operation_name, state, started_at):
                logger.info("Reclaimed idempotency key %s from status %s", key, state.status)
                return started_at

        raise IdempotencyConflictError(key)

    def _is_stale(self, state: IdempotencyState) -> bool:
        if self.stale_after is None:
            return False
        started = as_utc(state.started_at)
        if started is None:
            return True
        return datetime.now(timezone.utc) - started > timedelta(seconds=self.stale_after)

    @staticmethod
    async def _invoke(operation: Callable[[], Any]) -> Any:
        result = operation()
        if inspect.isawaitable(result):
            result = await result
        return result
