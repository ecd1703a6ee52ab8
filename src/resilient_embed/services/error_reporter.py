"""
Structured error/telemetry sink.

Every retry, split, degrade and idempotency transition on a failure path is
reported as ``{operation, errorCode, message, timestamp, context}``. Records
always go to the package logger as a JSON line; when a ``DatabaseConnection``
is supplied they are also stored in the ``error_logs`` table. Persistence is
best-effort: a failing database never interrupts the caller.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, TYPE_CHECKING

from ..utils.logging_config import get_logger

if TYPE_CHECKING:
    from ..db.connection import DatabaseConnection

logger = get_logger(__name__)


class ErrorCode(str, Enum):
    """Machine-readable codes attached to reported events."""

    PAYLOAD_SIZE_EXCEEDED = "payload_size_exceeded"
    API_RATE_LIMIT = "api_rate_limit"
    AUTHENTICATION_ERROR = "authentication_error"
    BATCH_PROCESSING_ERROR = "batch_processing_error"
    BATCH_SPLIT = "batch_split"
    RETRY_SCHEDULED = "retry_scheduled"
    BATCH_DEGRADED = "batch_degraded"
    CANCELLED = "cancelled"
    IDEMPOTENCY_CONFLICT = "idempotency_conflict"
    IDEMPOTENCY_FAILED = "idempotency_failed"
    DATABASE_WRITE_ERROR = "database_write_error"


class ErrorReporter:
    """
    Emits structured error events to the log and, optionally, the database.

    Args:
        db: Optional DatabaseConnection; events are persisted to ``error_logs``
            when provided.
        include_traceback: Attach the exception type to the context of
            events that carry an exception (default: True).
    """

    def __init__(
        self,
        db: Optional["DatabaseConnection"] = None,
        include_traceback: bool = True,
    ):
        self.db = db
        self.include_traceback = include_traceback

    def report(
        self,
        operation: str,
        error_code: Any,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        error: Optional[BaseException] = None,
    ) -> Dict[str, Any]:
        """
        Report one event.

        Args:
            operation: Operation name (e.g. ``'embedding_batch'``)
            error_code: ``ErrorCode`` member or plain string
            message: Human-readable message
            context: Extra structured context
            error: Exception that caused the event, if any

        Returns:
            The structured event that was emitted.
        """
        code = error_code.value if isinstance(error_code, ErrorCode) else str(error_code)
        context = dict(context or {})
        if error is not None and self.include_traceback:
            context.setdefault("errorType", type(error).__name__)

        event = {
            "operation": operation,
            "errorCode": code,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "context": context,
        }
        logger.warning(json.dumps(event, default=str, ensure_ascii=False))

        if self.db is not None:
            self._persist(operation, code, message, context)
        return event

    def _persist(
        self, operation: str, code: str, message: str, context: Dict[str, Any]
    ) -> None:
        from ..db.error_log_repository import ErrorLogRepository

        try:
            with self.db.session_scope() as session:
                ErrorLogRepository(session).insert_error(
                    operation=operation,
                    error_code=code,
                    message=message,
                    context=json.loads(json.dumps(context, default=str)),
                )
        except Exception as e:
            logger.error("Failed to persist error log for %s: %s", operation, e)
