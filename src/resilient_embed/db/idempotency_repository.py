"""
Idempotency Repository - Database operations for idempotency records.

Every state transition is a single statement whose WHERE clause names the
state it expects to replace, so two callers racing on the same key cannot
both claim it.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from .models import (
    IdempotencyRecord,
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PROCESSING,
    utcnow,
)
from ..utils.logging_config import get_logger

logger = get_logger(__name__)


class IdempotencyRepository:
    """
    Repository for reads and guarded writes of ``IdempotencyRecord`` rows.

    Usage:
        with db.session_scope() as session:
            repo = IdempotencyRepository(session)
            repo.insert_processing("nightly-sync", "pipeline")
    """

    def __init__(self, session: Session):
        """
        Initialize repository with a database session.

        Args:
            session: SQLAlchemy Session instance
        """
        self.session = session

    def get(self, idempotency_key: str) -> Optional[IdempotencyRecord]:
        """Return the record for *idempotency_key*, or None."""
        return self.session.get(IdempotencyRecord, idempotency_key)

    def insert_processing(
        self,
        idempotency_key: str,
        operation: str,
        started_at: Optional[datetime] = None,
    ) -> IdempotencyRecord:
        """
        Insert a new ``processing`` record.

        Raises:
            sqlalchemy.exc.IntegrityError: A record already exists for the key
                (surfaced at flush time).
        """
        record = IdempotencyRecord(
            idempotency_key=idempotency_key,
            operation=operation,
            status=STATUS_PROCESSING,
            started_at=started_at or utcnow(),
        )
        self.session.add(record)
        self.session.flush()
        logger.debug("Inserted processing record: key=%s, operation=%s", idempotency_key, operation)
        return record

    def reclaim(
        self,
        idempotency_key: str,
        operation: str,
        expected_status: str,
        expected_started_at: datetime,
        started_at: Optional[datetime] = None,
    ) -> bool:
        """
        Move an existing record back to ``processing`` if it is unchanged.

        Args:
            idempotency_key: Key to reclaim
            operation: Operation name to record
            expected_status: Status the caller observed ('failed' or 'processing')
            expected_started_at: ``started_at`` the caller observed

        Returns:
            True if exactly one row was updated.
        """
        stmt = (
            update(IdempotencyRecord)
            .where(
                IdempotencyRecord.idempotency_key == idempotency_key,
                IdempotencyRecord.status == expected_status,
                IdempotencyRecord.started_at == expected_started_at,
            )
            .values(
                operation=operation,
                status=STATUS_PROCESSING,
                started_at=started_at or utcnow(),
                result_json=None,
                error=None,
                completed_at=None,
                failed_at=None,
            )
            .execution_options(synchronize_session=False)
        )
        updated = self.session.execute(stmt).rowcount == 1
        logger.debug(
            "Reclaim key=%s from status=%s: %s", idempotency_key, expected_status, updated
        )
        return updated

    def mark_completed(
        self, idempotency_key: str, started_at: datetime, result: Any
    ) -> bool:
        """Record a successful result for the attempt that started at *started_at*."""
        stmt = (
            update(IdempotencyRecord)
            .where(
                IdempotencyRecord.idempotency_key == idempotency_key,
                IdempotencyRecord.status == STATUS_PROCESSING,
                IdempotencyRecord.started_at == started_at,
            )
            .values(status=STATUS_COMPLETED, result_json=result, completed_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount == 1

    def mark_failed(
        self, idempotency_key: str, started_at: datetime, error: str
    ) -> bool:
        """Record a failure for the attempt that started at *started_at*."""
        stmt = (
            update(IdempotencyRecord)
            .where(
                IdempotencyRecord.idempotency_key == idempotency_key,
                IdempotencyRecord.status == STATUS_PROCESSING,
                IdempotencyRecord.started_at == started_at,
            )
            .values(status=STATUS_FAILED, error=error, failed_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount == 1

    def delete(self, idempotency_key: str) -> bool:
        """Remove the record for *idempotency_key*. Returns True if one existed."""
        record = self.get(idempotency_key)
        if record is None:
            return False
        self.session.delete(record)
        self.session.flush()
        return True
