"""
Database Models - Idempotency state and structured error log.

Designed for SQLite (development/tests) and PostgreSQL (production).
"""

from datetime import datetime, timezone
from sqlalchemy import (
    Column, Integer, String, DateTime, JSON, Text, Index, CheckConstraint
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()

STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IdempotencyRecord(Base):
    """
    Persisted state of one keyed, at-most-once operation.

    Lifecycle: created as ``processing`` when a run with a given key starts,
    then moved to ``completed`` (with the result) or ``failed`` (with the
    error message). A ``completed`` record is final.

    Attributes:
        idempotency_key: Caller-supplied key (primary key)
        operation: Name of the operation run under this key
        status: 'processing', 'completed' or 'failed'
        result_json: JSON result of a completed run
        error: Error message of a failed run
        started_at: When the current attempt claimed the key
        completed_at: When the run completed
        failed_at: When the run failed
    """
    __tablename__ = 'idempotency_records'

    idempotency_key = Column(String(255), primary_key=True)
    operation = Column(String(100), nullable=False)
    status = Column(String(20), nullable=False, default=STATUS_PROCESSING, index=True)
    result_json = Column(JSON, nullable=True)
    error = Column(Text, nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    failed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('processing', 'completed', 'failed')",
            name="check_idempotency_status",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<IdempotencyRecord(key={self.idempotency_key}, "
            f"operation={self.operation}, status={self.status})>"
        )

    def to_dict(self) -> dict:
        """Convert model instance to dictionary."""
        return {
            'idempotencyKey': self.idempotency_key,
            'operation': self.operation,
            'status': self.status,
            'result': self.result_json,
            'error': self.error,
            'startedAt': self.started_at.isoformat() if self.started_at else None,
            'completedAt': self.completed_at.isoformat() if self.completed_at else None,
            'failedAt': self.failed_at.isoformat() if self.failed_at else None,
        }


class ErrorLog(Base):
    """
    Structured record of a failure or state transition on a failure path.

    Attributes:
        id: Primary key
        operation: Operation name (e.g. 'embedding_batch')
        error_code: Machine-readable code (e.g. 'payload_size_exceeded')
        message: Human-readable message
        context_json: Additional context (batch size, attempt, key, ...)
        created_at: When the event was reported
    """
    __tablename__ = 'error_logs'

    id = Column(Integer, primary_key=True, autoincrement=True)
    operation = Column(String(100), nullable=False, index=True)
    error_code = Column(String(50), nullable=False, index=True)
    message = Column(Text, nullable=False)
    context_json = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index('idx_error_logs_created_at', 'created_at'),
    )

    def __repr__(self) -> str:
        return (
            f"<ErrorLog(id={self.id}, operation={self.operation}, "
            f"error_code={self.error_code})>"
        )

    def to_dict(self) -> dict:
        """Convert model instance to dictionary."""
        return {
            'id': self.id,
            'operation': self.operation,
            'errorCode': self.error_code,
            'message': self.message,
            'context': self.context_json,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }
