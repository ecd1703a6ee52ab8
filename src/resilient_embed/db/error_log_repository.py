"""Error Log Repository - persistence and queries for structured error events."""

from typing import Any, Dict, List, Optional

from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from .models import ErrorLog


class ErrorLogRepository:
    """Repository for ``ErrorLog`` rows."""

    def __init__(self, session: Session):
        self.session = session

    def insert_error(
        self,
        operation: str,
        error_code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> int:
        """Insert one error event and return its ID."""
        entry = ErrorLog(
            operation=operation,
            error_code=error_code,
            message=message,
            context_json=context or {},
        )
        self.session.add(entry)
        self.session.flush()
        return entry.id

    def query_errors(
        self,
        operation: Optional[str] = None,
        error_code: Optional[str] = None,
        limit: int = 100,
    ) -> List[ErrorLog]:
        """Return the most recent events, optionally filtered."""
        query = self.session.query(ErrorLog)
        if operation:
            query = query.filter(ErrorLog.operation == operation)
        if error_code:
            query = query.filter(ErrorLog.error_code == error_code)
        return query.order_by(desc(ErrorLog.id)).limit(limit).all()

    def count_by_code(self) -> Dict[str, int]:
        """Return ``{error_code: count}`` over all stored events."""
        rows = (
            self.session.query(ErrorLog.error_code, func.count(ErrorLog.id))
            .group_by(ErrorLog.error_code)
            .all()
        )
        return {code: count for code, count in rows}
