"""
Idempotency state stores.

A store persists one ``IdempotencyState`` per key and exposes guarded
transitions: each write names the state it expects to replace and reports
whether it won. ``IdempotencyCoordinator`` builds at-most-once execution on
top of these primitives.

Two backends are provided:

- ``SQLAlchemyIdempotencyStore``: rows in ``idempotency_records``; the initial
  claim is a primary-key insert, later transitions are conditional UPDATEs.
- ``FileIdempotencyStore``: one JSON document per key in a cache directory;
  the initial claim uses ``O_CREAT | O_EXCL``. Later transitions compare then
  atomically replace the file, which is safe for a single host.
"""

import json
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from sqlalchemy.exc import IntegrityError

from ..db.connection import DatabaseConnection
from ..db.idempotency_repository import IdempotencyRepository
from ..db.models import STATUS_COMPLETED, STATUS_FAILED, STATUS_PROCESSING
from ..utils.logging_config import get_logger

logger = get_logger(__name__)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops the offset)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass
class IdempotencyState:
    """Snapshot of a stored idempotency record."""

    key: str
    operation: str
    status: str
    started_at: Optional[datetime] = None
    result: Any = None
    error: Optional[str] = None
    completed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None

    @property
    def is_completed(self) -> bool:
        return self.status == STATUS_COMPLETED

    @property
    def is_processing(self) -> bool:
        return self.status == STATUS_PROCESSING

    @property
    def is_failed(self) -> bool:
        return self.status == STATUS_FAILED


class IdempotencyStore(ABC):
    """Persistence contract used by ``IdempotencyCoordinator``."""

    @abstractmethod
    def get(self, key: str) -> Optional[IdempotencyState]:
        """Return the current state for *key*, or None if absent."""

    @abstractmethod
    def try_create(self, key: str, operation: str, started_at: datetime) -> bool:
        """Atomically create a ``processing`` record if none exists."""

    @abstractmethod
    def try_reclaim(
        self,
        key: str,
        operation: str,
        expected: IdempotencyState,
        started_at: datetime,
    ) -> bool:
        """Replace *expected* (failed or stale processing) with a new ``processing`` record."""

    @abstractmethod
    def mark_completed(self, key: str, started_at: datetime, result: Any) -> bool:
        """Move the attempt started at *started_at* to ``completed``."""

    @abstractmethod
    def mark_failed(self, key: str, started_at: datetime, error: str) -> bool:
        """Move the attempt started at *started_at* to ``failed``."""


class SQLAlchemyIdempotencyStore(IdempotencyStore):
    """
    Idempotency store backed by the ``idempotency_records`` table.

    Args:
        db: DatabaseConnection; tables are created on construction unless
            ``init_db=False``.
    """

    def __init__(self, db: DatabaseConnection, init_db: bool = True):
        self.db = db
        if init_db:
            db.init_db()

    def get(self, key: str) -> Optional[IdempotencyState]:
        with self.db.session_scope() as session:
            record = IdempotencyRepository(session).get(key)
            if record is None:
                return None
            return IdempotencyState(
                key=record.idempotency_key,
                operation=record.operation,
                status=record.status,
                started_at=record.started_at,
                result=record.result_json,
                error=record.error,
                completed_at=record.completed_at,
                failed_at=record.failed_at,
            )

    def try_create(self, key: str, operation: str, started_at: datetime) -> bool:
        try:
            with self.db.session_scope() as session:
                IdempotencyRepository(session).insert_processing(key, operation, started_at)
            return True
        except IntegrityError:
            logger.debug("Idempotency key %s already exists", key)
            return False

    def try_reclaim(
        self,
        key: str,
        operation: str,
        expected: IdempotencyState,
        started_at: datetime,
    ) -> bool:
        with self.db.session_scope() as session:
            return IdempotencyRepository(session).reclaim(
                key,
                operation,
                expected_status=expected.status,
                expected_started_at=expected.started_at,
                started_at=started_at,
            )

    def mark_completed(self, key: str, started_at: datetime, result: Any) -> bool:
        with self.db.session_scope() as session:
            return IdempotencyRepository(session).mark_completed(key, started_at, result)

    def mark_failed(self, key: str, started_at: datetime, error: str) -> bool:
        with self.db.session_scope() as session:
            return IdempotencyRepository(session).mark_failed(key, started_at, error)


class FileIdempotencyStore(IdempotencyStore):
    """
    Idempotency store keeping one JSON file per key.

    Files are named ``idempotency_<key>.json`` with every character outside
    ``[A-Za-z0-9]`` replaced by ``_``.

    Args:
        cache_dir: Directory for state files (created if missing).
    """

    def __init__(self, cache_dir: Union[str, Path] = ".cache"):
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        safe = re.sub(r"[^a-zA-Z0-9]", "_", key)
        return self.cache_dir / f"idempotency_{safe}.json"

    # -- serialization -------------------------------------------------

    @staticmethod
    def _to_document(state: IdempotencyState) -> Dict[str, Any]:
        doc: Dict[str, Any] = {
            "operation": state.operation,
            "idempotencyKey": state.key,
            "status": state.status,
            "startedAt": state.started_at.isoformat() if state.started_at else None,
        }
        if state.is_completed:
            doc["result"] = state.result
            doc["completedAt"] = state.completed_at.isoformat() if state.completed_at else None
        if state.is_failed:
            doc["error"] = state.error
            doc["failedAt"] = state.failed_at.isoformat() if state.failed_at else None
        return doc

    @staticmethod
    def _parse_time(value: Optional[str]) -> Optional[datetime]:
        return as_utc(datetime.fromisoformat(value)) if value else None

    def _from_document(self, key: str, doc: Dict[str, Any]) -> IdempotencyState:
        return IdempotencyState(
            key=doc.get("idempotencyKey", key),
            operation=doc.get("operation", ""),
            status=doc.get("status", STATUS_FAILED),
            started_at=self._parse_time(doc.get("startedAt")),
            result=doc.get("result"),
            error=doc.get("error"),
            completed_at=self._parse_time(doc.get("completedAt")),
            failed_at=self._parse_time(doc.get("failedAt")),
        )

    def _write(self, path: Path, state: IdempotencyState) -> None:
        tmp = path.with_suffix(f".{os.getpid()}.tmp")
        tmp.write_text(json.dumps(self._to_document(state), indent=2), encoding="utf-8")
        os.replace(tmp, path)

    # -- store contract ------------------------------------------------

    def get(self, key: str) -> Optional[IdempotencyState]:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            doc = json.loads(path.read_text(encoding="utf-8"))
            return self._from_document(key, doc)
        except (OSError, ValueError) as e:
            # Unreadable state is treated as a failed attempt that may be retried
            logger.warning("Failed to read idempotency cache file %s: %s", path, e)
            return IdempotencyState(key=key, operation="", status=STATUS_FAILED, error=str(e))

    def try_create(self, key: str, operation: str, started_at: datetime) -> bool:
        path = self.path_for(key)
        state = IdempotencyState(
            key=key, operation=operation, status=STATUS_PROCESSING, started_at=started_at
        )
        try:
            fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            return False
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(self._to_document(state), fh, indent=2)
        return True

    def _matches(self, key: str, status: str, started_at: Optional[datetime]) -> bool:
        current = self.get(key)
        return (
            current is not None
            and current.status == status
            and as_utc(current.started_at) == as_utc(started_at)
        )

    def try_reclaim(
        self,
        key: str,
        operation: str,
        expected: IdempotencyState,
        started_at: datetime,
    ) -> bool:
        if not self._matches(key, expected.status, expected.started_at):
            return False
        self._write(
            self.path_for(key),
            IdempotencyState(
                key=key, operation=operation, status=STATUS_PROCESSING, started_at=started_at
            ),
        )
        return True

    def mark_completed(self, key: str, started_at: datetime, result: Any) -> bool:
        current = self.get(key)
        if current is None or not self._matches(key, STATUS_PROCESSING, started_at):
            return False
        current.status = STATUS_COMPLETED
        current.result = result
        current.completed_at = datetime.now(timezone.utc)
        self._write(self.path_for(key), current)
        return True

    def mark_failed(self, key: str, started_at: datetime, error: str) -> bool:
        current = self.get(key)
        if current is None or not self._matches(key, STATUS_PROCESSING, started_at):
            return False
        current.status = STATUS_FAILED
        current.error = error
        current.failed_at = datetime.now(timezone.utc)
        self._write(self.path_for(key), current)
        return True
