"""
Database Layer - Models, connection, and repositories.

Persists idempotency state and the structured error log using SQLAlchemy.
Supports both SQLite (development) and PostgreSQL (production).
"""

from .models import Base, IdempotencyRecord, ErrorLog
from .connection import DatabaseConnection
from .idempotency_repository import IdempotencyRepository
from .error_log_repository import ErrorLogRepository

__all__ = [
    "Base",
    "IdempotencyRecord",
    "ErrorLog",
    "DatabaseConnection",
    "IdempotencyRepository",
    "ErrorLogRepository",
]
