"""Exceptions and error translation for the SQLAlchemy persistence layer."""

from __future__ import annotations

from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from outbox_core.exceptions import (
    ConcurrencyConflictError,
    OutboxError,
    StorageError,
)

# PostgreSQL serialization_failure / deadlock_detected.
_CONFLICT_SQLSTATES = frozenset({"40001", "40P01"})


class SQLAlchemyStorageError(StorageError):
    """Base exception for all SQLAlchemy-specific persistence errors."""


class SessionManagementError(SQLAlchemyStorageError):
    """Raised when session creation or management fails."""


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    for attr in ("sqlstate", "pgcode"):
        code = getattr(orig, attr, None)
        if isinstance(code, str):
            return code
    return None


def translate_error(exc: Exception, action: str) -> OutboxError:
    """Map a driver/ORM exception onto the outbox error taxonomy."""
    if isinstance(exc, OutboxError):
        return exc
    if isinstance(exc, (StaleDataError, IntegrityError)):
        return ConcurrencyConflictError(f"Conflicting write while trying to {action}: {exc}")
    if isinstance(exc, DBAPIError) and _sqlstate(exc) in _CONFLICT_SQLSTATES:
        return ConcurrencyConflictError(f"Conflicting write while trying to {action}: {exc}")
    if isinstance(exc, SQLAlchemyError):
        return SQLAlchemyStorageError(f"Failed to {action}: {exc}")
    return StorageError(f"Failed to {action}: {exc}")


__all__: list[str] = [
    "SQLAlchemyStorageError",
    "SessionManagementError",
    "translate_error",
]
