"""SQLAlchemy (async) persistence for the transactional outbox."""

from __future__ import annotations

from .exceptions import SessionManagementError, SQLAlchemyStorageError, translate_error
from .models import OutboxBase, OutboxEnvelopeModel
from .outbox import SQLAlchemyOutboxStore
from .types import UTCDateTime
from .uow import SQLAlchemyUnitOfWork, sqlalchemy_unit_of_work_factory

__all__ = [
    "OutboxBase",
    "OutboxEnvelopeModel",
    "SessionManagementError",
    "SQLAlchemyOutboxStore",
    "SQLAlchemyStorageError",
    "SQLAlchemyUnitOfWork",
    "UTCDateTime",
    "sqlalchemy_unit_of_work_factory",
    "translate_error",
]
