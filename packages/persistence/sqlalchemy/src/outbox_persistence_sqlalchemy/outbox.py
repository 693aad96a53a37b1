"""
SQLAlchemy implementation of the transactional outbox store.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from outbox_core.exceptions import UnitOfWorkStateError
from outbox_core.ports.outbox import IOutboxStore

from .exceptions import translate_error
from .models import OutboxEnvelopeModel

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

    from outbox_core.envelope import Envelope
    from outbox_core.ports.unit_of_work import UnitOfWork


def _session_of(uow: UnitOfWork) -> AsyncSession:
    from .uow import SQLAlchemyUnitOfWork

    if not isinstance(uow, SQLAlchemyUnitOfWork):
        raise UnitOfWorkStateError(
            f"SQLAlchemyOutboxStore requires a SQLAlchemyUnitOfWork, got {type(uow).__name__}"
        )
    return uow.session


class SQLAlchemyOutboxStore(IOutboxStore):
    """
    Outbox store on the ``outbox`` table, using the session of the unit of work.

    Args:
        skip_locked: Select with ``FOR UPDATE SKIP LOCKED`` so several
            dispatcher instances can share the table without publishing the
            same row twice. Needs a dialect with row locks (PostgreSQL,
            MySQL 8); SQLite ignores it.
    """

    def __init__(self, *, skip_locked: bool = False) -> None:
        self.skip_locked = skip_locked

    async def insert(self, envelopes: Sequence[Envelope], uow: UnitOfWork) -> None:
        """
        Stage envelope rows in the same session as the aggregate changes.
        They are flushed by the commit.
        """
        session = _session_of(uow)
        session.add_all([OutboxEnvelopeModel.from_envelope(e) for e in envelopes])

    async def select_undispatched(self, limit: int, uow: UnitOfWork) -> list[Envelope]:
        """
        Retrieve undispatched envelopes, oldest first.
        """
        session = _session_of(uow)
        stmt = (
            select(OutboxEnvelopeModel)
            .where(OutboxEnvelopeModel.processed_at.is_(None))
            .order_by(OutboxEnvelopeModel.occurred_at, OutboxEnvelopeModel.id)
            .limit(limit)
        )
        if self.skip_locked:
            stmt = stmt.with_for_update(skip_locked=True)
        try:
            result = await session.execute(stmt)
        except SQLAlchemyError as e:
            raise translate_error(e, "select undispatched envelopes") from e
        return [model.to_envelope() for model in result.scalars().all()]

    async def mark_dispatched(
        self, ids: Sequence[str], at: datetime, uow: UnitOfWork
    ) -> None:
        """
        Set ``processed_at`` on rows that are still undispatched.
        """
        if not ids:
            return
        session = _session_of(uow)
        stmt = (
            update(OutboxEnvelopeModel)
            .where(
                OutboxEnvelopeModel.id.in_(list(ids)),
                OutboxEnvelopeModel.processed_at.is_(None),
            )
            .values(processed_at=at)
            .execution_options(synchronize_session=False)
        )
        try:
            await session.execute(stmt)
        except SQLAlchemyError as e:
            raise translate_error(e, "mark envelopes dispatched") from e
