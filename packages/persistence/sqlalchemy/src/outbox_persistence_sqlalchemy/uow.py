"""
SQLAlchemyUnitOfWork — one AsyncSession transaction carrying domain rows and outbox rows.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from outbox_core.exceptions import UnitOfWorkStateError
from outbox_core.ports.unit_of_work import UnitOfWork

from .exceptions import SessionManagementError, translate_error
from .outbox import SQLAlchemyOutboxStore

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from sqlalchemy.ext.asyncio import AsyncSession

    from outbox_core.ports.outbox import IOutboxStore

    SessionFactory = Callable[[], AsyncSession]

logger = logging.getLogger("txoutbox.sqlalchemy")


class SQLAlchemyUnitOfWork(UnitOfWork):
    """
    Unit of Work over a SQLAlchemy ``AsyncSession``.

    Application code writes its aggregates through :attr:`session` and
    enqueues events with :class:`~outbox_core.enqueue.Outbox`; on
    :meth:`commit` the staged envelopes are added to the same session, so one
    flush and one ``COMMIT`` persist both.

    Pass either an existing ``session`` (the caller keeps ownership and closes
    it) or a ``session_factory`` (a session is opened on enter and closed on
    exit). Passing both, or neither, raises ``SessionManagementError``::

        begin = sqlalchemy_unit_of_work_factory(async_sessionmaker(engine))

        async with begin() as uow:
            uow.session.add(StudentRow(id="s-1", name="Ada"))
            outbox.enqueue(uow, [StudentEnrolled(student_id="s-1", course="math")])
            await uow.commit()
    """

    def __init__(
        self,
        session: AsyncSession | None = None,
        session_factory: SessionFactory | None = None,
        *,
        store: IOutboxStore | None = None,
    ) -> None:
        if (session is None) == (session_factory is None):
            raise SessionManagementError(
                "SQLAlchemyUnitOfWork needs exactly one of 'session' "
                "(caller-owned) or 'session_factory' (owned by the unit of work)"
            )
        super().__init__(store or SQLAlchemyOutboxStore())
        self._session = session
        self._factory = session_factory

    @property
    def owns_session(self) -> bool:
        return self._factory is not None

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise UnitOfWorkStateError(
                "No session yet; enter the unit of work with 'async with' first"
            )
        return self._session

    async def _begin_transaction(self) -> None:
        if self._factory is not None:
            try:
                self._session = self._factory()
            except Exception as e:  # noqa: BLE001
                raise SessionManagementError(f"Could not open a session: {e}") from e
        session = self.session
        if session.in_transaction():
            return
        try:
            await session.begin()
        except SQLAlchemyError as e:
            raise translate_error(e, "begin transaction") from e

    async def _commit_transaction(self) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            raise translate_error(e, "commit transaction") from e

    async def _rollback_transaction(self) -> None:
        session = self.session
        if not session.in_transaction():
            return
        try:
            await session.rollback()
        except SQLAlchemyError as e:
            raise translate_error(e, "rollback transaction") from e

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Roll back anything uncommitted, then close a session this UoW opened."""
        try:
            await super().__aexit__(exc_type, exc_val, exc_tb)
        finally:
            if self.owns_session and self._session is not None:
                session, self._session = self._session, None
                try:
                    await session.close()
                except SQLAlchemyError as e:
                    logger.warning("Closing outbox session failed: %s", e)


def sqlalchemy_unit_of_work_factory(
    session_factory: SessionFactory,
    *,
    store: IOutboxStore | None = None,
) -> Callable[[], SQLAlchemyUnitOfWork]:
    """
    Build the ``Begin()`` callable shared by the dispatcher and application code.

    Every unit of work it returns uses *store* (one ``SQLAlchemyOutboxStore``
    by default), so the ``skip_locked`` setting applies fleet-wide.
    """
    shared = store or SQLAlchemyOutboxStore()

    def begin() -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(session_factory=session_factory, store=shared)

    return begin
