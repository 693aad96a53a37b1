"""IOutboxStore — durable storage of outbox envelopes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from ..envelope import Envelope
    from .unit_of_work import UnitOfWork


@runtime_checkable
class IOutboxStore(Protocol):
    """Protocol implemented by storage adapters for the transactional outbox.

    Every operation runs inside the transaction owned by *uow*. Adapters that
    serve several dispatcher instances must claim selected rows (for example
    ``SELECT ... FOR UPDATE SKIP LOCKED``) so two transactions never publish
    the same envelope.
    """

    async def insert(self, envelopes: Sequence[Envelope], uow: UnitOfWork) -> None:
        """Persist *envelopes* in the same transaction as the domain changes."""
        ...

    async def select_undispatched(
        self, limit: int, uow: UnitOfWork
    ) -> list[Envelope]:
        """Return up to *limit* envelopes with ``processed_at`` unset.

        Ordered by ``occurred_at`` ascending (ties broken by ``id``). Rows
        marked by an earlier committed transaction are never returned.
        """
        ...

    async def mark_dispatched(
        self, ids: Sequence[str], at: datetime, uow: UnitOfWork
    ) -> None:
        """Set ``processed_at`` to *at* for each id still undispatched.

        Already dispatched or unknown ids are ignored, never an error.
        """
        ...
