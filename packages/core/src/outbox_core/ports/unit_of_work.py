"""UnitOfWork — Abstract base class for the Unit of Work pattern."""

from __future__ import annotations

import enum
import inspect
import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import TYPE_CHECKING, Any

from ..envelope import utc_now
from ..exceptions import OutboxError, StorageError, UnitOfWorkStateError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence
    from datetime import datetime
    from types import TracebackType

    from ..envelope import Envelope
    from .outbox import IOutboxStore

logger = logging.getLogger("txoutbox.uow")


class UnitOfWorkState(str, enum.Enum):
    ACTIVE = "ACTIVE"
    COMMITTED = "COMMITTED"
    ROLLED_BACK = "ROLLED_BACK"


class UnitOfWork(ABC):
    """
    Abstract base class for Unit of Work implementations.

    One instance wraps one atomic storage transaction. Domain writes made
    through the concrete implementation and envelopes staged with
    :meth:`add_envelopes` become durable together on :meth:`commit`, or are
    all discarded on :meth:`rollback`.

    The base class enforces the lifecycle guarantees:

    * staged envelopes are inserted through the outbox store *inside* the
      transaction, right before it commits;
    * post-commit hooks run only after the transaction is committed, so a
      hook that wakes the dispatcher can never expose uncommitted rows;
    * leaving the ``async with`` block without committing rolls back.

    Example:
        ```python
        class SQLUnitOfWork(UnitOfWork):
            async def _commit_transaction(self):
                await self.session.commit()

            async def _rollback_transaction(self):
                await self.session.rollback()
        ```
    """

    def __init__(self, store: IOutboxStore) -> None:
        self._store = store
        self._pending: list[Envelope] = []
        self._state = UnitOfWorkState.ACTIVE
        self._on_commit_hooks: deque[Callable[[], Any]] = deque()

    # ── State ────────────────────────────────────────────────────────

    @property
    def store(self) -> IOutboxStore:
        return self._store

    @property
    def state(self) -> UnitOfWorkState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is UnitOfWorkState.ACTIVE

    @property
    def committed(self) -> bool:
        return self._state is UnitOfWorkState.COMMITTED

    @property
    def rolled_back(self) -> bool:
        return self._state is UnitOfWorkState.ROLLED_BACK

    def _ensure_active(self) -> None:
        if self._state is not UnitOfWorkState.ACTIVE:
            raise UnitOfWorkStateError(
                f"Unit of work is {self._state.value.lower()} and cannot be used"
            )

    # ── Outbox ───────────────────────────────────────────────────────

    @property
    def pending_envelopes(self) -> tuple[Envelope, ...]:
        """Envelopes staged for insert at commit time."""
        return tuple(self._pending)

    def add_envelopes(self, envelopes: Iterable[Envelope]) -> None:
        """Stage *envelopes* to be inserted in this transaction."""
        self._ensure_active()
        self._pending.extend(envelopes)

    async def get_undispatched_envelopes(self, limit: int) -> list[Envelope]:
        """Read undispatched envelopes, oldest first, within this transaction."""
        self._ensure_active()
        if limit < 1:
            raise ValueError("limit must be >= 1")
        return await self._store.select_undispatched(limit, self)

    async def mark_dispatched(
        self, ids: Sequence[str], at: datetime | None = None
    ) -> None:
        """Mark *ids* dispatched within this transaction (idempotent)."""
        self._ensure_active()
        if not ids:
            return
        await self._store.mark_dispatched(list(ids), at or utc_now(), self)

    # ── Hooks ────────────────────────────────────────────────────────

    def on_commit(self, callback: Callable[[], Any]) -> None:
        """Register a callback to be executed after a successful commit.

        Args:
            callback: A sync or async function that takes no arguments.
        """
        self._ensure_active()
        self._on_commit_hooks.append(callback)

    async def trigger_commit_hooks(self) -> None:
        """Execute all registered on_commit hooks.

        Called by :meth:`commit` AFTER the transaction is committed.
        """
        while self._on_commit_hooks:
            callback = self._on_commit_hooks.popleft()
            try:
                result = callback()
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                logger.error("Error in on_commit hook: %s", exc, exc_info=True)

    # ── Transaction ──────────────────────────────────────────────────

    async def _begin_transaction(self) -> None:
        """Open the underlying transaction. Optional for subclasses."""

    @abstractmethod
    async def _commit_transaction(self) -> None:
        """Commit the underlying transaction. Must be implemented by subclasses."""
        ...

    @abstractmethod
    async def _rollback_transaction(self) -> None:
        """Rollback the underlying transaction. Must be implemented by subclasses."""
        ...

    async def commit(self) -> None:
        """Insert staged envelopes, commit, then run post-commit hooks.

        Raises:
            ConcurrencyConflictError: storage detected a conflicting write.
            StorageError: any other storage failure.
        """
        self._ensure_active()
        try:
            if self._pending:
                await self._store.insert(tuple(self._pending), self)
            await self._commit_transaction()
        except OutboxError:
            await self._abort()
            raise
        except Exception as e:
            await self._abort()
            raise StorageError(f"Failed to commit unit of work: {e}") from e
        except BaseException:
            await self._abort()
            raise

        staged = len(self._pending)
        self._pending.clear()
        self._state = UnitOfWorkState.COMMITTED
        logger.debug("Unit of work committed with %d outbox envelope(s)", staged)
        await self.trigger_commit_hooks()

    async def rollback(self) -> None:
        """Discard every change made in this unit of work. Idempotent."""
        if self._state is not UnitOfWorkState.ACTIVE:
            return
        try:
            await self._rollback_transaction()
        finally:
            self._pending.clear()
            self._on_commit_hooks.clear()
            self._state = UnitOfWorkState.ROLLED_BACK

    async def _abort(self) -> None:
        try:
            await self.rollback()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Rollback after failed commit also failed: %s", exc)

    # ── Context manager ──────────────────────────────────────────────

    async def __aenter__(self) -> UnitOfWork:
        await self._begin_transaction()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """
        Exit the context manager.

        Anything not explicitly committed is rolled back, whether the block
        ended normally, raised, or was cancelled.
        """
        if self._state is UnitOfWorkState.ACTIVE:
            await self.rollback()


__all__ = ["UnitOfWork", "UnitOfWorkState"]
