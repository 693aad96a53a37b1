"""OutboxDispatcher — polling publisher that drains the transactional outbox."""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .envelope import utc_now
from .exceptions import BrokerPublishError, OutboxError, StorageError
from .instrumentation import OP_DISPATCH_CYCLE, OP_PUBLISH
from .notifier import WakeSignal
from .ports.background_worker import IBackgroundWorker
from .retry import RetryPolicy

if TYPE_CHECKING:
    from datetime import datetime

    from .envelope import Envelope
    from .instrumentation import HookRegistry
    from .ports import UnitOfWorkFactory
    from .ports.broker import IBrokerPublisher

logger = logging.getLogger("txoutbox.dispatcher")


class DispatcherState(str, enum.Enum):
    IDLE = "IDLE"
    SCANNING = "SCANNING"
    PUBLISHING = "PUBLISHING"
    COMMITTING = "COMMITTING"
    STOPPED = "STOPPED"


class DispatcherConfig(BaseModel):
    """Configuration for :class:`OutboxDispatcher`."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    batch_size: int = Field(default=100, ge=1)
    poll_interval: float = Field(default=5.0, gt=0, description="Seconds between scans")
    drain_on_full_batch: bool = True
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    stop_timeout: float | None = Field(
        default=30.0,
        description="Seconds to let the in-flight cycle finish on stop; None waits forever",
    )

    @field_validator("stop_timeout")
    @classmethod
    def _positive_timeout(cls, value: float | None) -> float | None:
        if value is not None and value <= 0:
            raise ValueError("stop_timeout must be > 0")
        return value


@dataclass(frozen=True)
class CycleResult:
    """Outcome of one dispatch cycle."""

    selected: int = 0
    published_ids: tuple[str, ...] = ()
    failed_id: str | None = None
    error: OutboxError | None = None
    batch_full: bool = False

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @property
    def published(self) -> int:
        return len(self.published_ids)


@dataclass
class DispatcherStats:
    cycles: int = 0
    published: int = 0
    failed_cycles: int = 0
    last_error: str | None = None
    last_cycle_at: datetime | None = None


class OutboxDispatcher(IBackgroundWorker):
    """
    Background process that publishes committed envelopes to the broker.

    Each cycle runs in its own unit of work:

    1. select up to ``batch_size`` undispatched envelopes, oldest first;
    2. publish them in that order, stopping at the first broker failure so
       no later envelope overtakes a stalled one;
    3. mark every acknowledged envelope dispatched and commit.

    A cycle starts when the poll interval elapses or when the wake signal is
    set (see :class:`~outbox_core.notifier.Notifier`). Cycles never overlap:
    wakes that arrive while a cycle is running coalesce into one extra cycle.
    Storage and broker errors abort only the current cycle; the loop backs
    off according to ``config.retry`` and keeps going.

    Usage::

        dispatcher = OutboxDispatcher(db.begin, broker, config=DispatcherConfig())
        await dispatcher.start()
        ...
        await dispatcher.stop()
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        broker: IBrokerPublisher,
        *,
        config: DispatcherConfig | None = None,
        hooks: HookRegistry | None = None,
        wake: WakeSignal | None = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._broker = broker
        self._config = config or DispatcherConfig()
        self._hooks = hooks
        self._wake = wake or WakeSignal()

        self._state = DispatcherState.IDLE
        self._stats = DispatcherStats()
        self._cycle_lock = asyncio.Lock()
        self._stop_requested = asyncio.Event()
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._consecutive_failures = 0

    # ── Introspection ────────────────────────────────────────────────

    @property
    def config(self) -> DispatcherConfig:
        return self._config

    @property
    def state(self) -> DispatcherState:
        return self._state

    @property
    def stats(self) -> DispatcherStats:
        return self._stats

    @property
    def running(self) -> bool:
        return self._running

    @property
    def wake(self) -> WakeSignal:
        """The signal notifiers set to request an immediate cycle."""
        return self._wake

    def notify(self) -> None:
        """Request an out-of-band cycle."""
        self._wake.set()

    # ── Cycle ────────────────────────────────────────────────────────

    async def run_cycle(self) -> CycleResult:
        """Run one scan → publish → commit cycle.

        Waits for a cycle already in progress to finish first. Never raises
        for storage or broker failures; they are reported in the result.
        A cycle hook that returns without calling the handler yields an
        empty result.
        """
        async with self._cycle_lock:
            try:
                if self._hooks is not None:
                    outcome = await self._hooks.execute_all(
                        OP_DISPATCH_CYCLE,
                        {"batch_size": self._config.batch_size},
                        self._dispatch_batch,
                    )
                    if not isinstance(outcome, CycleResult):
                        outcome = CycleResult()
                    result = outcome
                else:
                    result = await self._dispatch_batch()
            finally:
                if self._state is not DispatcherState.STOPPED:
                    self._state = DispatcherState.IDLE
        self._record(result)
        return result

    async def _dispatch_batch(self) -> CycleResult:
        batch_size = self._config.batch_size
        selected = 0
        published: list[str] = []
        failed_id: str | None = None
        publish_error: BrokerPublishError | None = None

        try:
            async with self._uow_factory() as uow:
                self._state = DispatcherState.SCANNING
                batch = await uow.get_undispatched_envelopes(batch_size)
                selected = len(batch)
                if not batch:
                    return CycleResult()

                self._state = DispatcherState.PUBLISHING
                for envelope in batch:
                    try:
                        await self._publish(envelope)
                    except Exception as exc:  # noqa: BLE001
                        failed_id = envelope.id
                        publish_error = _as_publish_error(exc, envelope)
                        logger.warning(
                            "Publishing envelope %s to %r failed, deferring it and "
                            "%d later envelope(s) to the next cycle: %s",
                            envelope.id,
                            envelope.topic,
                            selected - len(published) - 1,
                            exc,
                        )
                        break
                    published.append(envelope.id)

                if published:
                    self._state = DispatcherState.COMMITTING
                    await uow.mark_dispatched(published, utc_now())
                    await uow.commit()
        except Exception as exc:  # noqa: BLE001
            error = exc if isinstance(exc, OutboxError) else _as_storage_error(exc)
            logger.error(
                "Dispatch cycle aborted, %d published envelope(s) stay undispatched "
                "and will be re-published: %s",
                len(published),
                exc,
                exc_info=True,
            )
            return CycleResult(
                selected=selected,
                failed_id=failed_id,
                error=error,
                batch_full=selected >= batch_size,
            )

        if published:
            logger.debug("Dispatched %d/%d envelope(s)", len(published), selected)
        return CycleResult(
            selected=selected,
            published_ids=tuple(published),
            failed_id=failed_id,
            error=publish_error,
            batch_full=selected >= batch_size,
        )

    async def _publish(self, envelope: Envelope) -> None:
        async def send() -> None:
            await self._broker.publish(
                envelope.topic,
                envelope.key,
                envelope.data,
                headers=envelope.headers(),
            )

        if self._hooks is None:
            await send()
            return
        await self._hooks.execute_all(
            OP_PUBLISH,
            {
                "envelope_id": envelope.id,
                "topic": envelope.topic,
                "key": envelope.key,
                "type": envelope.type,
            },
            send,
        )

    def _record(self, result: CycleResult) -> None:
        stats = self._stats
        stats.cycles += 1
        stats.published += result.published
        stats.last_cycle_at = utc_now()
        if result.error is not None:
            stats.failed_cycles += 1
            stats.last_error = str(result.error)

    # ── Worker lifecycle ─────────────────────────────────────────────

    async def start(self) -> None:
        """Start the background loop. Runs a first cycle immediately."""
        if self._running:
            return
        self._running = True
        self._stop_requested.clear()
        self._consecutive_failures = 0
        self._state = DispatcherState.IDLE
        self._wake.bind(asyncio.get_running_loop())
        self._task = asyncio.create_task(self._run_loop(), name="outbox-dispatcher")
        logger.info(
            "Outbox dispatcher started (batch: %d, poll: %.1fs)",
            self._config.batch_size,
            self._config.poll_interval,
        )

    async def stop(self) -> None:
        """Stop the loop after the in-flight cycle has committed or rolled back.

        If the cycle outlives ``config.stop_timeout`` it is cancelled; its unit
        of work rolls back, leaving every envelope in it undispatched.
        """
        if not self._running:
            return
        self._running = False
        self._stop_requested.set()
        self._wake.set()

        task, self._task = self._task, None
        if task is not None:
            try:
                await asyncio.wait_for(
                    asyncio.shield(task), timeout=self._config.stop_timeout
                )
            except asyncio.TimeoutError:
                logger.warning(
                    "Dispatch cycle still running after %.1fs, cancelling it",
                    self._config.stop_timeout,
                )
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._state = DispatcherState.STOPPED
        logger.info("Outbox dispatcher stopped")

    async def _run_loop(self) -> None:
        run_now = True
        while self._running:
            if not run_now:
                await self._wake.wait(timeout=self._config.poll_interval)
                if not self._running:
                    break
            # Cleared before scanning: wakes from here on mean one more cycle.
            self._wake.clear()

            try:
                result = await self.run_cycle()
            except Exception as exc:
                logger.error("Outbox dispatcher loop error: %s", exc, exc_info=True)
                result = CycleResult(error=_as_storage_error(exc))

            if result.succeeded:
                self._consecutive_failures = 0
                run_now = result.batch_full and self._config.drain_on_full_batch
                continue

            self._consecutive_failures += 1
            delay = self._config.retry.delay_for_attempt(self._consecutive_failures)
            logger.info(
                "Backing off %.2fs after %d failed dispatch cycle(s)",
                delay,
                self._consecutive_failures,
            )
            await self._sleep_unless_stopped(delay)
            run_now = True

    async def _sleep_unless_stopped(self, delay: float) -> None:
        if delay <= 0:
            return
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._stop_requested.wait(), timeout=delay)


def _as_publish_error(exc: Exception, envelope: Envelope) -> BrokerPublishError:
    if isinstance(exc, BrokerPublishError):
        return exc
    error = BrokerPublishError(str(exc), topic=envelope.topic, envelope_id=envelope.id)
    error.__cause__ = exc
    return error


def _as_storage_error(exc: Exception) -> StorageError:
    error = StorageError(f"Dispatch cycle failed: {exc}")
    error.__cause__ = exc
    return error


__all__ = [
    "CycleResult",
    "DispatcherConfig",
    "DispatcherState",
    "DispatcherStats",
    "OutboxDispatcher",
]
