"""Wake signalling between committed writers and the dispatcher."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .ports.unit_of_work import UnitOfWork

logger = logging.getLogger("txoutbox.notifier")


class WakeSignal:
    """Coalescing wake flag with a single consumer (the dispatcher loop).

    Any number of :meth:`set` calls before the consumer clears the flag
    collapse into one pending wake; nothing is queued. Once bound to the
    consumer's event loop, :meth:`set` may also be called from other threads.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._loop: asyncio.AbstractEventLoop | None = None

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        """Attach the loop the consumer waits on."""
        self._loop = loop

    @property
    def pending(self) -> bool:
        return self._event.is_set()

    def set(self) -> None:
        loop = self._loop
        if loop is not None and not loop.is_closed():
            try:
                running = asyncio.get_running_loop()
            except RuntimeError:
                running = None
            if running is not loop:
                loop.call_soon_threadsafe(self._event.set)
                return
        self._event.set()

    def clear(self) -> None:
        self._event.clear()

    async def wait(self, timeout: float | None = None) -> bool:
        """Wait until set or *timeout* elapses. Returns ``True`` if woken."""
        if timeout is None:
            await self._event.wait()
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True


class Notifier:
    """Handle returned by enqueue to request an immediate dispatch cycle.

    The signal only goes out once the unit of work the envelopes were staged
    in has committed; before that, and forever after a rollback, ``notify()``
    does nothing. It is safe to call any number of times.
    """

    def __init__(
        self,
        envelope_ids: Sequence[str],
        uow: UnitOfWork | None = None,
        wake: WakeSignal | None = None,
    ) -> None:
        self._envelope_ids = tuple(envelope_ids)
        self._uow = uow
        self._wake = wake

    @property
    def envelope_ids(self) -> tuple[str, ...]:
        return self._envelope_ids

    @property
    def armed(self) -> bool:
        """``True`` when a call to :meth:`notify` would wake the dispatcher."""
        return (
            self._wake is not None
            and bool(self._envelope_ids)
            and self._uow is not None
            and self._uow.committed
        )

    def notify(self) -> bool:
        """Wake the dispatcher. Returns whether a signal was sent."""
        if not self.armed:
            return False
        assert self._wake is not None
        self._wake.set()
        logger.debug("Dispatcher woken for %d envelope(s)", len(self._envelope_ids))
        return True

    def __repr__(self) -> str:
        return f"Notifier(envelopes={len(self._envelope_ids)}, armed={self.armed})"


__all__ = ["Notifier", "WakeSignal"]
