from __future__ import annotations

import asyncio
import threading

import pytest

from outbox_core import Notifier, WakeSignal
from outbox_core.adapters.memory import InMemoryDatabase


@pytest.mark.asyncio()
async def test_wake_signal_coalesces_sets() -> None:
    wake = WakeSignal()

    wake.set()
    wake.set()
    wake.set()

    assert wake.pending
    assert await wake.wait(timeout=0.01) is True
    wake.clear()
    assert not wake.pending
    assert await wake.wait(timeout=0.01) is False


@pytest.mark.asyncio()
async def test_wake_signal_set_from_another_thread() -> None:
    wake = WakeSignal()
    wake.bind(asyncio.get_running_loop())

    thread = threading.Thread(target=wake.set)
    thread.start()
    thread.join()

    assert await wake.wait(timeout=1.0) is True


@pytest.mark.asyncio()
async def test_notifier_fires_only_after_commit(db: InMemoryDatabase) -> None:
    wake = WakeSignal()

    async with db.begin() as uow:
        notifier = Notifier(["e-1"], uow, wake)
        assert notifier.notify() is False
        assert not wake.pending
        await uow.commit()

    assert notifier.armed
    assert notifier.notify() is True
    assert notifier.notify() is True
    assert wake.pending


@pytest.mark.asyncio()
async def test_notifier_is_inert_after_rollback(db: InMemoryDatabase) -> None:
    wake = WakeSignal()

    async with db.begin() as uow:
        notifier = Notifier(["e-1"], uow, wake)

    assert notifier.notify() is False
    assert not wake.pending
    assert "armed=False" in repr(notifier)


def test_notifier_without_wake_or_envelopes_is_inert() -> None:
    assert Notifier(["e-1"]).notify() is False
    assert Notifier([], wake=WakeSignal()).notify() is False
