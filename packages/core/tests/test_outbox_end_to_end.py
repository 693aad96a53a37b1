"""Write path and dispatcher together over the in-memory adapters."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable

import pytest

from outbox_core import (
    ConcurrencyConflictError,
    MessageTypeTable,
    Outbox,
    OutboxDispatcher,
    OutboxEvent,
)
from outbox_core.adapters.memory import InMemoryBroker, InMemoryDatabase


class StudentEnrolled(OutboxEvent):
    message_type = "student-enrolled"

    student_id: str
    course: str


class GradeRecorded(OutboxEvent):
    message_type = "grade-recorded"

    student_id: str
    grade: int


async def _eventually(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.mark.asyncio()
async def test_committed_events_reach_their_topics(
    outbox: Outbox,
    dispatcher: OutboxDispatcher,
    db: InMemoryDatabase,
    broker: InMemoryBroker,
) -> None:
    async with db.begin() as uow:
        uow.save("students", "s-1", {"name": "Ada"})
        notifier = outbox.enqueue(
            uow,
            [
                StudentEnrolled(student_id="s-1", course="math"),
                GradeRecorded(student_id="s-1", grade=9),
            ],
        )
        await uow.commit()

    await dispatcher.run_cycle()

    enrolled, graded = broker.messages_for("A"), broker.messages_for("B")
    assert [m.key for m in enrolled + graded] == ["s-1", "s-1"]
    assert json.loads(enrolled[0].payload) == {"student_id": "s-1", "course": "math"}
    assert json.loads(graded[0].payload) == {"student_id": "s-1", "grade": 9}
    assert broker.published_ids() == list(notifier.envelope_ids)
    assert graded[0].headers["type"] == "grade-recorded"
    assert db.outbox.undispatched() == []


@pytest.mark.asyncio()
async def test_rolled_back_events_are_never_published(
    table: MessageTypeTable,
    dispatcher: OutboxDispatcher,
    db: InMemoryDatabase,
    broker: InMemoryBroker,
) -> None:
    outbox = Outbox(table)

    with pytest.raises(RuntimeError):
        async with db.begin() as uow:
            uow.save("students", "s-1", {"name": "Ada"})
            outbox.enqueue(uow, [StudentEnrolled(student_id="s-1", course="math")])
            raise RuntimeError("validation failed")

    async with db.begin() as uow:
        outbox.enqueue(uow, [StudentEnrolled(student_id="s-2", course="art")])
        await uow.rollback()

    await dispatcher.run_cycle()

    assert broker.published == []
    assert db.rows("students") == {}
    assert len(db.outbox) == 0


@pytest.mark.asyncio()
async def test_conflicting_writer_publishes_nothing(
    outbox: Outbox,
    dispatcher: OutboxDispatcher,
    db: InMemoryDatabase,
    broker: InMemoryBroker,
) -> None:
    async with db.begin() as uow:
        uow.save("students", "s-1", {"course": None})
        await uow.commit()

    winner, loser = db.begin(), db.begin()
    async with winner, loser:
        winner.save("students", "s-1", {"course": "math"}, expected_version=1)
        outbox.enqueue(winner, [StudentEnrolled(student_id="s-1", course="math")])
        loser.save("students", "s-1", {"course": "art"}, expected_version=1)
        loser_notifier = outbox.enqueue(
            loser, [StudentEnrolled(student_id="s-1", course="art")]
        )
        await winner.commit()
        with pytest.raises(ConcurrencyConflictError):
            await loser.commit()

    await dispatcher.run_cycle()

    assert loser_notifier.notify() is False
    assert [json.loads(m.payload)["course"] for m in broker.published] == ["math"]


@pytest.mark.asyncio()
async def test_notify_on_commit_wakes_running_dispatcher(
    outbox: Outbox,
    dispatcher: OutboxDispatcher,
    db: InMemoryDatabase,
    broker: InMemoryBroker,
) -> None:
    await dispatcher.start()
    try:
        await _eventually(lambda: dispatcher.stats.cycles == 1)

        async with db.begin() as uow:
            outbox.enqueue(
                uow,
                [StudentEnrolled(student_id="s-1", course="math")],
                notify_on_commit=True,
            )
            await uow.commit()

        await _eventually(lambda: len(broker.published) == 1)
    finally:
        await dispatcher.stop()

    assert dispatcher.stats.published == 1


@pytest.mark.asyncio()
async def test_same_key_keeps_enqueue_order_across_transactions(
    outbox: Outbox,
    dispatcher: OutboxDispatcher,
    db: InMemoryDatabase,
    broker: InMemoryBroker,
) -> None:
    for grade in range(1, 6):
        async with db.begin() as uow:
            outbox.enqueue(uow, [GradeRecorded(student_id="s-1", grade=grade)])
            await uow.commit()

    await dispatcher.run_cycle()

    assert [json.loads(m.payload)["grade"] for m in broker.messages_for("B")] == [
        1,
        2,
        3,
        4,
        5,
    ]
