from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest

from bookingcore.commands.booking_commands import (
    CancelBooking,
    CompleteBooking,
    ConfirmBooking,
    MarkPaid,
    RequestPayment,
    StartBooking,
)
from bookingcore.commands.engine import CommandEngine
from bookingcore.commands.registry import COMMANDS
from bookingcore.commands.results import CommandError, ErrorKind
from bookingcore.core.exceptions import RepositoryError
from bookingcore.core.locks import KeyedLock
from bookingcore.domain.booking_state import BookingStatus
from bookingcore.domain.payment_state import PaymentStatus
from bookingcore.repositories.booking_repository import InMemoryBookingRepository


TIMESLOT = datetime(2026, 11, 2, 10, tzinfo=UTC)


class FailingWriteRepository(InMemoryBookingRepository):
    async def save_booking(self, booking):
        raise RepositoryError("save", booking.id, "connection reset")


class SlowWriteRepository(InMemoryBookingRepository):
    async def save_booking(self, booking):
        await asyncio.sleep(5)
        await super().save_booking(booking)


class SlowReadRepository(InMemoryBookingRepository):
    """Yields inside every read so concurrent commands interleave."""

    async def get_booking(self, booking_id):
        booking = await super().get_booking(booking_id)
        await asyncio.sleep(0.01)
        return booking


async def state(repository, booking_id):
    booking = await repository.get_booking(booking_id)
    return booking.status, booking.payment_status


@pytest.mark.asyncio
async def test_paid_then_confirmed_undoes_in_reverse(engine, repository, booking):
    await engine.execute(MarkPaid(booking.id))
    assert await state(repository, booking.id) == (BookingStatus.PENDING, PaymentStatus.PAID)

    await engine.execute(ConfirmBooking(booking.id))
    assert await state(repository, booking.id) == (BookingStatus.CONFIRMED, PaymentStatus.PAID)

    first = await engine.undo()
    assert first.success is True
    assert first.command_name == "ConfirmBooking"
    assert await state(repository, booking.id) == (BookingStatus.PENDING, PaymentStatus.PAID)

    second = await engine.undo()
    assert second.command_name == "MarkPaid"
    assert await state(repository, booking.id) == (BookingStatus.PENDING, PaymentStatus.UNPAID)
    assert await repository.get_booking(booking.id) == booking


@pytest.mark.asyncio
async def test_terminal_booking_rejects_and_records_nothing(engine, repository, make_booking, sink):
    booking = make_booking(status="CANCELLED")

    result = await engine.execute(ConfirmBooking(booking.id))

    assert result.kind is ErrorKind.INVALID_FROM_TERMINAL_STATE
    assert engine.get_history_size() == 0
    assert await repository.get_booking(booking.id) == booking
    assert sink.events == []


@pytest.mark.asyncio
async def test_non_undoable_head_stays_in_history(engine, repository, booking):
    result = await engine.execute(CancelBooking(booking.id, {"reason": "Changed plans"}))
    assert result.can_undo is False
    assert await state(repository, booking.id) == (BookingStatus.CANCELLED, PaymentStatus.UNPAID)

    undo = await engine.undo()

    assert isinstance(undo, CommandError)
    assert undo.kind is ErrorKind.NOT_UNDOABLE
    assert [entry.name for entry in engine.get_history()] == ["CancelBooking"]
    assert (await engine.undo()).kind is ErrorKind.NOT_UNDOABLE


@pytest.mark.asyncio
async def test_undo_is_lifo(engine, booking):
    for command in (ConfirmBooking(booking.id), StartBooking(booking.id), RequestPayment(booking.id)):
        assert (await engine.execute(command)).success

    undone = [(await engine.undo()).command_name for _ in range(3)]

    assert undone == ["RequestPayment", "StartBooking", "ConfirmBooking"]
    assert (await engine.undo()).kind is ErrorKind.NOTHING_TO_UNDO


@pytest.mark.asyncio
async def test_history_is_bounded(repository, sink, make_booking):
    engine = CommandEngine(repository, sink, max_history_size=2)
    bookings = [make_booking() for _ in range(3)]

    for booking in bookings:
        await engine.execute(ConfirmBooking(booking.id))
        assert engine.get_history_size() <= 2

    history = engine.get_history()
    assert [entry.booking_id for entry in history] == [bookings[1].id, bookings[2].id]
    assert engine.max_history_size == 2


@pytest.mark.asyncio
async def test_terminal_status_never_changes(engine, repository, make_booking):
    booking = make_booking(status="COMPLETED", payment_status="PAID")

    for command_class in COMMANDS.values():
        result = await engine.execute(command_class(booking.id))
        assert result.kind is ErrorKind.INVALID_FROM_TERMINAL_STATE

    assert await repository.get_booking(booking.id) == booking
    assert engine.get_history_size() == 0


@pytest.mark.asyncio
async def test_repeated_rejection_has_same_kind(engine, repository, make_booking):
    booking = make_booking(status="CONFIRMED")

    first = await engine.execute(ConfirmBooking(booking.id))
    second = await engine.execute(ConfirmBooking(booking.id))

    assert first.kind is second.kind is ErrorKind.INVALID_TRANSITION
    assert await repository.get_booking(booking.id) == booking


@pytest.mark.asyncio
async def test_write_failure_is_not_recorded(sink):
    repository = FailingWriteRepository()
    booking = repository.create_booking("r", "p", "Haircut", timeslot=TIMESLOT, total_amount=2500)
    engine = CommandEngine(repository, sink)

    result = await engine.execute(ConfirmBooking(booking.id))

    assert result.kind is ErrorKind.WRITE_FAILED
    assert result.is_infrastructure
    assert engine.get_history_size() == 0
    assert sink.events == []


@pytest.mark.asyncio
async def test_write_timeout_is_not_recorded(sink):
    repository = SlowWriteRepository()
    booking = repository.create_booking("r", "p", "Haircut", timeslot=TIMESLOT, total_amount=2500)
    engine = CommandEngine(repository, sink, timeout_seconds=0.05)

    result = await engine.execute(ConfirmBooking(booking.id))

    assert result.kind is ErrorKind.TIMEOUT
    assert engine.get_history_size() == 0
    assert (await repository.get_booking(booking.id)).status is BookingStatus.PENDING


@pytest.mark.asyncio
async def test_failed_undo_discards_command(engine, repository, booking):
    await engine.execute(ConfirmBooking(booking.id))
    changed = await repository.get_booking(booking.id)
    changed.status = BookingStatus.PENDING
    await repository.save_booking(changed)

    result = await engine.undo()

    assert result.kind is ErrorKind.STALE_STATE
    assert engine.get_history_size() == 0
    assert (await engine.undo()).kind is ErrorKind.NOTHING_TO_UNDO


@pytest.mark.asyncio
async def test_undo_reports_actor(engine, booking):
    await engine.execute(ConfirmBooking(booking.id))

    result = await engine.undo(actor="ops@example.com", correlation_id="req-1")

    assert result.actor == "ops@example.com"


@pytest.mark.asyncio
async def test_concurrent_undos_pop_distinct_entries(engine, make_booking):
    first, second = make_booking(), make_booking()
    await engine.execute(ConfirmBooking(first.id))
    await engine.execute(ConfirmBooking(second.id))

    results = await asyncio.gather(engine.undo(), engine.undo(), engine.undo())

    undone = sorted(r.booking_id for r in results if r.success)
    assert undone == sorted([first.id, second.id])
    assert [r.kind for r in results if not r.success] == [ErrorKind.NOTHING_TO_UNDO]
    assert engine.get_history_size() == 0


@pytest.mark.asyncio
async def test_same_booking_commands_are_serialized(sink):
    repository = SlowReadRepository()
    booking = repository.create_booking("r", "p", "Massage", timeslot=TIMESLOT, total_amount=9000)
    engine = CommandEngine(repository, sink)

    results = await asyncio.gather(
        engine.execute(ConfirmBooking(booking.id)),
        engine.execute(ConfirmBooking(booking.id)),
    )

    assert sorted(r.success for r in results) == [False, True]
    rejected = next(r for r in results if not r.success)
    assert rejected.kind is ErrorKind.INVALID_TRANSITION
    assert engine.get_history_size() == 1


@pytest.mark.asyncio
async def test_different_bookings_run_concurrently(sink):
    repository = SlowReadRepository()
    bookings = [
        repository.create_booking("r", "p", "Massage", timeslot=TIMESLOT, total_amount=9000)
        for _ in range(5)
    ]
    engine = CommandEngine(repository, sink)

    results = await asyncio.gather(*(engine.execute(MarkPaid(b.id)) for b in bookings))

    assert all(r.success for r in results)
    assert engine.get_history_size() == 5


@pytest.mark.asyncio
async def test_undo_and_execute_on_different_bookings_overlap(sink):
    slow = SlowReadRepository()
    first = slow.create_booking("r", "p", "Massage", timeslot=TIMESLOT, total_amount=9000)
    second = slow.create_booking("r", "p", "Massage", timeslot=TIMESLOT, total_amount=9000)
    engine = CommandEngine(slow, sink)
    await engine.execute(ConfirmBooking(first.id))

    undo, executed = await asyncio.gather(engine.undo(), engine.execute(ConfirmBooking(second.id)))

    assert undo.success and executed.success
    assert engine.get_history_size() == 1


@pytest.mark.asyncio
async def test_complete_flow_until_terminal(engine, repository, booking):
    for command in (ConfirmBooking(booking.id), MarkPaid(booking.id), StartBooking(booking.id)):
        await engine.execute(command)

    result = await engine.execute(CompleteBooking(booking.id))

    assert result.status == "COMPLETED"
    assert result.can_undo is False
    assert (await engine.undo()).kind is ErrorKind.NOT_UNDOABLE


@pytest.mark.asyncio
async def test_clear_history(engine, booking):
    await engine.execute(ConfirmBooking(booking.id))
    await engine.execute(MarkPaid(booking.id))

    assert await engine.clear_history() == 2
    assert engine.get_history() == ()
    assert (await engine.undo()).kind is ErrorKind.NOTHING_TO_UNDO


def test_history_size_must_be_positive(repository, sink):
    with pytest.raises(ValueError):
        CommandEngine(repository, sink, max_history_size=0)
    with pytest.raises(ValueError):
        CommandEngine(repository, sink, timeout_seconds=0)


@pytest.mark.asyncio
async def test_keyed_lock_serializes_and_cleans_up():
    locks = KeyedLock()
    order: list[str] = []

    async def worker(name: str, key: str):
        async with locks.hold(key):
            order.append(f"{name}:start")
            await asyncio.sleep(0.01)
            order.append(f"{name}:end")

    await asyncio.gather(worker("a", "booking-1"), worker("b", "booking-1"))

    assert order == ["a:start", "a:end", "b:start", "b:end"]
    assert len(locks) == 0
    assert not locks.locked("booking-1")
