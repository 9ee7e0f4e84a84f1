"""Booking store access.

Commands only ever read and write one booking at a time, so a store needs
atomic single-record reads and writes and nothing more.
"""

import copy
import logging
import uuid
from datetime import UTC, datetime
from typing import Any, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bookingcore.core.exceptions import RepositoryError
from bookingcore.domain.booking import MUTABLE_FIELDS, Booking
from bookingcore.models.booking import Booking as BookingModel
from bookingcore.utils.booking_number import generate_unique_reservation_number

logger = logging.getLogger(__name__)


class BookingRepository(Protocol):
    """Interface the command engine consumes."""

    async def get_booking(self, booking_id: str) -> Booking | None:
        """Return the booking, or None if it does not exist."""
        ...

    async def save_booking(self, booking: Booking) -> None:
        """Persist the booking's mutable fields.

        Raises:
            RepositoryError: If the write could not be completed
        """
        ...


class InMemoryBookingRepository:
    """Process-local booking store.

    Stores and returns deep copies so callers never share state with the
    store; a write is visible to the next read in the same process.
    """

    def __init__(self, bookings: list[Booking] | None = None) -> None:
        self._bookings: dict[str, Booking] = {}
        for booking in bookings or []:
            self._bookings[booking.id] = copy.deepcopy(booking)

    def __len__(self) -> int:
        return len(self._bookings)

    def create_booking(
        self,
        requester_id: str,
        provider_id: str,
        service_name: str,
        timeslot: datetime,
        total_amount: int,
        currency: str = "EUR",
        **attributes: Any,
    ) -> Booking:
        """Add a new PENDING/UNPAID booking with a fresh reservation number."""
        now = datetime.now(UTC)
        taken = {b.reservation_number for b in self._bookings.values()}
        booking = Booking(
            id=str(uuid.uuid4()),
            reservation_number=generate_unique_reservation_number(taken),
            requester_id=requester_id,
            provider_id=provider_id,
            service_name=service_name,
            timeslot=timeslot,
            total_amount=total_amount,
            currency=currency,
            created_at=now,
            updated_at=now,
            **attributes,
        )
        self._bookings[booking.id] = copy.deepcopy(booking)
        return booking

    async def get_booking(self, booking_id: str) -> Booking | None:
        booking = self._bookings.get(booking_id)
        return copy.deepcopy(booking) if booking is not None else None

    async def save_booking(self, booking: Booking) -> None:
        existing = self._bookings.get(booking.id)
        if existing is None:
            raise RepositoryError("save", booking.id, "booking does not exist")
        if existing.reservation_number != booking.reservation_number:
            raise RepositoryError("save", booking.id, "reservation number is immutable")
        self._bookings[booking.id] = copy.deepcopy(booking)


class SqlBookingRepository:
    """Booking store backed by the bookings table.

    Each call runs in its own session; a save commits immediately.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_booking(self, booking_id: str) -> Booking | None:
        try:
            key = uuid.UUID(booking_id)
        except ValueError:
            return None

        try:
            async with self._session_factory() as session:
                row = await session.get(BookingModel, key)
                return _to_domain(row) if row is not None else None
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Booking read failed for {booking_id}: {e}")
            raise RepositoryError("read", booking_id, str(e)) from e

    async def save_booking(self, booking: Booking) -> None:
        try:
            async with self._session_factory() as session:
                row = await session.get(BookingModel, uuid.UUID(booking.id))
                if row is None:
                    raise RepositoryError("save", booking.id, "booking does not exist")
                if row.reservation_number != booking.reservation_number:
                    raise RepositoryError("save", booking.id, "reservation number is immutable")

                for name in MUTABLE_FIELDS:
                    setattr(row, name, getattr(booking, name))
                row.status = booking.status.value
                row.payment_status = booking.payment_status.value
                await session.commit()
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Booking write failed for {booking.id}: {e}")
            raise RepositoryError("save", booking.id, str(e)) from e


def _to_domain(row: BookingModel) -> Booking:
    return Booking(
        id=str(row.id),
        reservation_number=row.reservation_number,
        requester_id=str(row.requester_id),
        provider_id=str(row.provider_id),
        service_name=row.service_name,
        timeslot=row.timeslot,
        total_amount=row.total_amount,
        currency=row.currency,
        status=row.status,
        payment_status=row.payment_status,
        confirmed_at=row.confirmed_at,
        started_at=row.started_at,
        completed_at=row.completed_at,
        cancelled_at=row.cancelled_at,
        cancellation_reason=row.cancellation_reason,
        paid_at=row.paid_at,
        refunded_at=row.refunded_at,
        payment_failure_reason=row.payment_failure_reason,
        created_at=row.created_at,
        updated_at=row.updated_at,
        metadata=dict(row.extra or {}),
    )
