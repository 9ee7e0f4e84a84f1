"""Reversible booking command base class.

A command applies one state-machine event to one booking. On success it
keeps an immutable copy of the fields it overwrote (the before-snapshot) and
of the fields it wrote (the after-snapshot). Undo writes the before-snapshot
back, provided nobody has touched the booking since.
"""

import logging
import uuid
from abc import ABC
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any, ClassVar, Mapping

from bookingcore.commands.results import (
    CommandError,
    CommandOutcome,
    CommandResult,
    CommandSummary,
    ErrorKind,
    UndoOutcome,
    UndoResult,
)
from bookingcore.domain.booking import Booking
from bookingcore.domain.booking_state import BookingEvent, Rejection, is_invertible, validate_transition
from bookingcore.repositories.booking_repository import BookingRepository
from bookingcore.services.event_bus import EventSink

logger = logging.getLogger(__name__)

REVERTED_EVENT = "BookingCommandReverted"
MAX_TEXT_LENGTH = 1000


class BookingCommand(ABC):
    """Base class for all booking lifecycle commands.

    Subclasses set ``name``, ``event`` and ``domain_event`` and may override
    ``apply`` to stamp the extra fields their transition owns.
    """

    name: ClassVar[str]
    event: ClassVar[BookingEvent]
    domain_event: ClassVar[str]

    # Optional string payload keys this command understands
    text_fields: ClassVar[tuple[str, ...]] = ()

    def __init__(self, booking_id: str, payload: dict[str, Any] | None = None) -> None:
        if not booking_id or not isinstance(booking_id, str):
            raise ValueError("booking_id must be a non-empty string")
        self.command_id = str(uuid.uuid4())
        self.booking_id = booking_id
        self.payload = dict(payload or {})
        self.validate_payload(self.payload)

        self.executed_at: datetime | None = None
        self._before: Mapping[str, Any] | None = None
        self._after: Mapping[str, Any] | None = None

    @classmethod
    def validate_payload(cls, payload: dict[str, Any]) -> None:
        """Reject payload values this command cannot store.

        Raises:
            ValueError: If a known key holds an unusable value
        """
        for key in cls.text_fields:
            value = payload.get(key)
            if value is None:
                continue
            if not isinstance(value, str):
                raise ValueError(f"{key} must be a string")
            if len(value) > MAX_TEXT_LENGTH:
                raise ValueError(f"{key} must be at most {MAX_TEXT_LENGTH} characters")

    @property
    def before_snapshot(self) -> Mapping[str, Any] | None:
        return self._before

    @property
    def executed(self) -> bool:
        return self._before is not None

    def can_undo(self) -> bool:
        return is_invertible(self.event)

    def apply(self, booking: Booking, now: datetime) -> None:
        """Stamp fields beyond the status axis. Default: nothing."""

    def summary(self) -> CommandSummary:
        return CommandSummary(
            command_id=self.command_id,
            name=self.name,
            booking_id=self.booking_id,
            payload=dict(self.payload),
            can_undo=self.can_undo(),
            executed_at=self.executed_at,
        )

    async def execute(self, repository: BookingRepository, events: EventSink) -> CommandResult:
        """Validate and apply the transition to the stored booking.

        Raises:
            RepositoryError: If the booking store fails
            RuntimeError: If this command instance already executed
        """
        if self.executed:
            raise RuntimeError(f"{self.name} {self.command_id} has already been executed")

        booking = await repository.get_booking(self.booking_id)
        if booking is None:
            return CommandError(
                kind=ErrorKind.NOT_FOUND,
                message=f"Booking with ID '{self.booking_id}' not found",
                command_name=self.name,
                booking_id=self.booking_id,
            )

        transition = validate_transition(booking.status, booking.payment_status, self.event)
        if isinstance(transition, Rejection):
            return CommandError.from_rejection(transition, self.name, self.booking_id)

        before = booking.snapshot()
        now = datetime.now(UTC)
        setattr(booking, transition.axis.value, transition.target)
        self.apply(booking, now)
        booking.updated_at = now

        await repository.save_booking(booking)

        self._before = MappingProxyType(before)
        self._after = MappingProxyType(booking.snapshot())
        self.executed_at = now

        await self._emit(events, self.domain_event, booking, previous=before)

        return CommandOutcome(
            command_name=self.name,
            booking_id=booking.id,
            reservation_number=booking.reservation_number,
            status=booking.status.value,
            payment_status=booking.payment_status.value,
            can_undo=self.can_undo(),
            executed_at=now,
        )

    async def undo(self, repository: BookingRepository, events: EventSink) -> UndoResult:
        """Write the before-snapshot back to the stored booking.

        Raises:
            RepositoryError: If the booking store fails
            RuntimeError: If this command never executed
        """
        if not self.can_undo():
            return CommandError(
                kind=ErrorKind.NOT_INVERTIBLE,
                message=f"{self.name} cannot be reversed",
                command_name=self.name,
                booking_id=self.booking_id,
            )
        if self._before is None or self._after is None:
            raise RuntimeError(f"{self.name} {self.command_id} was never executed")

        booking = await repository.get_booking(self.booking_id)
        if booking is None:
            return CommandError(
                kind=ErrorKind.NOT_FOUND,
                message=f"Booking with ID '{self.booking_id}' not found",
                command_name=self.name,
                booking_id=self.booking_id,
            )

        if booking.snapshot() != dict(self._after):
            return CommandError(
                kind=ErrorKind.STALE_STATE,
                message=(
                    f"Booking {booking.reservation_number} changed after {self.name}; "
                    "refresh and try again"
                ),
                command_name=self.name,
                booking_id=self.booking_id,
            )

        current = booking.snapshot()
        booking.restore(dict(self._before))
        await repository.save_booking(booking)

        await self._emit(events, REVERTED_EVENT, booking, previous=current)

        return UndoOutcome(
            command_name=self.name,
            booking_id=booking.id,
            status=booking.status.value,
            payment_status=booking.payment_status.value,
        )

    async def _emit(
        self,
        events: EventSink,
        event_name: str,
        booking: Booking,
        previous: dict[str, Any],
    ) -> None:
        payload = {
            "command": self.name,
            "command_id": self.command_id,
            "booking_id": booking.id,
            "reservation_number": booking.reservation_number,
            "status": booking.status.value,
            "payment_status": booking.payment_status.value,
            "previous_status": previous["status"].value,
            "previous_payment_status": previous["payment_status"].value,
            "payload": dict(self.payload),
            "occurred_at": datetime.now(UTC).isoformat(),
        }
        # The write is already committed; delivery is best effort
        try:
            await events.emit(event_name, payload)
        except Exception:
            logger.exception(
                f"Failed to emit {event_name} for booking {booking.reservation_number}"
            )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.command_id} booking={self.booking_id}>"
