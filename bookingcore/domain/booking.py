"""Booking domain record."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from bookingcore.domain.booking_state import BookingStatus, parse_booking_status
from bookingcore.domain.payment_state import (
    SETTLED_PAYMENT_STATUSES,
    PaymentStatus,
    parse_payment_status,
)

# Fields a lifecycle command may write. Snapshots cover exactly this set.
MUTABLE_FIELDS: tuple[str, ...] = (
    "status",
    "payment_status",
    "confirmed_at",
    "started_at",
    "completed_at",
    "cancelled_at",
    "cancellation_reason",
    "paid_at",
    "refunded_at",
    "payment_failure_reason",
    "updated_at",
)


@dataclass
class Booking:
    """A reservation of a provider's service by a requester."""

    id: str
    reservation_number: str
    requester_id: str
    provider_id: str
    service_name: str
    timeslot: datetime
    total_amount: int  # smallest currency unit
    currency: str = "EUR"

    status: BookingStatus = BookingStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.UNPAID

    confirmed_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    paid_at: datetime | None = None
    refunded_at: datetime | None = None
    payment_failure_reason: str | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.status = parse_booking_status(self.status)
        self.payment_status = parse_payment_status(self.payment_status)

    @property
    def is_settled(self) -> bool:
        """Whether money has been captured for this booking."""
        return self.payment_status in SETTLED_PAYMENT_STATUSES

    def snapshot(self) -> dict[str, Any]:
        """Copy of the mutable field set."""
        return {name: getattr(self, name) for name in MUTABLE_FIELDS}

    def restore(self, snapshot: dict[str, Any]) -> None:
        """Write a snapshot back verbatim."""
        for name in MUTABLE_FIELDS:
            setattr(self, name, snapshot[name])
