"""Booking database model."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from bookingcore.database import Base


class Booking(Base):
    """Booking model."""

    __tablename__ = "bookings"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    reservation_number: Mapped[str] = mapped_column(
        String(40), unique=True, nullable=False, index=True
    )  # RES-<millis>-<suffix>
    requester_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True
    )
    provider_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True
    )
    service_name: Mapped[str] = mapped_column(String(200), nullable=False)
    timeslot: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    # Pricing (smallest currency unit)
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="EUR")

    # Status
    status: Mapped[str] = mapped_column(
        String(20), default="PENDING", index=True
    )  # PENDING, CONFIRMED, IN_PROGRESS, COMPLETED, CANCELLED
    payment_status: Mapped[str] = mapped_column(
        String(20), default="UNPAID", index=True
    )  # UNPAID, PENDING, PAID, REFUNDED, FAILED

    # Cancellation / payment details
    cancellation_reason: Mapped[str | None] = mapped_column(Text)
    payment_failure_reason: Mapped[str | None] = mapped_column(Text)

    extra: Mapped[dict] = mapped_column(JSONB, default=dict)

    # Timestamps
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    refunded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    # Written by the application so snapshots can restore it verbatim
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
