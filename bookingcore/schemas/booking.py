"""Booking-related Pydantic schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BookingResponse(BaseModel):
    """Schema for booking response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    reservation_number: str
    requester_id: str
    provider_id: str
    service_name: str
    timeslot: datetime

    # Pricing
    total_amount: int
    currency: str

    # Status
    status: str
    payment_status: str
    is_settled: bool

    # Lifecycle
    confirmed_at: datetime | None
    started_at: datetime | None
    completed_at: datetime | None
    cancelled_at: datetime | None
    cancellation_reason: str | None

    # Payment
    paid_at: datetime | None
    refunded_at: datetime | None
    payment_failure_reason: str | None

    metadata: dict[str, Any] = Field(default_factory=dict)

    # Timestamps
    created_at: datetime | None
    updated_at: datetime | None

    @field_validator("status", "payment_status", mode="before")
    @classmethod
    def unwrap_enum(cls, v: Any) -> Any:
        return getattr(v, "value", v)
