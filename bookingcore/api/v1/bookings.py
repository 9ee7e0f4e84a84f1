"""Booking endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends

from bookingcore.api.deps import get_command_engine
from bookingcore.commands.engine import CommandEngine
from bookingcore.core.exceptions import ExternalServiceError, NotFoundError, RepositoryError
from bookingcore.schemas.booking import BookingResponse

router = APIRouter()


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    engine: Annotated[CommandEngine, Depends(get_command_engine)],
) -> BookingResponse:
    """Get booking details as currently stored."""
    try:
        booking = await engine.repository.get_booking(booking_id)
    except RepositoryError as e:
        raise ExternalServiceError("booking store", str(e)) from e
    if booking is None:
        raise NotFoundError("Booking", booking_id)
    return BookingResponse.model_validate(booking)
