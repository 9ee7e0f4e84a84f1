"""Pydantic schemas for API validation."""

from bookingcore.schemas.booking import BookingResponse
from bookingcore.schemas.command import (
    CommandErrorDetail,
    CommandErrorResponse,
    CommandHistoryResponse,
    CommandRequest,
    CommandResponse,
    CommandSummaryResponse,
    HistoryClearedResponse,
    UndoRequest,
    UndoResponse,
)

__all__ = [
    # Booking
    "BookingResponse",
    # Commands
    "CommandRequest",
    "CommandResponse",
    "CommandErrorDetail",
    "CommandErrorResponse",
    "CommandSummaryResponse",
    "CommandHistoryResponse",
    "HistoryClearedResponse",
    "UndoRequest",
    "UndoResponse",
]
