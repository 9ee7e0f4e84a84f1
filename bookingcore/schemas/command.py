"""Command and undo Pydantic schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CommandRequest(BaseModel):
    """Schema for submitting a booking command."""

    command: str = Field(..., min_length=1, max_length=64)
    booking_id: str = Field(..., min_length=1, max_length=64)
    payload: dict[str, Any] = Field(default_factory=dict)


class UndoRequest(BaseModel):
    """Schema for undoing the most recent command."""

    actor: str | None = Field(None, max_length=255)


class CommandErrorDetail(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    kind: str
    message: str
    command_name: str | None = None
    booking_id: str | None = None


class CommandErrorResponse(BaseModel):
    """Body returned for a failed command or undo."""

    success: bool = False
    error: CommandErrorDetail


class CommandResponse(BaseModel):
    """Body returned for an executed command."""

    model_config = ConfigDict(from_attributes=True)

    success: bool = True
    command_name: str
    booking_id: str
    reservation_number: str
    status: str
    payment_status: str
    can_undo: bool
    executed_at: datetime


class UndoResponse(BaseModel):
    """Body returned for an undone command."""

    model_config = ConfigDict(from_attributes=True)

    success: bool = True
    command_name: str
    booking_id: str
    status: str
    payment_status: str
    actor: str | None = None


class CommandSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    command_id: str
    name: str
    booking_id: str
    payload: dict[str, Any]
    can_undo: bool
    executed_at: datetime | None


class CommandHistoryResponse(BaseModel):
    """Schema for the command history, oldest first."""

    size: int
    max_size: int
    commands: list[CommandSummaryResponse]


class HistoryClearedResponse(BaseModel):
    cleared: int
