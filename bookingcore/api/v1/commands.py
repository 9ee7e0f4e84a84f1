"""Booking command endpoints: submit, undo, history."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from bookingcore.api.deps import get_command_engine, get_request_id
from bookingcore.commands.engine import CommandEngine
from bookingcore.commands.registry import build_command
from bookingcore.commands.results import CommandError, ErrorKind
from bookingcore.core.middleware import command_limiter
from bookingcore.repositories.booking_repository import SqlBookingRepository
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
from bookingcore.services.audit_service import audit_service

logger = logging.getLogger(__name__)

router = APIRouter()

ERROR_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.WRITE_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.TIMEOUT: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

ERROR_RESPONSES = {
    code: {"model": CommandErrorResponse}
    for code in (400, 500)
}


def command_error_response(error: CommandError) -> JSONResponse:
    """Serialize a failed result. Infrastructure failures are 500, the rest 400."""
    body = CommandErrorResponse(
        error=CommandErrorDetail(
            kind=error.kind.value,
            message=error.message,
            command_name=error.command_name,
            booking_id=error.booking_id,
        )
    )
    return JSONResponse(
        status_code=ERROR_STATUS_CODES.get(error.kind, status.HTTP_400_BAD_REQUEST),
        content=body.model_dump(mode="json"),
    )


def _audit_enabled(engine: CommandEngine) -> bool:
    # Audit rows live next to the bookings table
    return isinstance(engine.repository, SqlBookingRepository)


@router.post(
    "",
    response_model=CommandResponse,
    responses=ERROR_RESPONSES,
    dependencies=[Depends(command_limiter)],
)
async def submit_command(
    body: CommandRequest,
    request: Request,
    engine: Annotated[CommandEngine, Depends(get_command_engine)],
    request_id: Annotated[str | None, Depends(get_request_id)],
) -> CommandResponse | JSONResponse:
    """Execute a booking command and record it for undo."""
    command = build_command(body.command, body.booking_id, body.payload)
    if isinstance(command, CommandError):
        logger.info(f"[{request_id}] Command refused: {command.kind.value} {command.message}")
        return command_error_response(command)

    result = await engine.execute(command, correlation_id=request_id)
    if isinstance(result, CommandError):
        return command_error_response(result)

    if _audit_enabled(engine):
        before = command.before_snapshot
        await audit_service.log_command_action(
            action=audit_service.COMMAND_EXECUTED,
            booking_id=result.booking_id,
            command_name=result.command_name,
            old_values={
                "status": before["status"].value,
                "payment_status": before["payment_status"].value,
            },
            new_values={"status": result.status, "payment_status": result.payment_status},
            correlation_id=request_id,
            user_agent=request.headers.get("User-Agent"),
        )

    return CommandResponse.model_validate(result)


@router.post("/undo", response_model=UndoResponse, responses=ERROR_RESPONSES)
async def undo_last_command(
    request: Request,
    engine: Annotated[CommandEngine, Depends(get_command_engine)],
    request_id: Annotated[str | None, Depends(get_request_id)],
    body: UndoRequest | None = None,
) -> UndoResponse | JSONResponse:
    """Undo the most recent command in history."""
    actor = body.actor if body else None
    result = await engine.undo(actor=actor, correlation_id=request_id)
    if isinstance(result, CommandError):
        return command_error_response(result)

    if _audit_enabled(engine):
        await audit_service.log_command_action(
            action=audit_service.COMMAND_UNDONE,
            booking_id=result.booking_id,
            command_name=result.command_name,
            new_values={"status": result.status, "payment_status": result.payment_status},
            actor=actor,
            correlation_id=request_id,
            user_agent=request.headers.get("User-Agent"),
        )

    return UndoResponse.model_validate(result)


@router.get("/history", response_model=CommandHistoryResponse)
async def get_command_history(
    engine: Annotated[CommandEngine, Depends(get_command_engine)],
) -> CommandHistoryResponse:
    """List recorded commands, oldest first."""
    commands = [CommandSummaryResponse.model_validate(summary) for summary in engine.get_history()]
    return CommandHistoryResponse(
        size=len(commands),
        max_size=engine.max_history_size,
        commands=commands,
    )


@router.delete("/history", response_model=HistoryClearedResponse)
async def clear_command_history(
    request: Request,
    engine: Annotated[CommandEngine, Depends(get_command_engine)],
    request_id: Annotated[str | None, Depends(get_request_id)],
) -> HistoryClearedResponse:
    """Forget every recorded command. Bookings are not touched."""
    cleared = await engine.clear_history()

    if _audit_enabled(engine):
        await audit_service.log_command_action(
            action=audit_service.HISTORY_CLEARED,
            booking_id=None,
            command_name=None,
            new_values={"cleared": cleared},
            correlation_id=request_id,
            user_agent=request.headers.get("User-Agent"),
        )

    return HistoryClearedResponse(cleared=cleared)
