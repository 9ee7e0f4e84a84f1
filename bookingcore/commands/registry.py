"""Command name lookup and construction."""

from typing import Any

from bookingcore.commands.base import BookingCommand
from bookingcore.commands.booking_commands import (
    CancelBooking,
    CompleteBooking,
    ConfirmBooking,
    MarkPaid,
    MarkPaymentFailed,
    RefundPayment,
    RequestPayment,
    StartBooking,
)
from bookingcore.commands.results import CommandError, ErrorKind

COMMANDS: dict[str, type[BookingCommand]] = {
    command.name: command
    for command in (
        ConfirmBooking,
        StartBooking,
        CompleteBooking,
        CancelBooking,
        RequestPayment,
        MarkPaid,
        MarkPaymentFailed,
        RefundPayment,
    )
}


def available_commands() -> list[str]:
    return sorted(COMMANDS)


def build_command(
    name: str, booking_id: str, payload: dict[str, Any] | None = None
) -> BookingCommand | CommandError:
    """Construct a command by name.

    Returns:
        The command, or a CommandError for an unknown name or unusable payload
    """
    command_class = COMMANDS.get(name)
    if command_class is None:
        return CommandError(
            kind=ErrorKind.UNKNOWN_COMMAND,
            message=f"Unknown command '{name}'. Expected one of: {', '.join(available_commands())}",
            command_name=name,
            booking_id=booking_id,
        )

    try:
        return command_class(booking_id, payload)
    except ValueError as e:
        return CommandError(
            kind=ErrorKind.INVALID_PAYLOAD,
            message=str(e),
            command_name=name,
            booking_id=booking_id,
        )
