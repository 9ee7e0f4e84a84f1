"""Result types returned by commands and the command engine.

Every operation returns one of these values. Expected failures are never
raised as exceptions.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Union

from bookingcore.domain.booking_state import Rejection, RejectionReason


class ErrorKind(str, Enum):
    """Discriminator for failed command and undo results."""

    # State machine rejections
    INVALID_FROM_TERMINAL_STATE = "INVALID_FROM_TERMINAL_STATE"
    UNKNOWN_EVENT = "UNKNOWN_EVENT"
    PAYMENT_PRECONDITION = "PAYMENT_PRECONDITION"
    INVALID_TRANSITION = "INVALID_TRANSITION"

    # Submission
    UNKNOWN_COMMAND = "UNKNOWN_COMMAND"
    INVALID_PAYLOAD = "INVALID_PAYLOAD"
    NOT_FOUND = "NOT_FOUND"

    # Undo
    NOTHING_TO_UNDO = "NOTHING_TO_UNDO"
    NOT_UNDOABLE = "NOT_UNDOABLE"
    NOT_INVERTIBLE = "NOT_INVERTIBLE"
    STALE_STATE = "STALE_STATE"

    # Infrastructure
    WRITE_FAILED = "WRITE_FAILED"
    TIMEOUT = "TIMEOUT"


INFRASTRUCTURE_ERRORS = frozenset({ErrorKind.WRITE_FAILED, ErrorKind.TIMEOUT})

_REJECTION_KINDS: dict[RejectionReason, ErrorKind] = {
    RejectionReason.INVALID_FROM_TERMINAL_STATE: ErrorKind.INVALID_FROM_TERMINAL_STATE,
    RejectionReason.UNKNOWN_EVENT: ErrorKind.UNKNOWN_EVENT,
    RejectionReason.PAYMENT_PRECONDITION: ErrorKind.PAYMENT_PRECONDITION,
    RejectionReason.INVALID_TRANSITION: ErrorKind.INVALID_TRANSITION,
}


@dataclass(frozen=True)
class CommandError:
    """A failed execute or undo."""

    kind: ErrorKind
    message: str
    command_name: str | None = None
    booking_id: str | None = None
    success: bool = field(default=False, init=False)

    @property
    def is_infrastructure(self) -> bool:
        return self.kind in INFRASTRUCTURE_ERRORS

    @classmethod
    def from_rejection(
        cls, rejection: Rejection, command_name: str, booking_id: str
    ) -> "CommandError":
        return cls(
            kind=_REJECTION_KINDS[rejection.reason],
            message=rejection.message,
            command_name=command_name,
            booking_id=booking_id,
        )


@dataclass(frozen=True)
class CommandOutcome:
    """A successfully executed command."""

    command_name: str
    booking_id: str
    reservation_number: str
    status: str
    payment_status: str
    can_undo: bool
    executed_at: datetime
    success: bool = field(default=True, init=False)


@dataclass(frozen=True)
class UndoOutcome:
    """A successfully reverted command."""

    command_name: str
    booking_id: str
    status: str
    payment_status: str
    actor: str | None = None
    success: bool = field(default=True, init=False)


@dataclass(frozen=True)
class CommandSummary:
    """Read-only view of a history entry."""

    command_id: str
    name: str
    booking_id: str
    payload: dict[str, Any]
    can_undo: bool
    executed_at: datetime | None


CommandResult = Union[CommandOutcome, CommandError]
UndoResult = Union[UndoOutcome, CommandError]
