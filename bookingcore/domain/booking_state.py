"""Booking state machine.

Lifecycle: PENDING → CONFIRMED → IN_PROGRESS → COMPLETED, with CANCELLED
reachable from PENDING or CONFIRMED. COMPLETED and CANCELLED are terminal:
no event of either axis is accepted once a booking reaches them.

Expected rejections are returned as values; only unknown status values
(a programmer error) raise.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Union

from bookingcore.domain.payment_state import PaymentStatus, parse_payment_status


class BookingStatus(str, Enum):
    """Lifecycle status of a booking."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class BookingEvent(str, Enum):
    """Events that move a booking along one of its two axes."""

    CONFIRM = "confirm"
    REVERT_TO_PENDING = "revert_to_pending"
    START = "start"
    REVERT_TO_CONFIRMED = "revert_to_confirmed"
    COMPLETE = "complete"
    CANCEL = "cancel"
    REQUEST_PAYMENT = "request_payment"
    WITHDRAW_PAYMENT_REQUEST = "withdraw_payment_request"
    MARK_PAID = "mark_paid"
    VOID_PAYMENT = "void_payment"
    MARK_PAYMENT_FAILED = "mark_payment_failed"
    REFUND = "refund"


class Axis(str, Enum):
    """Booking field an event writes to."""

    STATUS = "status"
    PAYMENT = "payment_status"


class RejectionReason(str, Enum):
    INVALID_FROM_TERMINAL_STATE = "INVALID_FROM_TERMINAL_STATE"
    UNKNOWN_EVENT = "UNKNOWN_EVENT"
    PAYMENT_PRECONDITION = "PAYMENT_PRECONDITION"
    INVALID_TRANSITION = "INVALID_TRANSITION"


TERMINAL_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED})


@dataclass(frozen=True)
class EventRule:
    """Static definition of one event: where it applies and what it undoes to."""

    axis: Axis
    moves: Mapping[Enum, Enum]
    inverse: BookingEvent | None = None
    requires_payment: PaymentStatus | None = None


@dataclass(frozen=True)
class Transition:
    """An accepted transition."""

    event: BookingEvent
    axis: Axis
    source: Enum
    target: Enum
    accepted: bool = field(default=True, init=False)


@dataclass(frozen=True)
class Rejection:
    """A refused transition with a machine-readable reason."""

    reason: RejectionReason
    message: str
    accepted: bool = field(default=False, init=False)


TransitionResult = Union[Transition, Rejection]


def _moves(mapping: dict) -> Mapping[Enum, Enum]:
    return MappingProxyType(mapping)


_S = BookingStatus
_P = PaymentStatus

TRANSITION_TABLE: Mapping[BookingEvent, EventRule] = MappingProxyType({
    # ============ Lifecycle axis ============
    BookingEvent.CONFIRM: EventRule(
        axis=Axis.STATUS,
        moves=_moves({_S.PENDING: _S.CONFIRMED}),
        inverse=BookingEvent.REVERT_TO_PENDING,
    ),
    BookingEvent.REVERT_TO_PENDING: EventRule(
        axis=Axis.STATUS,
        moves=_moves({_S.CONFIRMED: _S.PENDING}),
        inverse=BookingEvent.CONFIRM,
    ),
    BookingEvent.START: EventRule(
        axis=Axis.STATUS,
        moves=_moves({_S.CONFIRMED: _S.IN_PROGRESS}),
        inverse=BookingEvent.REVERT_TO_CONFIRMED,
    ),
    BookingEvent.REVERT_TO_CONFIRMED: EventRule(
        axis=Axis.STATUS,
        moves=_moves({_S.IN_PROGRESS: _S.CONFIRMED}),
        inverse=BookingEvent.START,
    ),
    BookingEvent.COMPLETE: EventRule(
        axis=Axis.STATUS,
        moves=_moves({_S.IN_PROGRESS: _S.COMPLETED}),
        requires_payment=_P.PAID,
    ),
    # A cancelled slot may already have been handed to someone else
    BookingEvent.CANCEL: EventRule(
        axis=Axis.STATUS,
        moves=_moves({_S.PENDING: _S.CANCELLED, _S.CONFIRMED: _S.CANCELLED}),
    ),
    # ============ Payment axis ============
    BookingEvent.REQUEST_PAYMENT: EventRule(
        axis=Axis.PAYMENT,
        moves=_moves({_P.UNPAID: _P.PENDING, _P.FAILED: _P.PENDING}),
        inverse=BookingEvent.WITHDRAW_PAYMENT_REQUEST,
    ),
    BookingEvent.WITHDRAW_PAYMENT_REQUEST: EventRule(
        axis=Axis.PAYMENT,
        moves=_moves({_P.PENDING: _P.UNPAID}),
        inverse=BookingEvent.REQUEST_PAYMENT,
    ),
    BookingEvent.MARK_PAID: EventRule(
        axis=Axis.PAYMENT,
        moves=_moves({_P.UNPAID: _P.PAID, _P.PENDING: _P.PAID}),
        inverse=BookingEvent.VOID_PAYMENT,
    ),
    BookingEvent.VOID_PAYMENT: EventRule(
        axis=Axis.PAYMENT,
        moves=_moves({_P.PAID: _P.UNPAID}),
        inverse=BookingEvent.MARK_PAID,
    ),
    BookingEvent.MARK_PAYMENT_FAILED: EventRule(
        axis=Axis.PAYMENT,
        moves=_moves({_P.PENDING: _P.FAILED}),
        inverse=BookingEvent.REQUEST_PAYMENT,
    ),
    # Money has left the platform
    BookingEvent.REFUND: EventRule(
        axis=Axis.PAYMENT,
        moves=_moves({_P.PAID: _P.REFUNDED}),
    ),
})


def parse_booking_status(value: "str | BookingStatus") -> BookingStatus:
    """Coerce a stored value to BookingStatus.

    Raises:
        ValueError: If the value is not a known booking status
    """
    if isinstance(value, BookingStatus):
        return value
    try:
        return BookingStatus(value)
    except ValueError:
        raise ValueError(f"Unknown booking status: {value!r}") from None


def parse_event(value: "str | BookingEvent") -> BookingEvent | None:
    """Return the matching event, or None if the name is not known."""
    if isinstance(value, BookingEvent):
        return value
    try:
        return BookingEvent(value)
    except ValueError:
        return None


def is_terminal(status: "str | BookingStatus") -> bool:
    return parse_booking_status(status) in TERMINAL_STATUSES


def validate_transition(
    status: "str | BookingStatus",
    payment_status: "str | PaymentStatus",
    event: "str | BookingEvent",
) -> TransitionResult:
    """Decide whether an event may be applied to a booking in the given state.

    Pure function: no I/O, no mutation.

    Args:
        status: Current booking status
        payment_status: Current payment status
        event: Requested event (enum member or its string value)

    Returns:
        Transition if accepted, Rejection otherwise

    Raises:
        ValueError: If status or payment_status is not a known value
    """
    current_status = parse_booking_status(status)
    current_payment = parse_payment_status(payment_status)

    parsed = parse_event(event)
    if parsed is None:
        return Rejection(RejectionReason.UNKNOWN_EVENT, f"Unknown booking event: {event!r}")

    if current_status in TERMINAL_STATUSES:
        return Rejection(
            RejectionReason.INVALID_FROM_TERMINAL_STATE,
            f"Booking is {current_status.value}; no further transitions are allowed",
        )

    rule = TRANSITION_TABLE[parsed]
    source = current_status if rule.axis is Axis.STATUS else current_payment
    target = rule.moves.get(source)
    if target is None:
        return Rejection(
            RejectionReason.INVALID_TRANSITION,
            f"Invalid {rule.axis.value} transition: {parsed.value} from {source.value}",
        )

    if rule.requires_payment is not None and current_payment is not rule.requires_payment:
        return Rejection(
            RejectionReason.PAYMENT_PRECONDITION,
            f"{parsed.value} requires payment status {rule.requires_payment.value}, "
            f"booking is {current_payment.value}",
        )

    return Transition(event=parsed, axis=rule.axis, source=source, target=target)


def inverse_of(event: "str | BookingEvent") -> BookingEvent | None:
    """Return the event that reverses the given one, or None if not invertible.

    Raises:
        ValueError: If the event is not known
    """
    parsed = parse_event(event)
    if parsed is None:
        raise ValueError(f"Unknown booking event: {event!r}")
    return TRANSITION_TABLE[parsed].inverse


def is_invertible(event: "str | BookingEvent") -> bool:
    return inverse_of(event) is not None
