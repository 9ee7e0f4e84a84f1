"""Payment state axis.

States: UNPAID → PENDING → PAID → REFUNDED, PENDING → FAILED → PENDING (retry).
Payment events are validated in booking_state alongside the lifecycle events.
"""

from enum import Enum


class PaymentStatus(str, Enum):
    """Payment status of a booking."""

    UNPAID = "UNPAID"
    PENDING = "PENDING"
    PAID = "PAID"
    REFUNDED = "REFUNDED"
    FAILED = "FAILED"


# Statuses where money has been captured from the requester
SETTLED_PAYMENT_STATUSES = frozenset({PaymentStatus.PAID, PaymentStatus.REFUNDED})


def parse_payment_status(value: "str | PaymentStatus") -> PaymentStatus:
    """Coerce a stored value to PaymentStatus.

    Raises:
        ValueError: If the value is not a known payment status
    """
    if isinstance(value, PaymentStatus):
        return value
    try:
        return PaymentStatus(value)
    except ValueError:
        raise ValueError(f"Unknown payment status: {value!r}") from None
