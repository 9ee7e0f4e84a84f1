"""Concrete booking lifecycle and payment commands."""

from datetime import datetime

from bookingcore.commands.base import BookingCommand
from bookingcore.domain.booking import Booking
from bookingcore.domain.booking_state import BookingEvent


# ==================== LIFECYCLE ====================


class ConfirmBooking(BookingCommand):
    """Provider accepts a pending booking."""

    name = "ConfirmBooking"
    event = BookingEvent.CONFIRM
    domain_event = "BookingConfirmed"

    def apply(self, booking: Booking, now: datetime) -> None:
        booking.confirmed_at = now


class StartBooking(BookingCommand):
    """Service delivery has begun."""

    name = "StartBooking"
    event = BookingEvent.START
    domain_event = "BookingStarted"

    def apply(self, booking: Booking, now: datetime) -> None:
        booking.started_at = now


class CompleteBooking(BookingCommand):
    """Service delivered. Requires the booking to be paid."""

    name = "CompleteBooking"
    event = BookingEvent.COMPLETE
    domain_event = "BookingCompleted"

    def apply(self, booking: Booking, now: datetime) -> None:
        booking.completed_at = now


class CancelBooking(BookingCommand):
    """Cancel a pending or confirmed booking. Irreversible."""

    name = "CancelBooking"
    event = BookingEvent.CANCEL
    domain_event = "BookingCancelled"
    text_fields = ("reason", "cancelled_by")

    def apply(self, booking: Booking, now: datetime) -> None:
        booking.cancelled_at = now
        booking.cancellation_reason = self.payload.get("reason")


# ==================== PAYMENT ====================


class RequestPayment(BookingCommand):
    """A payment attempt has started (or restarted after a failure)."""

    name = "RequestPayment"
    event = BookingEvent.REQUEST_PAYMENT
    domain_event = "PaymentRequested"
    text_fields = ("payment_intent_id",)

    def apply(self, booking: Booking, now: datetime) -> None:
        booking.payment_failure_reason = None


class MarkPaid(BookingCommand):
    name = "MarkPaid"
    event = BookingEvent.MARK_PAID
    domain_event = "PaymentReceived"
    text_fields = ("payment_intent_id",)

    def apply(self, booking: Booking, now: datetime) -> None:
        booking.paid_at = now
        booking.payment_failure_reason = None


class MarkPaymentFailed(BookingCommand):
    name = "MarkPaymentFailed"
    event = BookingEvent.MARK_PAYMENT_FAILED
    domain_event = "PaymentFailed"
    text_fields = ("reason", "payment_intent_id")

    def apply(self, booking: Booking, now: datetime) -> None:
        booking.payment_failure_reason = self.payload.get("reason") or "Payment failed"


class RefundPayment(BookingCommand):
    """Return a captured payment. Irreversible."""

    name = "RefundPayment"
    event = BookingEvent.REFUND
    domain_event = "PaymentRefunded"
    text_fields = ("reason", "payment_intent_id")

    def apply(self, booking: Booking, now: datetime) -> None:
        booking.refunded_at = now
