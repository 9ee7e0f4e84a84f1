"""Database models."""

from bookingcore.models.admin import AuditLog
from bookingcore.models.booking import Booking

__all__ = [
    # Booking
    "Booking",
    # Admin
    "AuditLog",
]
