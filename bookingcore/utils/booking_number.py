"""Reservation number generation utilities."""

import random
import string
import time
from collections.abc import Container

RESERVATION_PREFIX = "RES"


def generate_reservation_number(now_ms: int | None = None) -> str:
    """Generate a reservation number in format RES-<millis>-XXXXXXXXX.

    Args:
        now_ms: Epoch milliseconds to embed (defaults to the current time)

    Returns:
        str: Reservation number like 'RES-1760876400000-A3B7K9Q2M'
    """
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    chars = string.ascii_uppercase + string.digits
    random_part = "".join(random.choices(chars, k=9))
    return f"{RESERVATION_PREFIX}-{now_ms}-{random_part}"


def generate_unique_reservation_number(taken: Container[str]) -> str:
    """Generate a reservation number not present in ``taken``."""
    while True:
        reservation_number = generate_reservation_number()
        if reservation_number not in taken:
            return reservation_number
