"""Celery background tasks.

This module contains background tasks for:
- Booking event delivery to the outbound webhook
"""

import asyncio
import logging
from typing import Any

from celery import shared_task

from bookingcore.services.notification_service import DeliveryError, notification_service

logger = logging.getLogger(__name__)


def run_async(coro):
    """Run async function in sync context."""
    return asyncio.run(coro)


# ==================== EVENT DELIVERY ====================


@shared_task(bind=True, max_retries=5)
def deliver_booking_event(self, event_name: str, payload: dict[str, Any]):
    """Post a booking event to the configured webhook.

    Retries with exponential backoff while the receiver is failing.
    """
    try:
        delivered = run_async(notification_service.deliver_booking_event(event_name, payload))
    except DeliveryError as exc:
        countdown = 30 * (2 ** self.request.retries)
        logger.warning(f"{exc}; retry {self.request.retries + 1} in {countdown}s")
        raise self.retry(exc=exc, countdown=countdown)

    return {"status": "delivered" if delivered else "skipped", "event": event_name}
