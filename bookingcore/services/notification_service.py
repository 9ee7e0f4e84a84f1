"""Outbound delivery of booking events.

Events raised by booking commands are posted as JSON to a single configured
webhook URL. Without a URL, delivery only logs the event.
"""

import logging
from typing import Any

import httpx

from bookingcore.config import settings

logger = logging.getLogger(__name__)


class DeliveryError(Exception):
    """The webhook receiver did not accept an event."""


class NotificationService:
    """Service for delivering booking events to subscribers."""

    def __init__(self, webhook_url: str | None = None, timeout: float | None = None) -> None:
        self.webhook_url = webhook_url if webhook_url is not None else settings.event_webhook_url
        self.timeout = timeout if timeout is not None else settings.event_webhook_timeout_seconds

    async def deliver_booking_event(
        self,
        event_name: str,
        payload: dict[str, Any],
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> bool:
        """Post one event to the webhook.

        Args:
            event_name: Domain event name (e.g., "BookingConfirmed")
            payload: JSON-safe event body
            transport: Optional httpx transport, used by tests

        Returns:
            True if delivered, False if no webhook is configured

        Raises:
            DeliveryError: If the receiver is unreachable or answers with an error
        """
        reference = payload.get("reservation_number") or payload.get("booking_id")
        if not self.webhook_url:
            logger.info(f"No event webhook configured; {event_name} for {reference} not delivered")
            return False

        body = {"event": event_name, "data": payload}
        headers = {"X-Booking-Event": event_name}

        # A fresh client per delivery; Celery runs each task in its own event loop
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=transport) as client:
                response = await client.post(self.webhook_url, json=body, headers=headers)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise DeliveryError(
                f"{event_name} for {reference} rejected with HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise DeliveryError(f"{event_name} for {reference} could not be delivered: {e}") from e

        logger.info(f"Delivered {event_name} for {reference}")
        return True


notification_service = NotificationService()
