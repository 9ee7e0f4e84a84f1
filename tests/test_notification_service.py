from __future__ import annotations

import json

import httpx
import pytest

from bookingcore import tasks
from bookingcore.services.notification_service import DeliveryError, NotificationService

PAYLOAD = {
    "booking_id": "b-1",
    "reservation_number": "RES-1761000000000-AB12CD34E",
    "status": "CONFIRMED",
    "payment_status": "UNPAID",
}


@pytest.mark.asyncio
async def test_delivers_event_as_json():
    received: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(request)
        return httpx.Response(204)

    service = NotificationService(webhook_url="https://hooks.example.com/bookings", timeout=2.0)

    delivered = await service.deliver_booking_event(
        "BookingConfirmed", PAYLOAD, transport=httpx.MockTransport(handler)
    )

    assert delivered is True
    assert len(received) == 1
    request = received[0]
    assert str(request.url) == "https://hooks.example.com/bookings"
    assert request.headers["X-Booking-Event"] == "BookingConfirmed"
    assert json.loads(request.content) == {"event": "BookingConfirmed", "data": PAYLOAD}


@pytest.mark.asyncio
async def test_without_webhook_nothing_is_sent():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    service = NotificationService(webhook_url="")

    delivered = await service.deliver_booking_event(
        "BookingConfirmed", PAYLOAD, transport=httpx.MockTransport(handler)
    )

    assert delivered is False


@pytest.mark.asyncio
async def test_receiver_error_raises_delivery_error():
    service = NotificationService(webhook_url="https://hooks.example.com/bookings")
    transport = httpx.MockTransport(lambda request: httpx.Response(500))

    with pytest.raises(DeliveryError, match="HTTP 500"):
        await service.deliver_booking_event("PaymentReceived", PAYLOAD, transport=transport)


@pytest.mark.asyncio
async def test_unreachable_receiver_raises_delivery_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    service = NotificationService(webhook_url="https://hooks.example.com/bookings")

    with pytest.raises(DeliveryError, match="could not be delivered"):
        await service.deliver_booking_event(
            "PaymentReceived", PAYLOAD, transport=httpx.MockTransport(handler)
        )


def test_task_skips_when_webhook_is_unset(monkeypatch):
    monkeypatch.setattr(tasks.notification_service, "webhook_url", None)

    result = tasks.deliver_booking_event.run("BookingConfirmed", PAYLOAD)

    assert result == {"status": "skipped", "event": "BookingConfirmed"}
