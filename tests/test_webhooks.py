from __future__ import annotations

import uuid
from datetime import UTC, datetime

import httpx
import pytest
import stripe

from bookingcore.commands.engine import CommandEngine
from bookingcore.config import settings
from bookingcore.core.exceptions import RepositoryError
from bookingcore.main import create_application
from bookingcore.repositories.booking_repository import (
    InMemoryBookingRepository,
    SqlBookingRepository,
)

WEBHOOK_URL = f"{settings.api_prefix}/webhooks/stripe"


class BrokenRepository(InMemoryBookingRepository):
    async def save_booking(self, booking):
        raise RepositoryError("save", booking.id, "read-only replica")


def stripe_event(event_type: str, booking_id: str | None, **data) -> dict:
    obj = {"id": "pi_3Q0abc", "object": "payment_intent", **data}
    if booking_id is not None:
        obj["metadata"] = {"booking_id": booking_id}
    return {"id": "evt_1", "type": event_type, "data": {"object": obj}}


@pytest.fixture
def deliver(monkeypatch):
    """Post one event, with signature checking replaced by a canned result."""
    monkeypatch.setattr(settings, "stripe_webhook_secret", "whsec_test")

    async def post(app, event):
        monkeypatch.setattr(stripe.Webhook, "construct_event", lambda payload, sig, secret: event)
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
            return await client.post(
                WEBHOOK_URL,
                content=b"{}",
                headers={"Stripe-Signature": "t=1,v1=abc"},
            )

    return post


@pytest.fixture
def app(engine):
    return create_application(engine)


@pytest.mark.asyncio
async def test_payment_succeeded_marks_booking_paid(app, deliver, engine, repository, booking):
    response = await deliver(app, stripe_event("payment_intent.succeeded", booking.id))

    assert response.status_code == 200
    assert response.json() == {
        "received": True,
        "handled": True,
        "command": "MarkPaid",
        "status": "PENDING",
        "payment_status": "PAID",
    }
    assert (await repository.get_booking(booking.id)).paid_at is not None
    assert engine.get_history()[-1].payload == {"payment_intent_id": "pi_3Q0abc"}


@pytest.mark.asyncio
async def test_redelivered_event_is_acknowledged(app, deliver, engine, booking):
    event = stripe_event("payment_intent.succeeded", booking.id)

    await deliver(app, event)
    response = await deliver(app, event)

    assert response.status_code == 200
    assert response.json() == {"received": True, "handled": False, "reason": "INVALID_TRANSITION"}
    assert engine.get_history_size() == 1


@pytest.mark.asyncio
async def test_processing_then_failed(app, deliver, repository, booking):
    await deliver(app, stripe_event("payment_intent.processing", booking.id))
    response = await deliver(
        app,
        stripe_event(
            "payment_intent.payment_failed",
            booking.id,
            last_payment_error={"message": "Your card was declined."},
        ),
    )

    assert response.json()["payment_status"] == "FAILED"
    stored = await repository.get_booking(booking.id)
    assert stored.payment_failure_reason == "Your card was declined."


@pytest.mark.asyncio
async def test_refund_reads_intent_from_charge(app, deliver, engine, make_booking):
    booking = make_booking(payment_status="PAID")
    event = {
        "id": "evt_2",
        "type": "charge.refunded",
        "data": {
            "object": {
                "id": "ch_1",
                "object": "charge",
                "payment_intent": "pi_refunded",
                "metadata": {"booking_id": booking.id},
            }
        },
    }

    response = await deliver(app, event)

    assert response.json()["payment_status"] == "REFUNDED"
    assert engine.get_history()[-1].payload == {"payment_intent_id": "pi_refunded"}


@pytest.mark.asyncio
async def test_missing_booking_metadata(app, deliver, engine):
    response = await deliver(app, stripe_event("payment_intent.succeeded", None))

    assert response.status_code == 200
    assert response.json()["reason"] == "MISSING_BOOKING_ID"
    assert engine.get_history_size() == 0


@pytest.mark.asyncio
async def test_unmapped_event_type_is_ignored(app, deliver, booking):
    response = await deliver(app, stripe_event("customer.created", booking.id))

    assert response.json() == {"received": True, "handled": False}


@pytest.mark.asyncio
async def test_unknown_booking_is_acknowledged(app, deliver):
    response = await deliver(app, stripe_event("payment_intent.succeeded", "gone"))

    assert response.status_code == 200
    assert response.json()["reason"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_store_failure_asks_stripe_to_retry(deliver, sink):
    repository = BrokenRepository()
    booking = repository.create_booking(
        "r", "p", "Tutoring", timeslot=datetime(2026, 11, 2, 10, tzinfo=UTC), total_amount=4000
    )
    app = create_application(CommandEngine(repository, sink))

    response = await deliver(app, stripe_event("payment_intent.succeeded", booking.id))

    assert response.status_code == 503
    assert "booking store" in response.json()["detail"]


@pytest.mark.asyncio
async def test_bad_signature_is_rejected(app, monkeypatch):
    monkeypatch.setattr(settings, "stripe_webhook_secret", "whsec_test")

    def reject(payload, sig, secret):
        raise stripe.SignatureVerificationError("No signatures found", sig)

    monkeypatch.setattr(stripe.Webhook, "construct_event", reject)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.post(WEBHOOK_URL, content=b"{}", headers={"Stripe-Signature": "bad"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid signature"


@pytest.mark.asyncio
async def test_unconfigured_secret(app, monkeypatch):
    monkeypatch.setattr(settings, "stripe_webhook_secret", None)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.post(WEBHOOK_URL, content=b"{}")

    assert response.status_code == 503


class RefusedSession:
    async def __aenter__(self):
        raise ConnectionRefusedError(111, "Connect call failed")

    async def __aexit__(self, *exc_info):
        return False


@pytest.mark.asyncio
async def test_unreachable_database_asks_stripe_to_retry(deliver, sink):
    app = create_application(CommandEngine(SqlBookingRepository(session_factory=RefusedSession), sink))

    response = await deliver(app, stripe_event("payment_intent.succeeded", str(uuid.uuid4())))

    assert response.status_code == 503
