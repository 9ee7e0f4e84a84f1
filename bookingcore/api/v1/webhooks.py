"""Webhook endpoints for payment gateways."""

import logging
from typing import Annotated, Any

import stripe
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from bookingcore.api.deps import get_command_engine, get_request_id
from bookingcore.commands.engine import CommandEngine
from bookingcore.commands.registry import build_command
from bookingcore.commands.results import CommandError
from bookingcore.config import settings
from bookingcore.core.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

router = APIRouter()

# Stripe event type -> booking command
STRIPE_EVENT_COMMANDS: dict[str, str] = {
    "payment_intent.processing": "RequestPayment",
    "payment_intent.succeeded": "MarkPaid",
    "payment_intent.payment_failed": "MarkPaymentFailed",
    "charge.refunded": "RefundPayment",
}


@router.post("/stripe", status_code=status.HTTP_200_OK)
async def stripe_webhook(
    request: Request,
    engine: Annotated[CommandEngine, Depends(get_command_engine)],
    request_id: Annotated[str | None, Depends(get_request_id)],
    stripe_signature: str | None = Header(None, alias="Stripe-Signature"),
) -> dict:
    """Handle Stripe webhook events."""
    if not settings.stripe_webhook_secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Stripe webhook secret is not configured",
        )

    # Get raw body for signature verification
    payload = await request.body()

    # Verify webhook signature
    try:
        event = stripe.Webhook.construct_event(
            payload,
            stripe_signature,
            settings.stripe_webhook_secret,
        )
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid payload",
        )
    except stripe.SignatureVerificationError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid signature",
        )

    return await _handle_stripe_event(engine, event, request_id)


async def _handle_stripe_event(engine: CommandEngine, event: Any, request_id: str | None) -> dict:
    """Translate a Stripe event into a booking command.

    Events the booking cannot accept are acknowledged, since a redelivery
    would be refused the same way. Store failures answer 503 so Stripe
    retries.
    """
    event_type = event["type"]
    command_name = STRIPE_EVENT_COMMANDS.get(event_type)
    if command_name is None:
        return {"received": True, "handled": False}

    data = event["data"]["object"]
    booking_id = (data.get("metadata") or {}).get("booking_id")
    if not booking_id:
        logger.warning(f"[{request_id}] Stripe {event_type} {data.get('id')} has no booking_id metadata")
        return {"received": True, "handled": False, "reason": "MISSING_BOOKING_ID"}

    command = build_command(command_name, booking_id, _command_payload(event_type, data))
    if isinstance(command, CommandError):
        logger.warning(f"[{request_id}] Stripe {event_type} ignored: {command.message}")
        return {"received": True, "handled": False, "reason": command.kind.value}

    result = await engine.execute(command, correlation_id=request_id)
    if isinstance(result, CommandError):
        if result.is_infrastructure:
            raise ExternalServiceError("booking store", result.message)
        logger.info(
            f"[{request_id}] Stripe {event_type} not applied to booking {booking_id}: "
            f"{result.kind.value} {result.message}"
        )
        return {"received": True, "handled": False, "reason": result.kind.value}

    return {
        "received": True,
        "handled": True,
        "command": result.command_name,
        "status": result.status,
        "payment_status": result.payment_status,
    }


def _command_payload(event_type: str, data: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {}

    # Charges reference their intent; intents are their own id
    payment_intent_id = data.get("payment_intent") or data.get("id")
    if isinstance(payment_intent_id, str):
        payload["payment_intent_id"] = payment_intent_id

    if event_type == "payment_intent.payment_failed":
        error = data.get("last_payment_error") or {}
        if error.get("message"):
            payload["reason"] = str(error["message"])[:1000]

    return payload
