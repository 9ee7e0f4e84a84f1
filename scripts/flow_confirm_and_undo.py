#!/usr/bin/env python3
"""
Confirm, pay and undo flow script.

DO NOT ADD BUSINESS LOGIC HERE.
This script only orchestrates API calls.
All rules live in the backend.

Usage:
    python scripts/flow_confirm_and_undo.py --booking-id <UUID>
    python scripts/flow_confirm_and_undo.py --booking-id <UUID> --base-url http://localhost:8001

Flow:
    1. Show booking
    2. Confirm booking
    3. Mark payment as paid
    4. Undo (payment back to UNPAID)
    5. Undo (booking back to PENDING)
    6. Show command history and final booking
"""

import argparse
import json
import sys

import httpx

BASE_URL = "http://localhost:8000"
API_PREFIX = "/api/v1"


def api_request(client: httpx.Client, method: str, endpoint: str, data: dict | None = None) -> dict:
    """Make API request."""
    if method == "GET":
        response = client.get(f"{API_PREFIX}{endpoint}")
    elif method == "POST":
        response = client.post(f"{API_PREFIX}{endpoint}", json=data or {})
    else:
        raise ValueError(f"Unknown method: {method}")

    return {"status": response.status_code, "data": response.json() if response.text else {}}


def print_step(step: int, title: str):
    """Print step header."""
    print(f"\n{'='*60}")
    print(f"STEP {step}: {title}")
    print("="*60)


def print_result(result: dict, fields: list[str] | None = None):
    """Print result, optionally filtering fields."""
    if result["status"] >= 400:
        print(f"ERROR ({result['status']}): {json.dumps(result['data'], indent=2)}")
        return False

    print(f"Status: {result['status']}")
    if fields:
        filtered = {k: result["data"].get(k) for k in fields if k in result["data"]}
        print(json.dumps(filtered, indent=2))
    else:
        print(json.dumps(result["data"], indent=2))
    return True


def submit(client: httpx.Client, command: str, booking_id: str, payload: dict | None = None) -> dict:
    return api_request(client, "POST", "/commands", {
        "command": command,
        "booking_id": booking_id,
        "payload": payload or {},
    })


def main():
    parser = argparse.ArgumentParser(description="Confirm, pay and undo flow")
    parser.add_argument("--booking-id", required=True, help="Booking UUID (PENDING / UNPAID)")
    parser.add_argument("--base-url", default=BASE_URL, help="Server base URL")
    parser.add_argument("--actor", default="flow-script", help="Actor recorded on undo")
    args = parser.parse_args()

    booking_fields = ["reservation_number", "status", "payment_status", "confirmed_at", "paid_at"]

    with httpx.Client(base_url=args.base_url, timeout=10.0) as client:
        # Step 1: Show booking
        print_step(1, "Show booking")
        if not print_result(api_request(client, "GET", f"/bookings/{args.booking_id}"), booking_fields):
            sys.exit(1)

        # Step 2: Confirm booking
        print_step(2, "Confirm booking")
        if not print_result(submit(client, "ConfirmBooking", args.booking_id)):
            sys.exit(1)

        # Step 3: Mark payment as paid
        print_step(3, "Mark payment as paid")
        if not print_result(submit(client, "MarkPaid", args.booking_id, {"payment_intent_id": "pi_flow_script"})):
            sys.exit(1)

        # Step 4 and 5: Undo both commands, most recent first
        print_step(4, "Undo MarkPaid")
        if not print_result(api_request(client, "POST", "/commands/undo", {"actor": args.actor})):
            sys.exit(1)

        print_step(5, "Undo ConfirmBooking")
        if not print_result(api_request(client, "POST", "/commands/undo", {"actor": args.actor})):
            sys.exit(1)

        # Step 6: History and final state
        print_step(6, "Command history and final booking")
        print_result(api_request(client, "GET", "/commands/history"))
        if not print_result(api_request(client, "GET", f"/bookings/{args.booking_id}"), booking_fields):
            sys.exit(1)

    print("\n" + "="*60)
    print("FLOW COMPLETE")
    print("="*60)


if __name__ == "__main__":
    main()
