from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import pytest

from bookingcore.commands.engine import CommandEngine
from bookingcore.domain.booking import Booking
from bookingcore.repositories.booking_repository import InMemoryBookingRepository


class RecordingSink:
    """Event sink that keeps every emitted event."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    async def emit(self, event_name: str, payload: dict[str, Any]) -> None:
        self.events.append((event_name, payload))

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.events]


@pytest.fixture
def repository() -> InMemoryBookingRepository:
    return InMemoryBookingRepository()


@pytest.fixture
def make_booking(repository):
    def _make(**attributes: Any) -> Booking:
        return repository.create_booking(
            requester_id="requester-1",
            provider_id="provider-1",
            service_name="Legal consultation",
            timeslot=datetime(2026, 11, 2, 10, 0, tzinfo=UTC),
            total_amount=12_000,
            **attributes,
        )

    return _make


@pytest.fixture
def booking(make_booking) -> Booking:
    return make_booking()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def engine(repository, sink) -> CommandEngine:
    return CommandEngine(repository, sink, max_history_size=50, timeout_seconds=1.0)
