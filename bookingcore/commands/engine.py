"""Command engine: executes booking commands and undoes them in LIFO order.

Locking rules:
- Work on one booking is serialized through a per-booking lock, covering the
  whole read-validate-write of an execute or an undo.
- The history deque is only touched while holding the history lock.
- Locks are always taken booking first, history second, and the history lock
  is never held while waiting for a booking lock.
"""

import asyncio
import dataclasses
import logging
import time
from collections import deque

from bookingcore.commands.base import BookingCommand
from bookingcore.commands.results import (
    CommandError,
    CommandResult,
    CommandSummary,
    ErrorKind,
    UndoResult,
)
from bookingcore.core.exceptions import RepositoryError
from bookingcore.core.locks import KeyedLock
from bookingcore.domain.booking import Booking
from bookingcore.repositories.booking_repository import BookingRepository
from bookingcore.services.event_bus import EventSink

logger = logging.getLogger(__name__)

DEFAULT_MAX_HISTORY_SIZE = 50
DEFAULT_TIMEOUT_SECONDS = 10.0


class _DeadlineRepository:
    """Applies the engine's timeout to every booking store call."""

    def __init__(self, repository: BookingRepository, timeout: float) -> None:
        self._repository = repository
        self._timeout = timeout

    async def get_booking(self, booking_id: str) -> Booking | None:
        return await asyncio.wait_for(self._repository.get_booking(booking_id), self._timeout)

    async def save_booking(self, booking: Booking) -> None:
        await asyncio.wait_for(self._repository.save_booking(booking), self._timeout)


class CommandEngine:
    """Single entry point for executing and undoing booking commands."""

    def __init__(
        self,
        repository: BookingRepository,
        events: EventSink,
        max_history_size: int = DEFAULT_MAX_HISTORY_SIZE,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        if max_history_size < 1:
            raise ValueError("max_history_size must be at least 1")
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")

        self.repository = repository
        self.events = events
        self.timeout_seconds = timeout_seconds
        self._store = _DeadlineRepository(repository, timeout_seconds)
        self._history: deque[BookingCommand] = deque(maxlen=max_history_size)
        self._history_lock = asyncio.Lock()
        self._booking_locks = KeyedLock()

    @property
    def max_history_size(self) -> int:
        return self._history.maxlen or DEFAULT_MAX_HISTORY_SIZE

    async def execute(self, command: BookingCommand, correlation_id: str | None = None) -> CommandResult:
        """Execute a command and record it on success.

        Failed commands, whatever the reason, leave the history untouched.
        """
        ref = correlation_id or "-"
        started = time.perf_counter()
        logger.debug(f"[{ref}] Executing {command.name} on booking {command.booking_id}")

        async with self._booking_locks.hold(command.booking_id):
            result = await self._run(command.execute(self._store, self.events), command, ref)
            if isinstance(result, CommandError):
                return result

            async with self._history_lock:
                if len(self._history) == self._history.maxlen:
                    evicted = self._history[0]
                    logger.debug(f"[{ref}] History full, evicting {evicted.name} {evicted.command_id}")
                self._history.append(command)

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"[{ref}] {command.name} applied to booking {command.booking_id} "
            f"({result.status}/{result.payment_status}) in {elapsed_ms:.1f}ms"
        )
        return result

    async def undo(self, actor: str | None = None, correlation_id: str | None = None) -> UndoResult:
        """Undo the most recent command in history.

        A non-undoable head stays in history. A head whose undo fails is
        discarded and never retried.
        """
        ref = correlation_id or "-"

        while True:
            async with self._history_lock:
                if not self._history:
                    return CommandError(kind=ErrorKind.NOTHING_TO_UNDO, message="Nothing to undo")
                candidate = self._history[-1]
                if not candidate.can_undo():
                    logger.info(f"[{ref}] Undo refused: {candidate.name} cannot be undone")
                    return CommandError(
                        kind=ErrorKind.NOT_UNDOABLE,
                        message=f"{candidate.name} cannot be undone",
                        command_name=candidate.name,
                        booking_id=candidate.booking_id,
                    )

            async with self._booking_locks.hold(candidate.booking_id):
                async with self._history_lock:
                    # Another undo or a newer command may have moved the head
                    if not self._history or self._history[-1] is not candidate:
                        continue
                    self._history.pop()

                result = await self._run(candidate.undo(self._store, self.events), candidate, ref)

            if isinstance(result, CommandError):
                logger.warning(
                    f"[{ref}] Undo of {candidate.name} on booking {candidate.booking_id} failed "
                    f"({result.kind.value}); command discarded"
                )
                return result

            logger.info(
                f"[{ref}] Undid {candidate.name} on booking {candidate.booking_id}"
                + (f" for {actor}" if actor else "")
            )
            return dataclasses.replace(result, actor=actor)

    def get_history(self) -> tuple[CommandSummary, ...]:
        """Oldest first."""
        return tuple(command.summary() for command in self._history)

    def get_history_size(self) -> int:
        return len(self._history)

    async def clear_history(self) -> int:
        """Drop every history entry. Returns how many were dropped."""
        async with self._history_lock:
            dropped = len(self._history)
            self._history.clear()
        logger.info(f"Command history cleared ({dropped} entries)")
        return dropped

    async def _run(self, operation, command: BookingCommand, ref: str):
        """Await a command operation, turning infrastructure failures into results."""
        try:
            return await operation
        except asyncio.TimeoutError:
            logger.error(
                f"[{ref}] {command.name} on booking {command.booking_id} timed out "
                f"after {self.timeout_seconds}s"
            )
            return CommandError(
                kind=ErrorKind.TIMEOUT,
                message=f"Booking store did not answer within {self.timeout_seconds}s",
                command_name=command.name,
                booking_id=command.booking_id,
            )
        except RepositoryError as e:
            logger.error(f"[{ref}] {command.name} on booking {command.booking_id} failed: {e}")
            return CommandError(
                kind=ErrorKind.WRITE_FAILED,
                message=str(e),
                command_name=command.name,
                booking_id=command.booking_id,
            )
