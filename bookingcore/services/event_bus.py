"""In-process event bus for booking domain events.

Listeners are called in priority order (highest first). A failing listener
is logged and does not stop the others or the emitter.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol

logger = logging.getLogger(__name__)

EventCallback = Callable[[str, dict[str, Any]], "Awaitable[None] | None"]
Unsubscribe = Callable[[], None]

# Listeners registered under this name receive every event
ALL_EVENTS = "*"


class EventSink(Protocol):
    """Interface the command layer emits through."""

    async def emit(self, event_name: str, payload: dict[str, Any]) -> None:
        ...


@dataclass(eq=False)
class _Listener:
    callback: EventCallback
    priority: int = 0
    once: bool = False


class EventBus:
    """Publish/subscribe hub implementing EventSink."""

    def __init__(self, max_listeners: int = 100) -> None:
        self._listeners: dict[str, list[_Listener]] = {}
        self.max_listeners = max_listeners

    def on(self, event_name: str, callback: EventCallback, priority: int = 0) -> Unsubscribe:
        """Subscribe to an event. Returns a function that unsubscribes."""
        return self._add(event_name, _Listener(callback=callback, priority=priority))

    def once(self, event_name: str, callback: EventCallback, priority: int = 0) -> Unsubscribe:
        """Subscribe for the next occurrence only."""
        return self._add(event_name, _Listener(callback=callback, priority=priority, once=True))

    def off(self, event_name: str) -> None:
        self._listeners.pop(event_name, None)

    def listener_count(self, event_name: str) -> int:
        return len(self._listeners.get(event_name, []))

    def event_names(self) -> list[str]:
        return list(self._listeners)

    async def emit(self, event_name: str, payload: dict[str, Any]) -> None:
        """Deliver an event to its listeners and to wildcard listeners."""
        targets = [
            (name, listener)
            for name in (event_name, ALL_EVENTS)
            for listener in self._listeners.get(name, [])
        ]
        targets.sort(key=lambda item: item[1].priority, reverse=True)

        pending: list[Awaitable[None]] = []
        for name, listener in targets:
            if listener.once:
                self._remove(name, listener)
            try:
                result = listener.callback(event_name, payload)
            except Exception:
                logger.exception(f"Event listener failed for {event_name}")
                continue
            if inspect.isawaitable(result):
                pending.append(result)

        if not pending:
            return

        results = await asyncio.gather(*pending, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.error(f"Async event listener failed for {event_name}: {result!r}")

    def _add(self, event_name: str, listener: _Listener) -> Unsubscribe:
        listeners = self._listeners.setdefault(event_name, [])
        if len(listeners) >= self.max_listeners:
            logger.warning(
                f"Maximum listeners ({self.max_listeners}) reached for event {event_name}"
            )

        # Keep descending priority; equal priorities stay in subscription order
        index = next(
            (i for i, existing in enumerate(listeners) if existing.priority < listener.priority),
            len(listeners),
        )
        listeners.insert(index, listener)

        def unsubscribe() -> None:
            self._remove(event_name, listener)

        return unsubscribe

    def _remove(self, event_name: str, listener: _Listener) -> None:
        listeners = self._listeners.get(event_name)
        if not listeners:
            return
        if listener in listeners:
            listeners.remove(listener)
        if not listeners:
            del self._listeners[event_name]
