"""Event adapter: routes verified events to registered application handlers."""

from __future__ import annotations

import time
from collections import defaultdict
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from switchboard.config import Settings
from switchboard.events.handler import WebhookHandler, coerce_event_response
from switchboard.events.models import EventResponse
from switchboard.logging import get_logger

logger = get_logger(__name__)

EventCallback = Callable[[dict[str, Any]], Awaitable[EventResponse | Mapping[str, Any] | None]]

# Handlers registered under this name receive every event
ALL_EVENTS = "*"


def event_type_of(payload: Mapping[str, Any]) -> str | None:
    """Return the inner event type of a callback payload, or the outer type."""
    event = payload.get("event")
    if isinstance(event, Mapping) and isinstance(event.get("type"), str):
        return event["type"]
    outer = payload.get("type")
    return outer if isinstance(outer, str) else None


class EventAdapter:
    """Registry of per-event-type handlers, usable as a WebhookHandler emitter.

    Example:
        ```python
        adapter = EventAdapter(Settings(signing_secret="..."))

        @adapter.on("reaction_added")
        async def on_reaction(payload: dict) -> None:
            print(payload["event"]["user"])

        handler = adapter.create_handler()
        ```
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings if settings is not None else Settings()
        self._handlers: defaultdict[str, list[EventCallback]] = defaultdict(list)

    def on(self, event_type: str) -> Callable[[EventCallback], EventCallback]:
        """Decorator registering a handler for `event_type` ("*" for all)."""

        def decorator(callback: EventCallback) -> EventCallback:
            self.add_handler(event_type, callback)
            return callback

        return decorator

    def add_handler(self, event_type: str, callback: EventCallback) -> None:
        self._handlers[event_type].append(callback)

    def remove_handler(self, event_type: str, callback: EventCallback) -> None:
        """Unregister a handler. Unknown handlers are ignored."""
        callbacks = self._handlers.get(event_type, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def handlers_for(self, event_type: str | None) -> list[EventCallback]:
        specific = self._handlers.get(event_type, []) if event_type else []
        return [*specific, *self._handlers.get(ALL_EVENTS, [])]

    async def emit(self, payload: dict[str, Any]) -> EventResponse:
        """Run every matching handler in registration order.

        The first handler to return a response decides what is sent back.
        Without one the event is acknowledged with 200. A handler that
        raises stops dispatch and the error propagates to the caller.

        Args:
            payload: Verified event payload.

        Returns:
            The response to send to the platform.
        """
        event_type = event_type_of(payload)
        callbacks = self.handlers_for(event_type)
        if not callbacks:
            logger.debug("No handlers registered for event", event_type=event_type)
            return EventResponse()

        response: EventResponse | None = None
        for callback in callbacks:
            result = await callback(payload)
            if response is None and result is not None:
                response = coerce_event_response(result)
        return response or EventResponse()

    def create_handler(self, *, clock: Callable[[], float] = time.time) -> WebhookHandler:
        """Build a WebhookHandler that emits into this adapter."""
        return WebhookHandler(self.settings, self.emit, clock=clock)
