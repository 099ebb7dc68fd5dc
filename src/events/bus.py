"""Async event bus for in-process pub/sub.

Governance services publish events after their writes commit; audit and
notification subscribers receive them without the services knowing
about them.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from src.events.base import Event
from src.events.store import EventStore

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Event)
EventHandler = Callable[[Event], None] | Callable[[Event], Awaitable[None]]


class EventBus:
    """Simple async event bus for in-process pub/sub.

    Features:
    - Subscriptions by event class; subscribing to a base class
      receives every subclass (e.g. GovernanceEvent for all of them)
    - Async and sync handler support
    - Optional persistence via EventStore
    - Error isolation (one handler failure doesn't affect others)
    """

    def __init__(self, store: EventStore | None = None):
        """Initialize event bus.

        Args:
            store: Optional EventStore for persistence
        """
        self._subscribers: dict[type[Event], list[EventHandler]] = {}
        self._store = store

    @property
    def store(self) -> EventStore | None:
        return self._store

    def subscribe(
        self,
        event_type: type[T],
        handler: Callable[[T], None] | Callable[[T], Awaitable[None]],
    ) -> None:
        """Subscribe a handler to an event type and its subclasses.

        Args:
            event_type: The event class to subscribe to
            handler: Function to call when event is published
        """
        self._subscribers.setdefault(event_type, []).append(handler)
        logger.debug(f"Subscribed handler to {event_type.__name__}")

    def _handlers_for(self, event: Event) -> list[EventHandler]:
        handlers: list[EventHandler] = []
        for cls in type(event).__mro__:
            handlers.extend(self._subscribers.get(cls, []))
        return handlers

    async def publish(self, event: Event, persist: bool = False) -> None:
        """Publish an event to all subscribers.

        Args:
            event: The event to publish
            persist: Whether to persist event to store (if available)

        Raises:
            Exception: Whatever the store raised when persisting fails.
                Handler failures are logged, never raised.
        """
        handlers = self._handlers_for(event)

        logger.debug(f"Publishing {event.event_type} to {len(handlers)} handler(s)")

        if persist and self._store:
            await self._store.append(event)

        tasks = []
        for handler in handlers:
            if asyncio.iscoroutinefunction(handler):
                tasks.append(handler(event))
            else:
                tasks.append(asyncio.to_thread(handler, event))

        if tasks:
            results = await asyncio.gather(*tasks, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.error(f"Handler error for {event.event_type}: {result}")
