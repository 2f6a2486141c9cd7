"""
In-process, typed event bus.

Services publish domain events here and other services subscribe to them by
event class. The bus is created once at process start and handed to every
service that needs it; there is no module-level bus.

Design decisions:
- Synchronous, in-process delivery; handlers that need to do slow work should
  enqueue a job instead of doing it inline
- Type-based subscriptions: the event class is the routing key
- Events are delivered to subscribers in registration order
- A failing handler is logged and skipped; it never reaches the publisher
- No persistence (events are delivered, not stored)
"""

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional, TypeVar
from uuid import uuid4

logger = logging.getLogger("event_bus")


@dataclass(frozen=True, kw_only=True)
class Event:
    """
    Base class for all events in the system.

    Events are immutable records of something that happened. Subclasses add
    the fields that identify what happened.

    Attributes:
        source: Which service/component published the event
        event_id: Unique identifier for this event instance
        timestamp: When the event occurred
    """
    source: str = "unknown"
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=datetime.utcnow)

    @property
    def event_type(self) -> str:
        return type(self).__name__

    def __str__(self) -> str:
        return f"Event({self.event_type}, id={self.event_id[:8]}, source={self.source})"


E = TypeVar("E", bound=Event)

# Type alias for event handler functions
EventHandler = Callable[[Event], None]


class EventBus:
    """
    Registry of event handlers keyed by event class.

    Example usage:
        bus = EventBus()

        def on_chirp_created(event: ChirpCreated) -> None:
            ...

        bus.subscribe(ChirpCreated, on_chirp_created)
        bus.publish(ChirpCreated(chirp_id=1, author_id=7))
    """

    def __init__(self, keep_log: bool = False):
        """
        Initialize the event bus with empty subscriber lists.

        Args:
            keep_log: Record every published event (useful for tests and demos)
        """
        self._subscribers: dict[type[Event], list[EventHandler]] = defaultdict(list)
        self._lock = threading.Lock()
        self._event_log: list[Event] = []
        self._log_events = keep_log

    def subscribe(self, event_type: type[E], handler: Callable[[E], None]) -> None:
        """
        Subscribe to events of a specific class.

        Subclasses of event_type are not delivered; routing is by exact class.
        """
        if not (isinstance(event_type, type) and issubclass(event_type, Event)):
            raise TypeError(f"Can only subscribe to Event subclasses, got {event_type!r}")
        with self._lock:
            self._subscribers[event_type].append(handler)
        logger.debug(f"Subscribed handler to '{event_type.__name__}' events")

    def unsubscribe(self, event_type: type[Event], handler: EventHandler) -> bool:
        """
        Unsubscribe a handler from an event class.

        Returns:
            True if the handler was found and removed, False otherwise
        """
        with self._lock:
            try:
                self._subscribers[event_type].remove(handler)
            except ValueError:
                return False
        logger.debug(f"Unsubscribed handler from '{event_type.__name__}' events")
        return True

    def publish(self, event: Event) -> int:
        """
        Publish an event to all subscribers of its class.

        Returns:
            Number of handlers that received the event

        Note: Handlers are called synchronously in the order they subscribed.
        If a handler raises an exception, it's logged but doesn't stop other
        handlers and isn't raised to the publisher.
        """
        with self._lock:
            if self._log_events:
                self._event_log.append(event)
            handlers = list(self._subscribers.get(type(event), []))

        logger.info(f"Publishing: {event}")

        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception(f"Handler raised exception for {event}")

        if not handlers:
            logger.warning(f"No handlers for event type '{event.event_type}'")

        return len(handlers)

    def get_subscriber_count(self, event_type: type[Event]) -> int:
        """Get the number of subscribers for an event class."""
        return len(self._subscribers.get(event_type, []))

    def get_event_log(self) -> list[Event]:
        """Get the log of all published events (empty unless keep_log=True)."""
        with self._lock:
            return self._event_log.copy()

    def clear_event_log(self) -> None:
        """Clear the event log."""
        with self._lock:
            self._event_log.clear()

    def clear_subscribers(self) -> None:
        """Remove all subscribers (useful for testing)."""
        with self._lock:
            self._subscribers.clear()

    def find_events(self, event_type: type[E]) -> list[E]:
        """Logged events of one class, oldest first."""
        return [e for e in self.get_event_log() if type(e) is event_type]

    def last_event(self) -> Optional[Event]:
        """Most recently logged event, if any."""
        log = self.get_event_log()
        return log[-1] if log else None
