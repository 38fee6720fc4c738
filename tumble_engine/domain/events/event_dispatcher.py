# tumble_engine/domain/events/event_dispatcher.py
import logging
from enum import Enum
from typing import Callable, Dict, List

from .event_types import DomainEvent

EventHandler = Callable[[DomainEvent], None]


class EventDispatcher:
    """
    Dispatches domain events to every registered handler.

    Handlers for one event type run synchronously in registration order.
    Registering the same handler twice calls it twice.
    """
    def __init__(self):
        """Initialize the event dispatcher."""
        self.logger = logging.getLogger("domain.events.dispatcher")
        self.handlers: Dict[Enum, List[EventHandler]] = {}  # event_type -> list of handlers

    def register(self, event_type: Enum, handler: EventHandler):
        """
        Register a handler for a specific event type.

        Args:
            event_type: Type of event to handle
            handler: Function to call when event occurs
        """
        self.handlers.setdefault(event_type, []).append(handler)
        self.logger.debug(f"Registered handler for event type: {event_type.name}")

    def dispatch(self, event: DomainEvent):
        """
        Dispatch an event to all registered handlers.

        A handler that raises is logged and skipped; the remaining handlers
        still run.

        Args:
            event: Event to dispatch
        """
        # Copy so handlers may (un)register while being dispatched
        handlers = list(self.handlers.get(event.type, []))

        if not handlers:
            self.logger.debug(f"No handlers registered for event: {event}")
            return

        self.logger.debug(f"Dispatching {event.to_dict()} to {len(handlers)} handlers")

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                self.logger.error(f"Error in event handler for {event.type.name}: {str(e)}", exc_info=True)

    def unregister(self, event_type: Enum, handler: EventHandler) -> bool:
        """
        Unregister a handler for a specific event type.

        Args:
            event_type: Type of event
            handler: Handler function to remove

        Returns:
            True if handler was removed, False if not found
        """
        if event_type in self.handlers and handler in self.handlers[event_type]:
            self.handlers[event_type].remove(handler)
            self.logger.debug(f"Unregistered handler for event type: {event_type.name}")
            return True
        return False

    def handler_count(self, event_type: Enum) -> int:
        return len(self.handlers.get(event_type, []))

    def clear(self):
        """Drop every registered handler."""
        self.handlers.clear()
