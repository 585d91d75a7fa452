"""
Command and event dispatch for the booking core.

Each command class maps to exactly one handler; ``BookingsConfig.ready``
wires the booking, availability, pricing and payment commands. Domain
events fan out to any number of subscribers once the unit of work that
raised them has committed.
"""

from typing import Any, Callable, Dict, List, Type
import logging

from shared.domain.base import DomainEvent
from shared.domain.exceptions import BookingCoreError

logger = logging.getLogger(__name__)

CommandHandler = Callable[[Any], Any]
EventHandler = Callable[[DomainEvent], None]


class MessageBus:
    def __init__(self):
        self._commands: Dict[Type, CommandHandler] = {}
        self._subscribers: Dict[Type[DomainEvent], List[EventHandler]] = {}

    def register_command_handler(self, command_type: Type, handler: CommandHandler):
        if command_type in self._commands:
            raise ValueError(f"{command_type.__name__} already has a handler")
        self._commands[command_type] = handler

    def has_command_handler(self, command_type: Type) -> bool:
        return command_type in self._commands

    def register_event_handler(self, event_type: Type[DomainEvent], handler: EventHandler):
        self._subscribers.setdefault(event_type, []).append(handler)

    def unregister_event_handler(self, event_type: Type[DomainEvent], handler: EventHandler):
        subscribers = self._subscribers.get(event_type, [])
        if handler in subscribers:
            subscribers.remove(handler)

    def handle_command(self, command: Any) -> Any:
        """
        Run the handler registered for ``type(command)``.

        Booking core errors are business outcomes (room taken, illegal
        transition) and are logged at info; anything else gets a traceback.
        """
        name = type(command).__name__
        handler = self._commands.get(type(command))
        if handler is None:
            raise ValueError(f"{name} has no registered handler")

        try:
            return handler(command)
        except BookingCoreError as e:
            logger.info(f"{name} rejected: {e.code}")
            raise
        except Exception:
            logger.exception(f"{name} failed")
            raise

    def publish_events(self, events: List[DomainEvent]):
        # runs after commit, so one failing subscriber must not starve the rest
        for event in events:
            for handler in self._subscribers.get(type(event), []):
                try:
                    handler(event)
                except Exception:
                    logger.exception(
                        f"Subscriber {getattr(handler, '__name__', handler)} failed on "
                        f"{type(event).__name__} {event.event_id}"
                    )


message_bus = MessageBus()
