import logging
from typing import Callable

from .event_bus_interface import EventBus


logger = logging.getLogger(__name__)


class InMemoryEventBus(EventBus):
    """
    Synchronous, in-process event bus.

    Handlers run on the publishing thread as soon as ``publish`` is called.
    Used by the test settings and by single-process deployments without Redis.
    A handler that raises is logged and the remaining handlers still run.
    """

    def __init__(self):
        self._subscribers = {}
        self.published = []

    def publish(self, event_type: str, payload: dict):
        message = self.build_envelope(event_type, payload)
        self.published.append(message)
        logger.info(f"Published event: {event_type}")

        for handler in list(self._subscribers.get(event_type, [])):
            try:
                handler(message)
            except Exception as e:
                logger.error(f"Handler error for {event_type}: {str(e)}", exc_info=True)

    def subscribe(self, event_type: str, handler: Callable):
        self._subscribers.setdefault(event_type, []).append(handler)
        logger.info(f"Registered handler for event: {event_type}")

    def start_listening(self):
        # Dispatch is synchronous, nothing to start
        return None

    def events_of_type(self, event_type: str) -> list:
        return [m for m in self.published if m["event_type"] == event_type]

    def clear(self):
        self.published.clear()
