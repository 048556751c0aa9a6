"""
Event Bus Interface
===================

Abstract contract for publishing domain events between bounded contexts.

Handlers always receive the full envelope::

    {"event_type": "order.placed", "occurred_at": "<iso8601>", "payload": {...}}
"""

from abc import ABC, abstractmethod
from typing import Callable

from django.utils import timezone


EventHandler = Callable[[dict], None]


class EventBus(ABC):
    """Publish/subscribe contract implemented by every event bus backend."""

    @abstractmethod
    def publish(self, event_type: str, payload: dict) -> None:
        """
        Publish an event.

        Implementations must not raise: a failed publish is logged and dropped
        so that it never breaks the business operation that emitted it.

        Args:
            event_type: Dotted event name, e.g. "order.placed"
            payload: JSON-serializable event data
        """

    @abstractmethod
    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """
        Register a handler for an event type.

        Args:
            event_type: Dotted event name
            handler: Callable receiving the event envelope
        """

    @abstractmethod
    def start_listening(self) -> None:
        """Start delivering published events to subscribed handlers."""

    @staticmethod
    def build_envelope(event_type: str, payload: dict) -> dict:
        return {"event_type": event_type, "occurred_at": timezone.now().isoformat(), "payload": payload}
