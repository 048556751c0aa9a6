"""
Event Bus Factory
=================

Creates the configured event bus backend and holds the process-wide instance.

Usage:
    # In settings.py
    INFRASTRUCTURE = {"EVENT_BUS_BACKEND": "redis"}  # or "memory"

    # In your code
    event_bus = get_event_bus()
"""

import logging
from typing import Literal, Optional

from django.conf import settings

from .event_bus_interface import EventBus
from .memory_event_bus import InMemoryEventBus
from .redis_event_bus import RedisEventBus


logger = logging.getLogger(__name__)

EventBusBackend = Literal["redis", "memory"]


class EventBusFactory:
    """Factory for creating event bus instances."""

    @staticmethod
    def create(backend: Optional[EventBusBackend] = None) -> EventBus:
        """
        Create an event bus instance.

        Args:
            backend: Event bus backend type ('redis' or 'memory')
                    If None, reads INFRASTRUCTURE["EVENT_BUS_BACKEND"]

        Returns:
            EventBus implementation

        Raises:
            ValueError: If backend type is invalid
        """
        infrastructure = getattr(settings, "INFRASTRUCTURE", {})
        backend_type = backend or infrastructure.get("EVENT_BUS_BACKEND", "redis")

        logger.info(f"Creating event bus backend: {backend_type}")

        if backend_type == "redis":
            return RedisEventBus()
        elif backend_type == "memory":
            return InMemoryEventBus()
        else:
            raise ValueError(f"Invalid event bus backend: {backend_type}. Must be 'redis' or 'memory'")


# Singleton instance
_event_bus_instance: Optional[EventBus] = None


def get_event_bus() -> EventBus:
    """Get singleton event bus instance."""
    global _event_bus_instance
    if _event_bus_instance is None:
        _event_bus_instance = EventBusFactory.create()
    return _event_bus_instance


def reset_event_bus() -> None:
    """Drop the singleton so the next ``get_event_bus`` call rebuilds it from settings."""
    global _event_bus_instance
    _event_bus_instance = None
