"""
Dependency Injection Container
================================

Simple service locator for the marketplace domain services and the event bus.
Views ask the container for services instead of constructing them, so tests
can swap implementations in one place.

Usage:
    from infrastructure.container import container

    order_service = container.order_service()
    result = order_service.confirm_payment(order_id, actor=request.user)
"""

import logging
from typing import Optional

from .events import EventBus, get_event_bus

logger = logging.getLogger(__name__)


class ServiceContainer:
    """
    Service container for domain services and infrastructure dependencies.

    Implements lazy initialization and caching of service instances.
    Singleton: every ``ServiceContainer()`` call returns the same object.
    """

    _instance: Optional["ServiceContainer"] = None
    _initialized: bool = False

    def __new__(cls):
        """Ensure only one instance exists (singleton pattern)."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        """Initialize container (only once)."""
        if not self._initialized:
            self._reset_slots()
            self._initialized = True
            logger.info("Service container initialized")

    def _reset_slots(self):
        self._event_bus: Optional[EventBus] = None
        self._inventory_service = None
        self._pricing_service = None
        self._order_service = None
        self._dispute_service = None

    def event_bus(self) -> EventBus:
        """Get the process-wide event bus."""
        if self._event_bus is None:
            self._event_bus = get_event_bus()
            logger.debug(f"Using event bus: {type(self._event_bus).__name__}")
        return self._event_bus

    def inventory_service(self):
        """Get InventoryService instance."""
        if self._inventory_service is None:
            from marketplace.catalog.domain.services.inventory_service import InventoryService

            self._inventory_service = InventoryService()
            logger.debug("Created InventoryService")
        return self._inventory_service

    def pricing_service(self):
        """Get PricingService instance."""
        if self._pricing_service is None:
            from marketplace.ordering.domain.services.pricing_service import PricingService

            self._pricing_service = PricingService()
            logger.debug("Created PricingService")
        return self._pricing_service

    def order_service(self):
        """Get OrderService instance."""
        if self._order_service is None:
            from marketplace.ordering.domain.services.order_service import OrderService

            self._order_service = OrderService(
                inventory_service=self.inventory_service(),
                pricing_service=self.pricing_service(),
                event_bus=self.event_bus(),
            )
            logger.debug("Created OrderService")
        return self._order_service

    def dispute_service(self):
        """Get DisputeService instance."""
        if self._dispute_service is None:
            from marketplace.disputes.domain.services.dispute_service import DisputeService

            self._dispute_service = DisputeService(order_service=self.order_service(), event_bus=self.event_bus())
            logger.debug("Created DisputeService")
        return self._dispute_service

    def reset(self):
        """
        Reset all cached service instances.

        Useful for testing or when switching between environments.
        """
        self._reset_slots()
        logger.info("Service container reset")


# Global singleton instance
container = ServiceContainer()
