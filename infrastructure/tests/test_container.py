"""
Service Container Tests
========================

Unit tests for dependency injection container.
"""

from django.test import SimpleTestCase

from infrastructure.container import ServiceContainer, container
from infrastructure.events import EventBus, get_event_bus
from marketplace.catalog.domain.services.inventory_service import InventoryService
from marketplace.disputes.domain.services.dispute_service import DisputeService
from marketplace.ordering.domain.services.order_service import OrderService
from marketplace.ordering.domain.services.pricing_service import PricingService


class ServiceContainerTest(SimpleTestCase):
    """Test ServiceContainer implementation."""

    def setUp(self):
        """Reset container before each test."""
        container.reset()

    def tearDown(self):
        container.reset()

    def test_container_is_singleton(self):
        """Test that ServiceContainer is a singleton."""
        container1 = ServiceContainer()
        container2 = ServiceContainer()

        self.assertIs(container1, container2)
        self.assertIs(container1, container)

    def test_event_bus_is_process_wide_bus(self):
        bus = container.event_bus()

        self.assertIsInstance(bus, EventBus)
        self.assertIs(bus, get_event_bus())

    def test_services_are_cached(self):
        self.assertIsInstance(container.pricing_service(), PricingService)
        self.assertIsInstance(container.inventory_service(), InventoryService)
        self.assertIs(container.order_service(), container.order_service())

    def test_order_service_wiring(self):
        order_service = container.order_service()

        self.assertIsInstance(order_service, OrderService)
        self.assertIs(order_service.inventory_service, container.inventory_service())
        self.assertIs(order_service.pricing_service, container.pricing_service())
        self.assertIs(order_service.event_bus, container.event_bus())

    def test_dispute_service_shares_order_service(self):
        dispute_service = container.dispute_service()

        self.assertIsInstance(dispute_service, DisputeService)
        self.assertIs(dispute_service.order_service, container.order_service())

    def test_reset_clears_cached_instances(self):
        order_service = container.order_service()

        container.reset()

        self.assertIsNot(container.order_service(), order_service)
