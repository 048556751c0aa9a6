"""
Marketplace Service Layer

Shared result type and base class for the marketplace domain services.

Services live next to their bounded context:
- marketplace.ordering.domain.services.pricing_service.PricingService
- marketplace.catalog.domain.services.inventory_service.InventoryService
- marketplace.ordering.domain.services.order_service.OrderService
- marketplace.disputes.domain.services.dispute_service.DisputeService

Usage:
    from marketplace.services import ErrorCodes, service_err, service_ok

    result = order_service.create_order(buyer, listing_id, "meetup")

    if result.ok:
        order = result.value
    elif result.error == ErrorCodes.VALIDATION_ERROR:
        ...
"""

from .base import BaseService, ErrorCodes, ServiceResult, service_err, service_ok

__all__ = [
    # Base classes
    "BaseService",
    "ServiceResult",
    # Helper functions
    "service_ok",
    "service_err",
    # Error codes
    "ErrorCodes",
]
