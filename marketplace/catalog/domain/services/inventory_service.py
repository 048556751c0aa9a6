"""
InventoryService - Stock Ledger

Tracks per-listing quantity and the derived availability flag. Each
successful checkout decrements the purchased listing exactly once; there is
no restock operation, cancelled orders keep their unit consumed.
"""

import logging

from django.core.exceptions import ValidationError
from django.db import transaction

from marketplace.catalog.domain.models.listing import Listing
from marketplace.infra.observability.metrics import listings_sold_out_total, stock_decrements_total
from marketplace.services.base import BaseService, ErrorCodes, ServiceResult, service_err, service_ok

logger = logging.getLogger(__name__)


class InventoryService(BaseService):
    """
    Service for reading and decrementing listing stock.
    """

    @BaseService.log_performance
    def decrement_stock(self, listing_id: str) -> ServiceResult[dict]:
        """
        Remove one unit from a listing's stock (atomic, row-locked).

        Quantity floors at zero and ``is_available`` is recomputed from the new
        quantity. Call it once per created order: the order service does so
        inside its own transaction so the order row and the stock change
        commit or roll back together.

        Args:
            listing_id: UUID of the listing

        Returns:
            ServiceResult with:
            - listing_id
            - old_quantity
            - new_quantity
            - is_available

        Example:
            >>> result = inventory_service.decrement_stock(listing.id)
            >>> result.value["new_quantity"]
            0
        """
        try:
            with transaction.atomic():
                # Lock the listing row to prevent concurrent decrements
                listing = Listing.objects.select_for_update().get(id=listing_id)

                old_quantity = listing.quantity
                listing.quantity = max(0, old_quantity - 1)
                listing.save(update_fields=["quantity", "is_available", "updated_at"])

        except (Listing.DoesNotExist, ValidationError):
            stock_decrements_total.labels(outcome="not_found").inc()
            return service_err(ErrorCodes.LISTING_NOT_FOUND, f"Listing {listing_id} not found")
        except Exception as e:
            stock_decrements_total.labels(outcome="error").inc()
            return self.error_from_exception(e, f"decrementing stock for listing {listing_id}")

        stock_decrements_total.labels(outcome="success").inc()
        if old_quantity > 0 and listing.quantity == 0:
            listings_sold_out_total.inc()

        self.logger.info(f"Stock decremented: listing={listing_id}, stock: {old_quantity} -> {listing.quantity}")

        return service_ok(
            {
                "listing_id": str(listing.id),
                "old_quantity": old_quantity,
                "new_quantity": listing.quantity,
                "is_available": listing.is_available,
            }
        )

    def get_stock_level(self, listing_id: str) -> ServiceResult[int]:
        """Current quantity for a listing."""
        try:
            listing = Listing.objects.only("id", "quantity").get(id=listing_id)
            return service_ok(listing.quantity)
        except (Listing.DoesNotExist, ValidationError):
            return service_err(ErrorCodes.LISTING_NOT_FOUND, f"Listing {listing_id} not found")
        except Exception as e:
            return self.error_from_exception(e, f"reading stock for listing {listing_id}")

    def is_in_stock(self, listing_id: str) -> ServiceResult[bool]:
        """True when the listing still has at least one unit."""
        return self.get_stock_level(listing_id).map(lambda quantity: quantity > 0)
