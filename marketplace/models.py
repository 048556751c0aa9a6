from marketplace.catalog.domain.models import Listing
from marketplace.disputes.domain.models import Dispute, DisputeMessage
from marketplace.ordering.domain.models import Order, OrderTransition


__all__ = [
    "Listing",
    "Order",
    "OrderTransition",
    "Dispute",
    "DisputeMessage",
]
