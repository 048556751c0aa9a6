from .base import DomainEvent, publish_on_commit
from .dispute_events import DisputeOpenedEvent, DisputeResolvedEvent
from .order_events import OrderCancelledEvent, OrderCompletedEvent, OrderPlacedEvent, OrderStatusChangedEvent


__all__ = [
    "DomainEvent",
    "publish_on_commit",
    "OrderPlacedEvent",
    "OrderStatusChangedEvent",
    "OrderCancelledEvent",
    "OrderCompletedEvent",
    "DisputeOpenedEvent",
    "DisputeResolvedEvent",
]
