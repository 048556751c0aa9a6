from dataclasses import dataclass

from .base import DomainEvent


@dataclass
class OrderPlacedEvent(DomainEvent):
    """Event: Order placed at checkout."""

    def __init__(self, order_id: str, order_number: str, buyer_id: str, seller_id: str, total_amount: int):
        super().__init__(
            event_type="order.placed",
            payload={
                "order_id": order_id,
                "order_number": order_number,
                "buyer_id": buyer_id,
                "seller_id": seller_id,
                "total_amount": total_amount,
            },
        )


@dataclass
class OrderStatusChangedEvent(DomainEvent):
    """Event: Order moved from one status to another."""

    def __init__(self, order_id: str, event: str, from_status: str, to_status: str, actor_id: str = None):
        super().__init__(
            event_type="order.status_changed",
            payload={
                "order_id": order_id,
                "event": event,
                "from_status": from_status,
                "to_status": to_status,
                "actor_id": actor_id,
            },
        )


@dataclass
class OrderCancelledEvent(DomainEvent):
    """Event: Order cancelled (directly or by dispute settlement)."""

    def __init__(self, order_id: str, reason: str, previous_status: str, actor_id: str = None):
        super().__init__(
            event_type="order.cancelled",
            payload={
                "order_id": order_id,
                "reason": reason,
                "previous_status": previous_status,
                "actor_id": actor_id,
            },
        )


@dataclass
class OrderCompletedEvent(DomainEvent):
    """Event: Order completed; commission is earned and the seller payout is due."""

    def __init__(self, order_id: str, seller_id: str, commission: int, seller_payout: int):
        super().__init__(
            event_type="order.completed",
            payload={
                "order_id": order_id,
                "seller_id": seller_id,
                "commission": commission,
                "seller_payout": seller_payout,
            },
        )
