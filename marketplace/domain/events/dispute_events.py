from dataclasses import dataclass
from typing import Optional

from .base import DomainEvent


@dataclass
class DisputeOpenedEvent(DomainEvent):
    """Event: Dispute opened against an order."""

    def __init__(self, dispute_id: str, order_id: str, reason: str, opened_by: str):
        super().__init__(
            event_type="dispute.opened",
            payload={
                "dispute_id": dispute_id,
                "order_id": order_id,
                "reason": reason,
                "opened_by": opened_by,
            },
        )


@dataclass
class DisputeResolvedEvent(DomainEvent):
    """Event: Dispute reached a resolution; the linked order must be settled."""

    def __init__(
        self,
        dispute_id: str,
        order_id: str,
        resolution_type: str,
        reason: str,
        resolved_by: str,
        amount: Optional[int] = None,
    ):
        super().__init__(
            event_type="dispute.resolved",
            payload={
                "dispute_id": dispute_id,
                "order_id": order_id,
                "resolution_type": resolution_type,
                "amount": amount,
                "reason": reason,
                "resolved_by": resolved_by,
            },
        )
