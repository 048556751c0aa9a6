"""
Order status state machine.

Every status change an order can undergo is listed in ``TRANSITIONS``. A
transition names the statuses it may start from, the status it leads to, the
timestamp it stamps and which parties may trigger it. Anything not listed is
rejected with InvalidTransition, including any attempt to move an order out of
``disputed`` other than through dispute settlement.

This module has no database access so it can be unit tested in isolation and
reused by serializers to tell clients which actions are currently possible.
"""

from dataclasses import dataclass
from typing import FrozenSet, List, Optional


class OrderStatus:
    PENDING_PAYMENT = "pending_payment"
    PAYMENT_CONFIRMING = "payment_confirming"
    PAID = "paid"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DISPUTED = "disputed"

    CHOICES = [
        (PENDING_PAYMENT, "Pending Payment"),
        (PAYMENT_CONFIRMING, "Payment Confirming"),
        (PAID, "Paid"),
        (SHIPPED, "Shipped"),
        (DELIVERED, "Delivered"),
        (COMPLETED, "Completed"),
        (CANCELLED, "Cancelled"),
        (DISPUTED, "Disputed"),
    ]

    # Statuses from which cancel and open_dispute are possible
    ACTIVE = frozenset({PENDING_PAYMENT, PAYMENT_CONFIRMING, PAID, SHIPPED, DELIVERED})
    TERMINAL = frozenset({COMPLETED, CANCELLED})


class OrderEvent:
    MARK_PAYMENT_SENT = "mark_payment_sent"
    CONFIRM_PAYMENT = "confirm_payment"
    MARK_SHIPPED = "mark_shipped"
    MARK_DELIVERED = "mark_delivered"
    COMPLETE = "complete"
    CANCEL = "cancel"
    OPEN_DISPUTE = "open_dispute"
    SETTLE_FOR_BUYER = "settle_for_buyer"
    SETTLE_FOR_SELLER = "settle_for_seller"


class Actor:
    """Relationship of the acting party to the order."""

    BUYER = "buyer"
    SELLER = "seller"
    ADMIN = "admin"
    # Internal callers such as the dispute settlement listener
    SYSTEM = "system"


PARTIES = frozenset({Actor.BUYER, Actor.SELLER, Actor.ADMIN})


@dataclass(frozen=True)
class Transition:
    event: str
    sources: FrozenSet[str]
    target: str
    allowed_actors: FrozenSet[str]
    timestamp_field: Optional[str] = None

    def allows(self, status: str) -> bool:
        return status in self.sources


class InvalidTransition(Exception):
    """Raised when an event is not allowed from the order's current status."""

    def __init__(self, event: str, status: str):
        self.event = event
        self.status = status
        super().__init__(f"Cannot apply '{event}' to an order in status '{status}'")


TRANSITIONS = {
    t.event: t
    for t in (
        Transition(
            OrderEvent.MARK_PAYMENT_SENT,
            frozenset({OrderStatus.PENDING_PAYMENT}),
            OrderStatus.PAYMENT_CONFIRMING,
            frozenset({Actor.BUYER, Actor.ADMIN}),
            "payment_sent_at",
        ),
        Transition(
            OrderEvent.CONFIRM_PAYMENT,
            frozenset({OrderStatus.PAYMENT_CONFIRMING}),
            OrderStatus.PAID,
            frozenset({Actor.ADMIN}),
            "paid_at",
        ),
        Transition(
            OrderEvent.MARK_SHIPPED,
            frozenset({OrderStatus.PAID}),
            OrderStatus.SHIPPED,
            frozenset({Actor.SELLER, Actor.ADMIN}),
            "shipped_at",
        ),
        Transition(
            OrderEvent.MARK_DELIVERED,
            frozenset({OrderStatus.SHIPPED}),
            OrderStatus.DELIVERED,
            PARTIES,
            "delivered_at",
        ),
        Transition(
            OrderEvent.COMPLETE,
            frozenset({OrderStatus.DELIVERED}),
            OrderStatus.COMPLETED,
            frozenset({Actor.BUYER, Actor.ADMIN}),
            "completed_at",
        ),
        Transition(
            OrderEvent.CANCEL,
            OrderStatus.ACTIVE,
            OrderStatus.CANCELLED,
            PARTIES,
            "cancelled_at",
        ),
        Transition(
            OrderEvent.OPEN_DISPUTE,
            OrderStatus.ACTIVE,
            OrderStatus.DISPUTED,
            PARTIES,
            "disputed_at",
        ),
        Transition(
            OrderEvent.SETTLE_FOR_BUYER,
            frozenset({OrderStatus.DISPUTED}),
            OrderStatus.CANCELLED,
            frozenset({Actor.SYSTEM}),
            "cancelled_at",
        ),
        Transition(
            OrderEvent.SETTLE_FOR_SELLER,
            frozenset({OrderStatus.DISPUTED}),
            OrderStatus.COMPLETED,
            frozenset({Actor.SYSTEM}),
            "completed_at",
        ),
    )
}


def resolve_transition(status: str, event: str) -> Transition:
    """
    Look up the transition for ``event`` and check it applies to ``status``.

    Raises:
        InvalidTransition: If the event is unknown or not allowed from ``status``
    """
    transition = TRANSITIONS.get(event)
    if transition is None or not transition.allows(status):
        raise InvalidTransition(event, status)
    return transition


def can_transition(status: str, event: str) -> bool:
    transition = TRANSITIONS.get(event)
    return transition is not None and transition.allows(status)


def available_events(status: str, actors: FrozenSet[str] = PARTIES) -> List[str]:
    """Events that ``actors`` could trigger on an order currently in ``status``."""
    return [
        t.event for t in TRANSITIONS.values() if t.allows(status) and t.allowed_actors & frozenset(actors)
    ]
