import uuid

from django.contrib.auth import get_user_model
from django.db import models

from marketplace.ordering.domain.models.order import Order

User = get_user_model()


class DisputeStatus:
    OPEN = "open"
    INVESTIGATING = "investigating"
    RESOLVED_REFUND = "resolved_refund"
    RESOLVED_BUYER = "resolved_buyer"
    RESOLVED_SELLER = "resolved_seller"
    CLOSED = "closed"

    CHOICES = [
        (OPEN, "Open"),
        (INVESTIGATING, "Investigating"),
        (RESOLVED_REFUND, "Resolved - Refund"),
        (RESOLVED_BUYER, "Resolved - Buyer favoured"),
        (RESOLVED_SELLER, "Resolved - Seller favoured"),
        (CLOSED, "Closed"),
    ]

    UNRESOLVED = frozenset({OPEN, INVESTIGATING})
    RESOLVED = frozenset({RESOLVED_REFUND, RESOLVED_BUYER, RESOLVED_SELLER})

    # Allowed next statuses
    TRANSITIONS = {
        OPEN: frozenset({INVESTIGATING}) | RESOLVED,
        INVESTIGATING: RESOLVED,
        RESOLVED_REFUND: frozenset({CLOSED}),
        RESOLVED_BUYER: frozenset({CLOSED}),
        RESOLVED_SELLER: frozenset({CLOSED}),
        CLOSED: frozenset(),
    }


class ResolutionType:
    REFUND = "refund"
    BUYER_FAVOR = "buyer_favor"
    SELLER_FAVOR = "seller_favor"

    CHOICES = [
        (REFUND, "Refund"),
        (BUYER_FAVOR, "Buyer favoured"),
        (SELLER_FAVOR, "Seller favoured"),
    ]

    FOR_STATUS = {
        DisputeStatus.RESOLVED_REFUND: REFUND,
        DisputeStatus.RESOLVED_BUYER: BUYER_FAVOR,
        DisputeStatus.RESOLVED_SELLER: SELLER_FAVOR,
    }


class Dispute(models.Model):
    """
    A claim raised against an order.

    Order, article and party details are copied at creation so the dispute
    reads the same even if the order changes later. Messages are append-only
    and resolution fields are written once, when an admin settles the dispute.
    """

    REASON_CHOICES = [
        ("not_received", "Item not received"),
        ("not_as_described", "Item not as described"),
        ("damaged", "Item damaged"),
        ("fake", "Counterfeit item"),
        ("communication", "Seller unresponsive"),
        ("other", "Other"),
    ]

    STATUS_CHOICES = DisputeStatus.CHOICES

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, on_delete=models.PROTECT, related_name="disputes")

    # Snapshot of the order at opening time
    order_number = models.CharField(max_length=40)
    article_id = models.UUIDField(null=True, blank=True)
    article_title = models.CharField(max_length=200)
    buyer = models.ForeignKey(User, on_delete=models.PROTECT, related_name="disputes_as_buyer")
    buyer_name = models.CharField(max_length=150, blank=True)
    seller = models.ForeignKey(User, on_delete=models.PROTECT, related_name="disputes_as_seller")
    seller_name = models.CharField(max_length=150, blank=True)
    amount = models.PositiveIntegerField(help_text="Order total at opening time, in FCFA")

    # Claim
    reason = models.CharField(max_length=30, choices=REASON_CHOICES)
    description = models.TextField()
    evidence = models.JSONField(default=list, blank=True, help_text="Ordered list of attachment references")
    opened_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name="opened_disputes")

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=DisputeStatus.OPEN)

    # Resolution
    resolution_type = models.CharField(max_length=20, choices=ResolutionType.CHOICES, blank=True)
    resolution_amount = models.PositiveIntegerField(null=True, blank=True)
    resolution_reason = models.TextField(blank=True)
    resolution_decided_at = models.DateTimeField(null=True, blank=True)
    resolved_at = models.DateTimeField(null=True, blank=True)
    resolved_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="resolved_disputes"
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    version = models.PositiveIntegerField(default=1)

    class Meta:
        ordering = ["-created_at"]
        app_label = "marketplace"
        indexes = [
            models.Index(fields=["status", "created_at"], name="dispute_status_created_idx"),
        ]

    def __str__(self):
        return f"Dispute on {self.order_number} ({self.status})"

    @property
    def resolution(self):
        """Resolution as ``{type, amount?, reason, decided_at}``, or None while unresolved."""
        if not self.resolution_type:
            return None
        resolution = {
            "type": self.resolution_type,
            "reason": self.resolution_reason,
            "decided_at": self.resolution_decided_at,
        }
        if self.resolution_type == ResolutionType.REFUND:
            resolution["amount"] = self.resolution_amount
        return resolution


class DisputeMessage(models.Model):
    """Append-only message in a dispute thread."""

    SENDER_ROLE_CHOICES = [
        ("buyer", "Buyer"),
        ("seller", "Seller"),
        ("admin", "Admin"),
    ]

    dispute = models.ForeignKey(Dispute, on_delete=models.CASCADE, related_name="messages")
    sender = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name="dispute_messages")
    sender_name = models.CharField(max_length=150, blank=True)
    sender_role = models.CharField(max_length=10, choices=SENDER_ROLE_CHOICES)
    text = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]
        app_label = "marketplace"

    def __str__(self):
        return f"{self.sender_role} on {self.dispute_id}"
