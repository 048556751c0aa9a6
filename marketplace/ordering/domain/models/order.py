import uuid

from django.contrib.auth import get_user_model
from django.db import models

from marketplace.catalog.domain.models.listing import Listing
from marketplace.ordering.domain.state_machine import PARTIES, OrderStatus, available_events

User = get_user_model()


class Order(models.Model):
    """
    One buyer's purchase of one listing.

    Amounts are frozen at checkout from a snapshot of the listing: a later
    price change on the listing never touches an existing order. After
    creation the row is only changed through OrderService transitions, which
    bump ``version`` on every write.
    """

    STATUS_CHOICES = OrderStatus.CHOICES

    DELIVERY_METHOD_CHOICES = [
        ("meetup", "Meet-up"),
        ("shipping", "Shipping"),
    ]

    PAYMENT_METHOD_CHOICES = [
        ("wave", "Wave"),
        ("orange_money", "Orange Money"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_number = models.CharField(max_length=40, unique=True)

    # Parties
    buyer = models.ForeignKey(User, on_delete=models.PROTECT, related_name="orders")
    seller = models.ForeignKey(User, on_delete=models.PROTECT, related_name="sales")
    listing = models.ForeignKey(Listing, on_delete=models.SET_NULL, null=True, blank=True, related_name="orders")

    # Snapshots taken at checkout
    buyer_name = models.CharField(max_length=150, blank=True)
    buyer_phone = models.CharField(max_length=30, blank=True)
    seller_name = models.CharField(max_length=150, blank=True)
    article_title = models.CharField(max_length=200)
    article_image = models.URLField(max_length=500, blank=True)

    # Pricing (whole FCFA), immutable after creation
    article_price = models.PositiveIntegerField()
    delivery_fee = models.PositiveIntegerField(default=0)
    commission = models.PositiveIntegerField()
    commission_rate = models.DecimalField(max_digits=5, decimal_places=4)
    total_amount = models.PositiveIntegerField()

    # Order Details
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=OrderStatus.PENDING_PAYMENT)
    delivery_method = models.CharField(max_length=20, choices=DELIVERY_METHOD_CHOICES)
    delivery_address = models.TextField(blank=True)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, default="wave")
    tracking_number = models.CharField(max_length=100, blank=True)

    # Reasons
    cancellation_reason = models.TextField(blank=True)
    cancelled_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="cancelled_orders"
    )
    dispute_reason = models.TextField(blank=True)

    # Stage timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    payment_sent_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    shipped_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    disputed_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Optimistic concurrency token
    version = models.PositiveIntegerField(default=1)

    class Meta:
        ordering = ["-created_at"]
        app_label = "marketplace"
        indexes = [
            models.Index(fields=["status", "created_at"], name="order_status_created_idx"),
            models.Index(fields=["buyer", "status"], name="order_buyer_status_idx"),
            models.Index(fields=["seller", "status"], name="order_seller_status_idx"),
        ]

    def __str__(self):
        return f"Order {self.order_number} ({self.status})"

    @property
    def seller_payout(self) -> int:
        """Amount owed to the seller once the order completes."""
        return self.article_price - self.commission

    @property
    def is_terminal(self) -> bool:
        return self.status in OrderStatus.TERMINAL

    def available_events(self, actors=PARTIES):
        return available_events(self.status, actors)


class OrderTransition(models.Model):
    """Append-only audit trail of order status changes."""

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="transitions")
    event = models.CharField(max_length=30)
    from_status = models.CharField(max_length=20, blank=True)
    to_status = models.CharField(max_length=20)
    actor = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    actor_role = models.CharField(max_length=10)
    note = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]
        app_label = "marketplace"

    def __str__(self):
        return f"{self.order_id}: {self.from_status or '-'} -> {self.to_status} ({self.event})"
