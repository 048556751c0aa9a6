import uuid

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

User = get_user_model()


class Listing(models.Model):
    """
    An article offered for sale.

    ``is_available`` is derived from ``quantity`` and kept in sync on every
    save; stock only ever goes down through InventoryService.decrement_stock.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)

    # Whole FCFA
    price = models.PositiveIntegerField(validators=[MinValueValidator(1)])

    # Inventory
    quantity = models.PositiveIntegerField(default=1)
    initial_quantity = models.PositiveIntegerField(default=1)
    is_available = models.BooleanField(default=True)

    # Seller and snapshot shown on the listing card
    seller = models.ForeignKey(User, on_delete=models.CASCADE, related_name="listings")
    seller_name = models.CharField(max_length=150, blank=True)
    seller_city = models.CharField(max_length=100, blank=True)

    images = models.JSONField(default=list, blank=True, help_text="Ordered list of image URLs")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        app_label = "marketplace"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["seller", "is_available"], name="listing_seller_avail_idx"),
        ]

    def __str__(self):
        return f"{self.title} ({self.price} FCFA)"

    def save(self, *args, **kwargs):
        self.is_available = self.quantity > 0
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "quantity" in update_fields and "is_available" not in update_fields:
            kwargs["update_fields"] = list(update_fields) + ["is_available"]
        super().save(*args, **kwargs)

    @property
    def primary_image(self) -> str:
        return self.images[0] if self.images else ""

    @classmethod
    def publish(cls, seller, title: str, price: int, quantity: int = 1, **extra) -> "Listing":
        """
        Create a listing with its stock counters initialised.

        Raises:
            ValidationError: If price is outside MARKETPLACE["PRICE_LIMITS"] or quantity < 1
        """
        limits = getattr(settings, "MARKETPLACE", {}).get("PRICE_LIMITS", {})
        min_price = limits.get("min", 1)
        max_price = limits.get("max")
        if price < min_price or (max_price is not None and price > max_price):
            raise ValidationError(f"Price must be between {min_price} and {max_price} FCFA")
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        return cls.objects.create(
            seller=seller,
            title=title,
            price=price,
            quantity=quantity,
            initial_quantity=quantity,
            seller_name=extra.pop("seller_name", "") or seller.get_display_name(),
            seller_city=extra.pop("seller_city", "") or getattr(seller, "city", ""),
            **extra,
        )
