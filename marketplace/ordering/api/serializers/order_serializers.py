from rest_framework import serializers

from marketplace.ordering.domain.models.order import Order, OrderTransition
from marketplace.ordering.domain.services.pricing_service import DELIVERY_METHODS
from utils.rbac import relation_to


class OrderSerializer(serializers.ModelSerializer):
    seller_payout = serializers.IntegerField(read_only=True)
    available_actions = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "buyer",
            "buyer_name",
            "buyer_phone",
            "seller",
            "seller_name",
            "listing",
            "article_title",
            "article_image",
            "article_price",
            "delivery_fee",
            "commission",
            "commission_rate",
            "total_amount",
            "seller_payout",
            "status",
            "delivery_method",
            "delivery_address",
            "payment_method",
            "tracking_number",
            "cancellation_reason",
            "dispute_reason",
            "created_at",
            "payment_sent_at",
            "paid_at",
            "shipped_at",
            "delivered_at",
            "completed_at",
            "cancelled_at",
            "disputed_at",
            "version",
            "available_actions",
        ]
        read_only_fields = fields

    def get_available_actions(self, obj):
        request = self.context.get("request")
        if request is None:
            return obj.available_events()
        # Only the actions the caller may trigger
        role = relation_to(request.user, obj.buyer_id, obj.seller_id)
        return obj.available_events(frozenset({role}) if role else frozenset())


class OrderTransitionSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderTransition
        fields = ["event", "from_status", "to_status", "actor", "actor_role", "note", "created_at"]
        read_only_fields = fields


# ===== Request bodies =====


class CreateOrderRequestSerializer(serializers.Serializer):
    """Request body for checking out a listing"""

    listing_id = serializers.UUIDField(help_text="Listing to buy (one unit)")
    delivery_method = serializers.ChoiceField(choices=DELIVERY_METHODS, help_text="meetup or shipping")
    delivery_address = serializers.CharField(
        required=False, allow_blank=True, help_text="Required when delivery_method is shipping"
    )


class OrderVersionRequestSerializer(serializers.Serializer):
    """Optional optimistic concurrency token for any order transition"""

    version = serializers.IntegerField(
        required=False, min_value=1, help_text="Reject the update if the order changed since this version"
    )


class ShipOrderRequestSerializer(OrderVersionRequestSerializer):
    tracking_number = serializers.CharField(required=False, allow_blank=True, max_length=100)


class ReasonRequestSerializer(OrderVersionRequestSerializer):
    reason = serializers.CharField(trim_whitespace=False, help_text="Free-text reason, stored verbatim")
