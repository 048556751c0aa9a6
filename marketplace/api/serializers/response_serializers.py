"""
Response Serializers for Marketplace API Documentation

These serializers describe the response envelope for OpenAPI schema generation.
They are NOT used for data validation, only for documentation in Swagger/ReDoc.
"""

from rest_framework import serializers

from marketplace.disputes.api.serializers.dispute_serializers import DisputeMessageSerializer, DisputeSerializer
from marketplace.ordering.api.serializers.order_serializers import OrderSerializer, OrderTransitionSerializer

# ===== Common Response Serializers =====


class ErrorDetailSerializer(serializers.Serializer):
    code = serializers.CharField(help_text="Error code identifier, e.g. invalid_transition")
    message = serializers.CharField(help_text="Human-readable error message")


class ErrorResponseSerializer(serializers.Serializer):
    """Standard error response"""

    success = serializers.BooleanField(default=False)
    error = ErrorDetailSerializer()


# ===== Order Response Serializers =====


class OrderResponseSerializer(serializers.Serializer):
    success = serializers.BooleanField(default=True)
    data = OrderSerializer()


class OrderListResponseSerializer(serializers.Serializer):
    success = serializers.BooleanField(default=True)
    data = OrderSerializer(many=True)


class OrderHistoryResponseSerializer(serializers.Serializer):
    success = serializers.BooleanField(default=True)
    data = OrderTransitionSerializer(many=True)


# ===== Dispute Response Serializers =====


class DisputeResponseSerializer(serializers.Serializer):
    success = serializers.BooleanField(default=True)
    data = DisputeSerializer()


class DisputeListResponseSerializer(serializers.Serializer):
    success = serializers.BooleanField(default=True)
    data = DisputeSerializer(many=True)


class DisputeMessageResponseSerializer(serializers.Serializer):
    success = serializers.BooleanField(default=True)
    data = DisputeMessageSerializer()


class DisputeMessageListResponseSerializer(serializers.Serializer):
    success = serializers.BooleanField(default=True)
    data = DisputeMessageSerializer(many=True)
