# Marketplace API Serializers

# Import response serializers for API documentation
from .response_serializers import (
    DisputeListResponseSerializer,
    DisputeMessageListResponseSerializer,
    DisputeMessageResponseSerializer,
    DisputeResponseSerializer,
    ErrorResponseSerializer,
    OrderHistoryResponseSerializer,
    OrderListResponseSerializer,
    OrderResponseSerializer,
)


__all__ = [
    "DisputeListResponseSerializer",
    "DisputeMessageListResponseSerializer",
    "DisputeMessageResponseSerializer",
    "DisputeResponseSerializer",
    "ErrorResponseSerializer",
    "OrderHistoryResponseSerializer",
    "OrderListResponseSerializer",
    "OrderResponseSerializer",
]
