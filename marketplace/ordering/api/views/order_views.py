from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated

from infrastructure.container import container
from marketplace.api.responses import result_response, validation_error_response
from marketplace.api.serializers import (
    DisputeResponseSerializer,
    ErrorResponseSerializer,
    OrderHistoryResponseSerializer,
    OrderListResponseSerializer,
    OrderResponseSerializer,
)
from marketplace.disputes.api.serializers.dispute_serializers import (
    DisputeSerializer,
    OpenOrderDisputeRequestSerializer,
)
from marketplace.filters import OrderFilter
from marketplace.models import Order
from marketplace.ordering.api.serializers.order_serializers import (
    CreateOrderRequestSerializer,
    OrderSerializer,
    OrderTransitionSerializer,
    OrderVersionRequestSerializer,
    ReasonRequestSerializer,
    ShipOrderRequestSerializer,
)
from marketplace.ordering.domain.services.order_service import OrderService
from marketplace.services.base import ErrorCodes, service_err
from utils.rbac import is_admin

TRANSITION_RESPONSES = {
    200: OpenApiResponse(response=OrderResponseSerializer, description="Order updated"),
    400: OpenApiResponse(response=ErrorResponseSerializer, description="Invalid request body"),
    403: OpenApiResponse(response=ErrorResponseSerializer, description="Not allowed for this party"),
    404: OpenApiResponse(response=ErrorResponseSerializer, description="Order not found"),
    409: OpenApiResponse(
        response=ErrorResponseSerializer, description="Not allowed from the current status, or order changed"
    ),
}


class OrderViewSet(viewsets.ViewSet):
    permission_classes = [IsAuthenticated]

    def get_service(self) -> OrderService:
        return container.order_service()

    def _order_response(self, request, result, success_status=status.HTTP_200_OK):
        return result_response(result, OrderSerializer, success_status=success_status, context={"request": request})

    def _versioned(self, request, serializer_class=OrderVersionRequestSerializer):
        """Validate an optional-body transition request; returns (data, error_response)."""
        serializer = serializer_class(data=request.data)
        if not serializer.is_valid():
            return None, validation_error_response(serializer.errors)
        return serializer.validated_data, None

    @extend_schema(
        operation_id="orders_list",
        summary="List my orders (as buyer or seller)",
        description="""
        **What it receives:**
        - Authentication token
        - Optional `status` filter
        - Optional `role` filter: `buyer` or `seller`

        **What it returns:**
        - Orders where the user is the buyer or the seller, newest first
        """,
        parameters=[
            OpenApiParameter(name="status", type=str, description="Filter by order status"),
            OpenApiParameter(name="role", type=str, description="buyer or seller"),
        ],
        responses={
            200: OpenApiResponse(response=OrderListResponseSerializer, description="Orders retrieved successfully"),
            400: OpenApiResponse(response=ErrorResponseSerializer, description="Invalid filter"),
        },
        tags=["Marketplace - Orders"],
    )
    def list(self, request):
        filterset = OrderFilter(request.query_params, queryset=Order.objects.none(), request=request)
        if not filterset.is_valid():
            return validation_error_response(filterset.errors)

        result = self.get_service().get_user_orders(request.user.id, narrow=filterset.filter_queryset)
        return result_response(result, OrderSerializer, many=True, context={"request": request})

    @extend_schema(
        operation_id="orders_retrieve",
        summary="Get order details",
        description="""
        **What it receives:**
        - `id` (UUID in URL): Order to retrieve
        - Authentication token (buyer, seller or admin)

        **What it returns:**
        - Full order including amounts, stage timestamps and the actions currently possible
        """,
        responses={
            200: OpenApiResponse(response=OrderResponseSerializer, description="Order retrieved successfully"),
            403: OpenApiResponse(response=ErrorResponseSerializer, description="Not a party to this order"),
            404: OpenApiResponse(response=ErrorResponseSerializer, description="Order not found"),
        },
        tags=["Marketplace - Orders"],
    )
    def retrieve(self, request, pk=None):
        return self._order_response(request, self.get_service().get_order_by_id(pk, actor=request.user))

    @extend_schema(
        operation_id="orders_create",
        summary="Check out a listing",
        description="""
        **What it receives:**
        - `listing_id` (UUID): Listing to buy (one unit)
        - `delivery_method`: `meetup` (free) or `shipping` (flat fee)
        - `delivery_address`: required for shipping
        - Authentication token

        **What it returns:**
        - Created order in `pending_payment` with its order number and total to transfer
        - The listing's stock is decremented by one
        """,
        request=CreateOrderRequestSerializer,
        responses={
            201: OpenApiResponse(response=OrderResponseSerializer, description="Order created successfully"),
            400: OpenApiResponse(response=ErrorResponseSerializer, description="Validation error or sold out"),
            404: OpenApiResponse(response=ErrorResponseSerializer, description="Listing not found"),
            503: OpenApiResponse(response=ErrorResponseSerializer, description="Storage unavailable"),
        },
        tags=["Marketplace - Orders"],
    )
    def create(self, request):
        serializer = CreateOrderRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        data = serializer.validated_data
        result = self.get_service().create_order(
            request.user,
            data["listing_id"],
            data["delivery_method"],
            data.get("delivery_address", ""),
        )
        return self._order_response(request, result, success_status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="orders_payment_sent",
        summary="Buyer reports the payment as sent",
        request=OrderVersionRequestSerializer,
        responses=TRANSITION_RESPONSES,
        tags=["Marketplace - Orders"],
    )
    @action(detail=True, methods=["post"], url_path="payment-sent")
    def payment_sent(self, request, pk=None):
        data, error = self._versioned(request)
        if error:
            return error
        result = self.get_service().mark_payment_sent(pk, request.user, expected_version=data.get("version"))
        return self._order_response(request, result)

    @extend_schema(
        operation_id="orders_confirm_payment",
        summary="Operator confirms the payment was received (admin)",
        request=OrderVersionRequestSerializer,
        responses=TRANSITION_RESPONSES,
        tags=["Marketplace - Orders"],
    )
    @action(detail=True, methods=["post"], url_path="confirm-payment")
    def confirm_payment(self, request, pk=None):
        data, error = self._versioned(request)
        if error:
            return error
        result = self.get_service().confirm_payment(pk, request.user, expected_version=data.get("version"))
        return self._order_response(request, result)

    @extend_schema(
        operation_id="orders_ship",
        summary="Seller marks the order as shipped",
        request=ShipOrderRequestSerializer,
        responses=TRANSITION_RESPONSES,
        tags=["Marketplace - Orders"],
    )
    @action(detail=True, methods=["post"])
    def ship(self, request, pk=None):
        data, error = self._versioned(request, ShipOrderRequestSerializer)
        if error:
            return error
        result = self.get_service().mark_as_shipped(
            pk, request.user, data.get("tracking_number", ""), expected_version=data.get("version")
        )
        return self._order_response(request, result)

    @extend_schema(
        operation_id="orders_deliver",
        summary="Mark the order as delivered",
        request=OrderVersionRequestSerializer,
        responses=TRANSITION_RESPONSES,
        tags=["Marketplace - Orders"],
    )
    @action(detail=True, methods=["post"])
    def deliver(self, request, pk=None):
        data, error = self._versioned(request)
        if error:
            return error
        result = self.get_service().mark_as_delivered(pk, request.user, expected_version=data.get("version"))
        return self._order_response(request, result)

    @extend_schema(
        operation_id="orders_complete",
        summary="Buyer confirms receipt and completes the order",
        request=OrderVersionRequestSerializer,
        responses=TRANSITION_RESPONSES,
        tags=["Marketplace - Orders"],
    )
    @action(detail=True, methods=["post"])
    def complete(self, request, pk=None):
        data, error = self._versioned(request)
        if error:
            return error
        result = self.get_service().complete(pk, request.user, expected_version=data.get("version"))
        return self._order_response(request, result)

    @extend_schema(
        operation_id="orders_cancel",
        summary="Cancel an active order",
        description="""
        **What it receives:**
        - `reason` (string): stored verbatim on the order
        - `version` (int, optional): optimistic concurrency token

        **What it returns:**
        - The cancelled order. Listing stock is not restored.
        """,
        request=ReasonRequestSerializer,
        responses=TRANSITION_RESPONSES,
        tags=["Marketplace - Orders"],
    )
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        data, error = self._versioned(request, ReasonRequestSerializer)
        if error:
            return error
        result = self.get_service().cancel_order(pk, request.user, data["reason"], expected_version=data.get("version"))
        return self._order_response(request, result)

    @extend_schema(
        operation_id="orders_dispute",
        summary="Open a dispute on this order",
        request=OpenOrderDisputeRequestSerializer,
        responses={
            201: OpenApiResponse(response=DisputeResponseSerializer, description="Dispute opened"),
            400: OpenApiResponse(response=ErrorResponseSerializer, description="Invalid request body"),
            403: OpenApiResponse(response=ErrorResponseSerializer, description="Not a party to this order"),
            404: OpenApiResponse(response=ErrorResponseSerializer, description="Order not found"),
            409: OpenApiResponse(response=ErrorResponseSerializer, description="Order cannot be disputed"),
        },
        tags=["Marketplace - Orders"],
    )
    @action(detail=True, methods=["post"])
    def dispute(self, request, pk=None):
        serializer = OpenOrderDisputeRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        data = serializer.validated_data
        result = container.dispute_service().create_dispute(
            request.user, pk, data["reason"], data["description"], data.get("evidence")
        )
        return result_response(
            result, DisputeSerializer, success_status=status.HTTP_201_CREATED, context={"request": request}
        )

    @extend_schema(
        operation_id="orders_history",
        summary="Status change history of an order",
        responses={
            200: OpenApiResponse(response=OrderHistoryResponseSerializer, description="Transitions, oldest first"),
            403: OpenApiResponse(response=ErrorResponseSerializer, description="Not a party to this order"),
            404: OpenApiResponse(response=ErrorResponseSerializer, description="Order not found"),
        },
        tags=["Marketplace - Orders"],
    )
    @action(detail=True, methods=["get"])
    def history(self, request, pk=None):
        result = self.get_service().get_order_history(pk, actor=request.user)
        return result_response(result, OrderTransitionSerializer, many=True, context={"request": request})

    @extend_schema(
        operation_id="orders_pending_confirmation",
        summary="Orders awaiting payment confirmation (admin)",
        description="""
        **What it returns:**
        - Orders whose buyer reported a transfer that no operator has confirmed yet,
          oldest report first, for reconciliation against the payment app
        """,
        responses={
            200: OpenApiResponse(response=OrderListResponseSerializer, description="Orders awaiting confirmation"),
            403: OpenApiResponse(response=ErrorResponseSerializer, description="Admin only"),
        },
        tags=["Marketplace - Orders"],
    )
    @action(detail=False, methods=["get"], url_path="pending-confirmation")
    def pending_confirmation(self, request):
        if not is_admin(request.user):
            return result_response(
                service_err(ErrorCodes.PERMISSION_DENIED, "Only administrators can review pending payments")
            )
        result = self.get_service().get_pending_confirmation_orders()
        return result_response(result, OrderSerializer, many=True, context={"request": request})
