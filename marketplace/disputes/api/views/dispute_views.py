from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated

from infrastructure.container import container
from marketplace.api.responses import result_response, validation_error_response
from marketplace.api.serializers import (
    DisputeListResponseSerializer,
    DisputeMessageListResponseSerializer,
    DisputeMessageResponseSerializer,
    DisputeResponseSerializer,
    ErrorResponseSerializer,
)
from marketplace.disputes.api.serializers.dispute_serializers import (
    CreateDisputeRequestSerializer,
    DisputeMessageRequestSerializer,
    DisputeMessageSerializer,
    DisputeSerializer,
    DisputeStatusRequestSerializer,
    RefundRequestSerializer,
    ResolutionReasonRequestSerializer,
)
from marketplace.disputes.domain.services.dispute_service import DisputeService
from marketplace.services.base import ErrorCodes, service_err, service_ok
from utils.rbac import is_admin

RESOLUTION_RESPONSES = {
    200: OpenApiResponse(response=DisputeResponseSerializer, description="Dispute resolved"),
    400: OpenApiResponse(response=ErrorResponseSerializer, description="Invalid resolution"),
    403: OpenApiResponse(response=ErrorResponseSerializer, description="Admin only"),
    404: OpenApiResponse(response=ErrorResponseSerializer, description="Dispute not found"),
    409: OpenApiResponse(response=ErrorResponseSerializer, description="Dispute already resolved"),
}


class DisputeViewSet(viewsets.ViewSet):
    permission_classes = [IsAuthenticated]

    def get_service(self) -> DisputeService:
        return container.dispute_service()

    def _dispute_response(self, request, result, success_status=status.HTTP_200_OK):
        return result_response(result, DisputeSerializer, success_status=success_status, context={"request": request})

    @extend_schema(
        operation_id="disputes_list",
        summary="List disputes",
        description="""
        **What it receives:**
        - Authentication token
        - Optional `state` (admins only): `open` or `resolved`

        **What it returns:**
        - Admins: every dispute, or the open/resolved queue when `state` is given
        - Other users: disputes on orders where they are the buyer or the seller
        """,
        parameters=[OpenApiParameter(name="state", type=str, description="open or resolved (admin only)")],
        responses={
            200: OpenApiResponse(response=DisputeListResponseSerializer, description="Disputes retrieved"),
            400: OpenApiResponse(response=ErrorResponseSerializer, description="Unknown state filter"),
        },
        tags=["Marketplace - Disputes"],
    )
    def list(self, request):
        service = self.get_service()
        if not is_admin(request.user):
            result = service.get_user_disputes(request.user.id)
            return result_response(result, DisputeSerializer, many=True, context={"request": request})

        state = request.query_params.get("state")
        if state == "open":
            result = service.get_open_disputes()
        elif state == "resolved":
            result = service.get_resolved_disputes()
        elif state:
            result = service_err(ErrorCodes.VALIDATION_ERROR, f"Unknown state '{state}'. Expected open or resolved")
        else:
            result = service.get_open_disputes().flat_map(
                lambda unresolved: service.get_resolved_disputes().map(lambda resolved: unresolved + resolved)
            )
        return result_response(result, DisputeSerializer, many=True, context={"request": request})

    @extend_schema(
        operation_id="disputes_retrieve",
        summary="Get dispute details",
        description="""
        **What it receives:**
        - `id` (UUID in URL)
        - Authentication token (buyer, seller or admin)

        **What it returns:**
        - The dispute with its order snapshot, resolution and message thread
        """,
        responses={
            200: OpenApiResponse(response=DisputeResponseSerializer, description="Dispute retrieved"),
            403: OpenApiResponse(response=ErrorResponseSerializer, description="Not a party to this dispute"),
            404: OpenApiResponse(response=ErrorResponseSerializer, description="Dispute not found"),
        },
        tags=["Marketplace - Disputes"],
    )
    def retrieve(self, request, pk=None):
        return self._dispute_response(request, self.get_service().get_dispute_by_id(pk, actor=request.user))

    @extend_schema(
        operation_id="disputes_create",
        summary="Open a dispute",
        description="""
        **What it receives:**
        - `order_id` (UUID): Disputed order, which must still be active
        - `reason`: not_received, not_as_described, damaged, fake, communication or other
        - `description` (string)
        - `evidence` (list of attachment URLs, optional)

        **What it returns:**
        - The new dispute in `open`; the order moves to `disputed`
        """,
        request=CreateDisputeRequestSerializer,
        responses={
            201: OpenApiResponse(response=DisputeResponseSerializer, description="Dispute opened"),
            400: OpenApiResponse(response=ErrorResponseSerializer, description="Invalid request body"),
            403: OpenApiResponse(response=ErrorResponseSerializer, description="Not a party to this order"),
            404: OpenApiResponse(response=ErrorResponseSerializer, description="Order not found"),
            409: OpenApiResponse(response=ErrorResponseSerializer, description="Order cannot be disputed"),
        },
        tags=["Marketplace - Disputes"],
    )
    def create(self, request):
        serializer = CreateDisputeRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        data = serializer.validated_data
        result = self.get_service().create_dispute(
            request.user, data["order_id"], data["reason"], data["description"], data.get("evidence")
        )
        return self._dispute_response(request, result, success_status=status.HTTP_201_CREATED)

    @extend_schema(
        methods=["GET"],
        operation_id="disputes_messages_list",
        summary="Read the dispute conversation",
        responses={
            200: OpenApiResponse(response=DisputeMessageListResponseSerializer, description="Messages, oldest first"),
            403: OpenApiResponse(response=ErrorResponseSerializer, description="Not a party to this dispute"),
            404: OpenApiResponse(response=ErrorResponseSerializer, description="Dispute not found"),
        },
        tags=["Marketplace - Disputes"],
    )
    @extend_schema(
        methods=["POST"],
        operation_id="disputes_messages_create",
        summary="Post a message on the dispute",
        request=DisputeMessageRequestSerializer,
        responses={
            201: OpenApiResponse(response=DisputeMessageResponseSerializer, description="Message added"),
            400: OpenApiResponse(response=ErrorResponseSerializer, description="Empty message"),
            403: OpenApiResponse(response=ErrorResponseSerializer, description="Not a party to this dispute"),
            404: OpenApiResponse(response=ErrorResponseSerializer, description="Dispute not found"),
        },
        tags=["Marketplace - Disputes"],
    )
    @action(detail=True, methods=["get", "post"])
    def messages(self, request, pk=None):
        service = self.get_service()
        if request.method == "GET":
            result = service.get_dispute_by_id(pk, actor=request.user)
            if result.ok:
                result = service_ok(list(result.value.messages.all()))
            return result_response(result, DisputeMessageSerializer, many=True, context={"request": request})

        serializer = DisputeMessageRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        result = service.add_dispute_message(request.user, pk, serializer.validated_data["text"])
        return result_response(
            result, DisputeMessageSerializer, success_status=status.HTTP_201_CREATED, context={"request": request}
        )

    @extend_schema(
        operation_id="disputes_update_status",
        summary="Move a dispute to a new status (admin)",
        description="""
        **What it receives:**
        - `status`: open, investigating, resolved_refund, resolved_buyer, resolved_seller or closed
        - `resolution` (required for resolved statuses): `{"reason": str, "amount": int}`,
          `amount` only for refunds and at most the disputed amount

        **What it returns:**
        - The updated dispute. Resolving also settles the order in the background.
        """,
        request=DisputeStatusRequestSerializer,
        responses=RESOLUTION_RESPONSES,
        tags=["Marketplace - Disputes"],
    )
    @action(detail=True, methods=["post"], url_path="status")
    def update_status(self, request, pk=None):
        serializer = DisputeStatusRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        data = serializer.validated_data
        resolution = dict(data["resolution"]) if data.get("resolution") else None
        result = self.get_service().update_dispute_status(request.user, pk, data["status"], resolution)
        return self._dispute_response(request, result)

    @extend_schema(
        operation_id="disputes_refund",
        summary="Resolve with a refund to the buyer (admin)",
        request=RefundRequestSerializer,
        responses=RESOLUTION_RESPONSES,
        tags=["Marketplace - Disputes"],
    )
    @action(detail=True, methods=["post"])
    def refund(self, request, pk=None):
        serializer = RefundRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        data = serializer.validated_data
        result = self.get_service().resolve_with_refund(request.user, pk, data["amount"], data["reason"])
        return self._dispute_response(request, result)

    @extend_schema(
        operation_id="disputes_resolve_buyer",
        summary="Resolve in the buyer's favour (admin)",
        request=ResolutionReasonRequestSerializer,
        responses=RESOLUTION_RESPONSES,
        tags=["Marketplace - Disputes"],
    )
    @action(detail=True, methods=["post"], url_path="resolve-buyer")
    def resolve_buyer(self, request, pk=None):
        serializer = ResolutionReasonRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        result = self.get_service().resolve_for_buyer(request.user, pk, serializer.validated_data["reason"])
        return self._dispute_response(request, result)

    @extend_schema(
        operation_id="disputes_resolve_seller",
        summary="Resolve in the seller's favour (admin)",
        request=ResolutionReasonRequestSerializer,
        responses=RESOLUTION_RESPONSES,
        tags=["Marketplace - Disputes"],
    )
    @action(detail=True, methods=["post"], url_path="resolve-seller")
    def resolve_seller(self, request, pk=None):
        serializer = ResolutionReasonRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        result = self.get_service().resolve_for_seller(request.user, pk, serializer.validated_data["reason"])
        return self._dispute_response(request, result)
