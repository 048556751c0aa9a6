"""
DisputeService - Dispute Resolution

Opens disputes against active orders, keeps the message thread and records
the admin's decision. Opening a dispute moves the order to ``disputed`` in the
same transaction. Resolving it publishes ``dispute.resolved``, which the
marketplace listener turns into the matching order settlement (refund and
buyer-favoured outcomes cancel the order, seller-favoured ones complete it).
"""

import logging
from typing import Dict, List, Optional

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from infrastructure.events import get_event_bus
from infrastructure.observability.tracing import get_tracer
from marketplace.disputes.domain.models.dispute import Dispute, DisputeMessage, DisputeStatus, ResolutionType
from marketplace.domain.events import DisputeOpenedEvent, DisputeResolvedEvent, publish_on_commit
from marketplace.infra.observability.metrics import disputes_opened_total, disputes_resolved_total
from marketplace.ordering.domain.models.order import Order
from marketplace.ordering.domain.services.order_service import OrderService
from marketplace.services.base import BaseService, ErrorCodes, ServiceResult, service_err, service_ok
from utils.rbac import is_admin, is_authenticated, relation_to

User = get_user_model()
logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)

DISPUTE_REASONS = frozenset(code for code, _ in Dispute.REASON_CHOICES)
DISPUTE_STATUSES = frozenset(code for code, _ in DisputeStatus.CHOICES)


class _VersionConflict(Exception):
    pass


class DisputeService(BaseService):
    """
    Service for the dispute lifecycle.
    """

    def __init__(self, order_service: OrderService = None, event_bus=None):
        """
        Initialize DisputeService.

        Args:
            order_service: Used to move the order to ``disputed`` (injected)
            event_bus: Event bus for publishing domain events (injected)
        """
        super().__init__()
        self.event_bus = event_bus or get_event_bus()
        self.order_service = order_service or OrderService(event_bus=self.event_bus)

    @BaseService.log_performance
    def create_dispute(
        self,
        actor: User,
        order_id: str,
        reason: str,
        description: str,
        evidence: Optional[List[str]] = None,
    ) -> ServiceResult[Dispute]:
        """
        Open a dispute on an active order.

        Args:
            actor: Buyer or seller of the order, or an admin
            order_id: UUID of the disputed order
            reason: One of Dispute.REASON_CHOICES
            description: What went wrong, in the claimant's words
            evidence: Ordered attachment references (URLs)

        Returns:
            ServiceResult with the new Dispute (status ``open``, no messages)
        """
        if not is_authenticated(actor):
            return service_err(ErrorCodes.NOT_AUTHENTICATED, "You must be signed in to open a dispute")
        if reason not in DISPUTE_REASONS:
            return service_err(
                ErrorCodes.VALIDATION_ERROR,
                f"Invalid dispute reason '{reason}'. Expected one of {', '.join(sorted(DISPUTE_REASONS))}",
            )
        if not (description or "").strip():
            return service_err(ErrorCodes.VALIDATION_ERROR, "A description of the problem is required")
        evidence = list(evidence or [])
        if not all(isinstance(item, str) and item.strip() for item in evidence):
            return service_err(ErrorCodes.VALIDATION_ERROR, "Evidence must be a list of attachment references")

        try:
            with transaction.atomic():
                order = Order.objects.select_for_update().get(id=order_id)
                if relation_to(actor, order.buyer_id, order.seller_id) is None:
                    return service_err(ErrorCodes.PERMISSION_DENIED, "You are not a party to this order")

                order_result = self.order_service.open_dispute(order.id, actor, reason)
                if not order_result.ok:
                    return order_result

                dispute = Dispute.objects.create(
                    order=order,
                    order_number=order.order_number,
                    article_id=order.listing_id,
                    article_title=order.article_title,
                    buyer_id=order.buyer_id,
                    buyer_name=order.buyer_name,
                    seller_id=order.seller_id,
                    seller_name=order.seller_name,
                    amount=order.total_amount,
                    reason=reason,
                    description=description.strip(),
                    evidence=evidence,
                    opened_by=actor,
                    status=DisputeStatus.OPEN,
                )

                publish_on_commit(
                    self.event_bus,
                    DisputeOpenedEvent(
                        dispute_id=str(dispute.id),
                        order_id=str(order.id),
                        reason=reason,
                        opened_by=str(actor.id),
                    ),
                )
        except (Order.DoesNotExist, ValidationError):
            return service_err(ErrorCodes.ORDER_NOT_FOUND, f"Order {order_id} does not exist")
        except Exception as e:
            return self.error_from_exception(e, f"opening dispute on order {order_id}")

        disputes_opened_total.labels(reason=reason).inc()
        self.logger.info(f"Dispute {dispute.id} opened on order {dispute.order_number} ({reason}) by {actor.id}")
        return service_ok(dispute)

    @BaseService.log_performance
    def add_dispute_message(self, actor: User, dispute_id: str, text: str) -> ServiceResult[DisputeMessage]:
        """
        Append a message to the dispute thread. The dispute status is unchanged.

        Args:
            actor: Buyer, seller or admin
            dispute_id: UUID of the dispute
            text: Message body

        Returns:
            ServiceResult with the created DisputeMessage
        """
        if not is_authenticated(actor):
            return service_err(ErrorCodes.NOT_AUTHENTICATED, "You must be signed in to post a message")
        if not (text or "").strip():
            return service_err(ErrorCodes.VALIDATION_ERROR, "Message text cannot be empty")

        try:
            dispute = Dispute.objects.get(id=dispute_id)
            sender_role = relation_to(actor, dispute.buyer_id, dispute.seller_id)
            if sender_role is None:
                return service_err(ErrorCodes.PERMISSION_DENIED, "You are not a party to this dispute")

            message = DisputeMessage.objects.create(
                dispute=dispute,
                sender=actor,
                sender_name=actor.get_display_name(),
                sender_role=sender_role,
                text=text.strip(),
            )
        except (Dispute.DoesNotExist, ValidationError):
            return service_err(ErrorCodes.DISPUTE_NOT_FOUND, f"Dispute {dispute_id} does not exist")
        except Exception as e:
            return self.error_from_exception(e, f"adding message to dispute {dispute_id}")

        return service_ok(message)

    @BaseService.log_performance
    def update_dispute_status(
        self, actor: User, dispute_id: str, status: str, resolution: Optional[Dict] = None
    ) -> ServiceResult[Dispute]:
        """
        Move a dispute to a new status. Admin only.

        Resolved statuses require a resolution ``{"reason": str, "amount": int}``
        (amount only for refunds, at most the disputed amount) and stamp
        ``resolved_at``, ``resolved_by`` and the decision time. ``open`` and
        ``investigating`` leave the resolution fields empty; ``closed`` keeps
        the earlier resolution.

        Returns:
            ServiceResult with the updated Dispute, or one of
            not_authenticated, permission_denied, validation_error,
            dispute_not_found, invalid_transition, concurrent_modification
        """
        if not is_authenticated(actor):
            return service_err(ErrorCodes.NOT_AUTHENTICATED, "You must be signed in to update a dispute")
        if not is_admin(actor):
            return service_err(ErrorCodes.PERMISSION_DENIED, "Only administrators can update dispute status")
        if status not in DISPUTE_STATUSES:
            return service_err(ErrorCodes.VALIDATION_ERROR, f"Unknown dispute status '{status}'")
        if resolution is not None and status not in DisputeStatus.RESOLVED:
            return service_err(ErrorCodes.VALIDATION_ERROR, f"A resolution cannot be recorded with status '{status}'")

        with tracer.start_as_current_span("dispute.update_status") as span:
            span.set_attribute("dispute.id", str(dispute_id))
            span.set_attribute("dispute.status", status)

            try:
                with transaction.atomic():
                    dispute = Dispute.objects.select_for_update().get(id=dispute_id)
                    previous_status = dispute.status

                    if status not in DisputeStatus.TRANSITIONS[previous_status]:
                        return service_err(
                            ErrorCodes.INVALID_TRANSITION,
                            f"Cannot move a dispute from '{previous_status}' to '{status}'",
                        )

                    now = timezone.now()
                    values = {"status": status, "version": F("version") + 1, "updated_at": now}

                    if status in DisputeStatus.RESOLVED:
                        resolution_result = self._validate_resolution(dispute, status, resolution)
                        if not resolution_result.ok:
                            return resolution_result
                        values.update(resolution_result.value)
                        values.update(resolution_decided_at=now, resolved_at=now, resolved_by=actor)

                    updated = Dispute.objects.filter(pk=dispute.pk, version=dispute.version).update(**values)
                    if updated != 1:
                        raise _VersionConflict()
                    dispute.refresh_from_db()

                    if status in DisputeStatus.RESOLVED:
                        publish_on_commit(
                            self.event_bus,
                            DisputeResolvedEvent(
                                dispute_id=str(dispute.id),
                                order_id=str(dispute.order_id),
                                resolution_type=dispute.resolution_type,
                                reason=dispute.resolution_reason,
                                resolved_by=str(actor.id),
                                amount=dispute.resolution_amount,
                            ),
                        )
            except (Dispute.DoesNotExist, ValidationError):
                return service_err(ErrorCodes.DISPUTE_NOT_FOUND, f"Dispute {dispute_id} does not exist")
            except _VersionConflict:
                return service_err(
                    ErrorCodes.CONCURRENT_MODIFICATION,
                    f"Dispute {dispute_id} was modified by another request; reload and retry",
                )
            except Exception as e:
                span.record_exception(e)
                return self.error_from_exception(e, f"updating dispute {dispute_id}")

        if status in DisputeStatus.RESOLVED:
            disputes_resolved_total.labels(resolution=dispute.resolution_type).inc()

        self.logger.info(f"Dispute {dispute.id}: {previous_status} -> {status} by {actor.id}")
        return service_ok(dispute)

    def _validate_resolution(self, dispute: Dispute, status: str, resolution: Optional[Dict]) -> ServiceResult[Dict]:
        expected_type = ResolutionType.FOR_STATUS[status]
        resolution = resolution or {}

        resolution_type = resolution.get("type") or expected_type
        if resolution_type != expected_type:
            return service_err(
                ErrorCodes.VALIDATION_ERROR,
                f"Resolution type '{resolution_type}' does not match status '{status}'",
            )

        reason = (resolution.get("reason") or "").strip()
        if not reason:
            return service_err(ErrorCodes.VALIDATION_ERROR, "A resolution reason is required")

        amount = None
        if resolution_type == ResolutionType.REFUND:
            amount = resolution.get("amount")
            if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
                return service_err(ErrorCodes.VALIDATION_ERROR, "A refund needs a positive whole amount")
            if amount > dispute.amount:
                return service_err(
                    ErrorCodes.VALIDATION_ERROR,
                    f"Refund of {amount} exceeds the disputed amount of {dispute.amount}",
                )

        return service_ok(
            {"resolution_type": resolution_type, "resolution_amount": amount, "resolution_reason": reason}
        )

    def resolve_with_refund(self, actor: User, dispute_id: str, amount: int, reason: str) -> ServiceResult[Dispute]:
        return self.update_dispute_status(
            actor,
            dispute_id,
            DisputeStatus.RESOLVED_REFUND,
            {"type": ResolutionType.REFUND, "amount": amount, "reason": reason},
        )

    def resolve_for_buyer(self, actor: User, dispute_id: str, reason: str) -> ServiceResult[Dispute]:
        return self.update_dispute_status(
            actor, dispute_id, DisputeStatus.RESOLVED_BUYER, {"type": ResolutionType.BUYER_FAVOR, "reason": reason}
        )

    def resolve_for_seller(self, actor: User, dispute_id: str, reason: str) -> ServiceResult[Dispute]:
        return self.update_dispute_status(
            actor, dispute_id, DisputeStatus.RESOLVED_SELLER, {"type": ResolutionType.SELLER_FAVOR, "reason": reason}
        )

    # Queries

    def get_open_disputes(self) -> ServiceResult[List[Dispute]]:
        """Disputes still awaiting a decision (open or investigating)."""
        try:
            return service_ok(list(Dispute.objects.filter(status__in=DisputeStatus.UNRESOLVED)))
        except Exception as e:
            return self.error_from_exception(e, "listing open disputes")

    def get_resolved_disputes(self) -> ServiceResult[List[Dispute]]:
        try:
            return service_ok(list(Dispute.objects.exclude(status__in=DisputeStatus.UNRESOLVED)))
        except Exception as e:
            return self.error_from_exception(e, "listing resolved disputes")

    def get_dispute_by_id(self, dispute_id: str, actor: Optional[User] = None) -> ServiceResult[Dispute]:
        """Fetch one dispute; with ``actor``, only its parties and admins may read it."""
        try:
            dispute = Dispute.objects.prefetch_related("messages").get(id=dispute_id)
        except (Dispute.DoesNotExist, ValidationError):
            return service_err(ErrorCodes.DISPUTE_NOT_FOUND, f"Dispute {dispute_id} does not exist")
        except Exception as e:
            return self.error_from_exception(e, f"loading dispute {dispute_id}")

        if actor is not None and relation_to(actor, dispute.buyer_id, dispute.seller_id) is None:
            return service_err(ErrorCodes.PERMISSION_DENIED, "You are not a party to this dispute")
        return service_ok(dispute)

    def get_disputes_for_order(self, order_id: str) -> ServiceResult[List[Dispute]]:
        try:
            return service_ok(list(Dispute.objects.filter(order_id=order_id)))
        except ValidationError:
            return service_err(ErrorCodes.ORDER_NOT_FOUND, f"Order {order_id} does not exist")
        except Exception as e:
            return self.error_from_exception(e, f"listing disputes for order {order_id}")

    def get_user_disputes(self, user_id) -> ServiceResult[List[Dispute]]:
        """Disputes where the user is the buyer or the seller."""
        try:
            return service_ok(list(Dispute.objects.filter(Q(buyer_id=user_id) | Q(seller_id=user_id))))
        except ValidationError:
            return service_ok([])
        except Exception as e:
            return self.error_from_exception(e, f"listing disputes for user {user_id}")
