"""
OrderService - Order Lifecycle Management

Creates orders at checkout and moves them through the manual-payment
lifecycle: payment self-report, operator confirmation, shipping, delivery and
completion, with cancellation and dispute branches.

Each transition:
- checks the acting party may trigger it (buyer, seller, admin, or the
  internal dispute settlement)
- checks the order's current status allows it (see state_machine.TRANSITIONS)
- locks the row and writes with a compare-and-set on ``version``
- records an OrderTransition audit row
- publishes domain events once the transaction commits
"""

import logging
from typing import Callable, Dict, List, Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import F, Q, QuerySet
from django.utils import timezone

from infrastructure.events import get_event_bus
from infrastructure.observability.tracing import get_tracer
from marketplace.catalog.domain.models.listing import Listing
from marketplace.catalog.domain.services.inventory_service import InventoryService
from marketplace.domain.events import (
    OrderCancelledEvent,
    OrderCompletedEvent,
    OrderPlacedEvent,
    OrderStatusChangedEvent,
    publish_on_commit,
)
from marketplace.infra.observability.metrics import (
    commission_recognized_total,
    order_transitions_total,
    order_value,
    orders_placed_total,
)
from marketplace.ordering.domain.models.order import Order, OrderTransition
from marketplace.ordering.domain.order_numbers import generate_order_number
from marketplace.ordering.domain.services.pricing_service import DELIVERY_SHIPPING, PricingService
from marketplace.ordering.domain.state_machine import (
    Actor,
    InvalidTransition,
    OrderEvent,
    OrderStatus,
    resolve_transition,
)
from marketplace.services.base import BaseService, ErrorCodes, ServiceResult, service_err, service_ok
from utils.rbac import is_authenticated, relation_to

User = get_user_model()
logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)


class _AbortOrderCreation(Exception):
    """Rolls back a half-written checkout while carrying the failed result out of the atomic block."""

    def __init__(self, result: ServiceResult):
        self.result = result
        super().__init__(result.error_detail)


class _VersionConflict(Exception):
    pass


def _is_order_number_collision(error: IntegrityError) -> bool:
    # Backends name the column (SQLite) or the constraint (PostgreSQL) in the message
    return "order_number" in str(error)


class OrderService(BaseService):
    """
    Service for managing the order lifecycle.
    """

    def __init__(
        self,
        inventory_service: InventoryService = None,
        pricing_service: PricingService = None,
        event_bus=None,
    ):
        """
        Initialize OrderService.

        Args:
            inventory_service: Service for stock management (injected)
            pricing_service: Service for commission and totals (injected)
            event_bus: Event bus for publishing domain events (injected)
        """
        super().__init__()
        self.inventory_service = inventory_service or InventoryService()
        self.pricing_service = pricing_service or PricingService()
        self.event_bus = event_bus or get_event_bus()

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    @BaseService.log_performance
    def create_order(
        self,
        buyer: User,
        listing_id: str,
        delivery_method: str,
        delivery_address: Optional[str] = None,
    ) -> ServiceResult[Order]:
        """
        Place an order for one unit of a listing.

        Computes delivery fee, commission and total from the listing at this
        instant, assigns a unique order number, stores the order as
        ``pending_payment`` and decrements the listing's stock. The order row
        and the stock change share one transaction.

        Args:
            buyer: Authenticated buyer
            listing_id: UUID of the listing being bought
            delivery_method: "meetup" or "shipping"
            delivery_address: Required for shipping

        Returns:
            ServiceResult with the created Order, or one of
            not_authenticated, listing_not_found, validation_error,
            storage_failure, internal_error

        Example:
            >>> result = order_service.create_order(buyer, listing.id, "meetup")
            >>> result.value.total_amount
            16200
        """
        if not is_authenticated(buyer):
            return service_err(ErrorCodes.NOT_AUTHENTICATED, "You must be signed in to place an order")

        delivery_address = (delivery_address or "").strip()
        if delivery_method == DELIVERY_SHIPPING and not delivery_address:
            return service_err(ErrorCodes.VALIDATION_ERROR, "A delivery address is required for shipping")

        max_attempts = getattr(settings, "MARKETPLACE", {}).get("ORDER_NUMBER_MAX_ATTEMPTS", 5)

        with tracer.start_as_current_span("order.create") as span:
            span.set_attribute("buyer.id", str(buyer.id))
            span.set_attribute("listing.id", str(listing_id))
            span.set_attribute("order.delivery_method", str(delivery_method))

            for attempt in range(1, max_attempts + 1):
                try:
                    result = self._create_order_once(buyer, listing_id, delivery_method, delivery_address)
                except _AbortOrderCreation as e:
                    result = e.result
                except (Listing.DoesNotExist, ValidationError):
                    result = service_err(ErrorCodes.LISTING_NOT_FOUND, f"Listing {listing_id} not found")
                except IntegrityError as e:
                    if _is_order_number_collision(e):
                        self.logger.warning(f"Order number collision on attempt {attempt}/{max_attempts}: {e}")
                        continue
                    span.record_exception(e)
                    result = self.error_from_exception(e, f"creating order for listing {listing_id}")
                except Exception as e:
                    span.record_exception(e)
                    result = self.error_from_exception(e, f"creating order for listing {listing_id}")

                if result.ok:
                    order = result.value
                    orders_placed_total.labels(status="success").inc()
                    order_value.observe(float(order.total_amount))
                    span.set_attribute("order.id", str(order.id))
                    span.set_attribute("order.total", order.total_amount)
                    self.logger.info(
                        f"Created order {order.order_number} for buyer {buyer.id}: "
                        f"listing {listing_id}, total {order.total_amount} FCFA"
                    )
                else:
                    orders_placed_total.labels(status="failure").inc()
                return result

        orders_placed_total.labels(status="failure").inc()
        return service_err(
            ErrorCodes.STORAGE_FAILURE,
            f"Could not allocate a unique order number after {max_attempts} attempts",
        )

    def _create_order_once(
        self, buyer: User, listing_id: str, delivery_method: str, delivery_address: str
    ) -> ServiceResult[Order]:
        with transaction.atomic():
            listing = Listing.objects.select_for_update(of=("self",)).select_related("seller").get(id=listing_id)
            seller = listing.seller

            if seller.pk == buyer.pk:
                return service_err(ErrorCodes.VALIDATION_ERROR, "You cannot buy your own listing")
            if listing.quantity <= 0:
                return service_err(ErrorCodes.VALIDATION_ERROR, f"Listing '{listing.title}' is sold out")

            breakdown_result = self.pricing_service.calculate_order_breakdown(
                listing.price, seller.account_type, delivery_method
            )
            if not breakdown_result.ok:
                return breakdown_result
            breakdown = breakdown_result.value

            payment_method = getattr(settings, "MARKETPLACE", {}).get("PAYMENT_INSTRUCTIONS", {}).get("method", "wave")

            with tracer.start_as_current_span("order.save"):
                order = Order.objects.create(
                    order_number=generate_order_number(),
                    buyer=buyer,
                    seller=seller,
                    listing=listing,
                    buyer_name=buyer.get_display_name(),
                    buyer_phone=buyer.phone,
                    seller_name=listing.seller_name or seller.get_display_name(),
                    article_title=listing.title,
                    article_image=listing.primary_image,
                    article_price=breakdown["article_price"],
                    delivery_fee=breakdown["delivery_fee"],
                    commission=breakdown["commission"],
                    commission_rate=breakdown["commission_rate"],
                    total_amount=breakdown["total_amount"],
                    status=OrderStatus.PENDING_PAYMENT,
                    delivery_method=delivery_method,
                    delivery_address=delivery_address,
                    payment_method=payment_method,
                )
                OrderTransition.objects.create(
                    order=order,
                    event="create",
                    from_status="",
                    to_status=OrderStatus.PENDING_PAYMENT,
                    actor=buyer,
                    actor_role=Actor.BUYER,
                )

            with tracer.start_as_current_span("order.decrement_stock"):
                stock_result = self.inventory_service.decrement_stock(listing.id)
                if not stock_result.ok:
                    raise _AbortOrderCreation(stock_result)

            publish_on_commit(
                self.event_bus,
                OrderPlacedEvent(
                    order_id=str(order.id),
                    order_number=order.order_number,
                    buyer_id=str(buyer.id),
                    seller_id=str(seller.id),
                    total_amount=order.total_amount,
                ),
            )

            return service_ok(order)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def mark_payment_sent(self, order_id: str, actor: User, expected_version: int = None) -> ServiceResult[Order]:
        """Buyer reports having sent the mobile-money transfer (unverified)."""
        return self.transition(order_id, OrderEvent.MARK_PAYMENT_SENT, actor, expected_version=expected_version)

    def confirm_payment(self, order_id: str, actor: User, expected_version: int = None) -> ServiceResult[Order]:
        """Operator confirms the transfer arrived. Admin only; stamps ``paid_at``."""
        return self.transition(order_id, OrderEvent.CONFIRM_PAYMENT, actor, expected_version=expected_version)

    def mark_as_shipped(
        self, order_id: str, actor: User, tracking_number: str = "", expected_version: int = None
    ) -> ServiceResult[Order]:
        """Seller hands the article over for delivery; stores the tracking number."""
        return self.transition(
            order_id,
            OrderEvent.MARK_SHIPPED,
            actor,
            changes={"tracking_number": (tracking_number or "").strip()},
            expected_version=expected_version,
        )

    def mark_as_delivered(self, order_id: str, actor: User, expected_version: int = None) -> ServiceResult[Order]:
        return self.transition(order_id, OrderEvent.MARK_DELIVERED, actor, expected_version=expected_version)

    def complete(self, order_id: str, actor: User, expected_version: int = None) -> ServiceResult[Order]:
        """Buyer confirms receipt. Commission is earned and the seller payout becomes due."""
        return self.transition(order_id, OrderEvent.COMPLETE, actor, expected_version=expected_version)

    def cancel_order(
        self, order_id: str, actor: User, reason: str, expected_version: int = None
    ) -> ServiceResult[Order]:
        """
        Cancel an active order.

        The reason is stored verbatim. Stock is not restored: the unit taken at
        checkout stays consumed.
        """
        if not (reason or "").strip():
            return service_err(ErrorCodes.VALIDATION_ERROR, "A cancellation reason is required")
        return self.transition(
            order_id,
            OrderEvent.CANCEL,
            actor,
            changes={"cancellation_reason": reason, "cancelled_by": actor},
            expected_version=expected_version,
        )

    def open_dispute(
        self, order_id: str, actor: User, reason: str, expected_version: int = None
    ) -> ServiceResult[Order]:
        """
        Flag an active order as disputed.

        A disputed order can no longer be advanced through the normal flow;
        it leaves ``disputed`` only when the dispute is resolved.
        """
        if not (reason or "").strip():
            return service_err(ErrorCodes.VALIDATION_ERROR, "A dispute reason is required")
        return self.transition(
            order_id,
            OrderEvent.OPEN_DISPUTE,
            actor,
            changes={"dispute_reason": reason},
            expected_version=expected_version,
        )

    def settle_for_buyer(self, order_id: str, reason: str = "") -> ServiceResult[Order]:
        """Close a disputed order in the buyer's favour (order becomes cancelled)."""
        return self.transition(
            order_id,
            OrderEvent.SETTLE_FOR_BUYER,
            actor=None,
            system=True,
            changes={"cancellation_reason": reason or "Dispute resolved in favour of the buyer"},
        )

    def settle_for_seller(self, order_id: str, reason: str = "") -> ServiceResult[Order]:
        """Close a disputed order in the seller's favour (order becomes completed)."""
        return self.transition(order_id, OrderEvent.SETTLE_FOR_SELLER, actor=None, system=True, note=reason)

    @BaseService.log_performance
    def transition(
        self,
        order_id: str,
        event: str,
        actor: Optional[User] = None,
        *,
        system: bool = False,
        changes: Optional[Dict] = None,
        note: str = "",
        expected_version: Optional[int] = None,
    ) -> ServiceResult[Order]:
        """
        Apply a state machine event to an order.

        Args:
            order_id: UUID of the order
            event: One of OrderEvent
            actor: User triggering the event (ignored when ``system`` is True)
            system: Internal caller, e.g. dispute settlement
            changes: Extra fields written together with the status
            note: Free text stored on the audit row
            expected_version: Fail with concurrent_modification unless the
                order is still at this version

        Returns:
            ServiceResult with the refreshed Order, or one of
            not_authenticated, order_not_found, permission_denied,
            invalid_transition, concurrent_modification, storage_failure
        """
        if not system and not is_authenticated(actor):
            order_transitions_total.labels(event=event, outcome="not_authenticated").inc()
            return service_err(ErrorCodes.NOT_AUTHENTICATED, "You must be signed in to update an order")

        changes = dict(changes or {})

        try:
            with transaction.atomic():
                order = Order.objects.select_for_update().get(id=order_id)

                role = Actor.SYSTEM if system else relation_to(actor, order.buyer_id, order.seller_id)
                if role is None:
                    order_transitions_total.labels(event=event, outcome="permission_denied").inc()
                    return service_err(ErrorCodes.PERMISSION_DENIED, "You are not a party to this order")

                transition = resolve_transition(order.status, event)
                if role not in transition.allowed_actors:
                    order_transitions_total.labels(event=event, outcome="permission_denied").inc()
                    return service_err(
                        ErrorCodes.PERMISSION_DENIED,
                        f"You are not allowed to {event.replace('_', ' ')} on order {order.order_number}",
                    )

                if expected_version is not None and int(expected_version) != order.version:
                    raise _VersionConflict()

                now = timezone.now()
                values = {"status": transition.target, "version": F("version") + 1, "updated_at": now}
                if transition.timestamp_field:
                    values[transition.timestamp_field] = now
                values.update(changes)

                # Compare-and-set on version; the row lock makes a miss unlikely
                # but databases without SELECT ... FOR UPDATE rely on this check
                updated = Order.objects.filter(pk=order.pk, version=order.version).update(**values)
                if updated != 1:
                    raise _VersionConflict()

                previous_status = order.status
                OrderTransition.objects.create(
                    order=order,
                    event=event,
                    from_status=previous_status,
                    to_status=transition.target,
                    actor=None if system else actor,
                    actor_role=role,
                    note=note or changes.get("cancellation_reason", "") or changes.get("dispute_reason", ""),
                )
                order.refresh_from_db()
                self._publish_transition_events(order, event, previous_status, None if system else actor)

        except (Order.DoesNotExist, ValidationError):
            order_transitions_total.labels(event=event, outcome="not_found").inc()
            return service_err(ErrorCodes.ORDER_NOT_FOUND, f"Order {order_id} does not exist")
        except InvalidTransition as e:
            order_transitions_total.labels(event=event, outcome="invalid_transition").inc()
            return service_err(ErrorCodes.INVALID_TRANSITION, str(e))
        except _VersionConflict:
            order_transitions_total.labels(event=event, outcome="conflict").inc()
            return service_err(
                ErrorCodes.CONCURRENT_MODIFICATION,
                f"Order {order_id} was modified by another request; reload and retry",
            )
        except Exception as e:
            order_transitions_total.labels(event=event, outcome="error").inc()
            return self.error_from_exception(e, f"applying {event} to order {order_id}")

        order_transitions_total.labels(event=event, outcome="success").inc()
        if order.status == OrderStatus.COMPLETED:
            commission_recognized_total.inc(order.commission)

        self.logger.info(f"Order {order.order_number}: {previous_status} -> {order.status} ({event}, by {role})")
        return service_ok(order)

    def _publish_transition_events(self, order: Order, event: str, previous_status: str, actor) -> None:
        actor_id = str(actor.id) if actor is not None else None

        publish_on_commit(
            self.event_bus,
            OrderStatusChangedEvent(
                order_id=str(order.id),
                event=event,
                from_status=previous_status,
                to_status=order.status,
                actor_id=actor_id,
            ),
        )
        if order.status == OrderStatus.CANCELLED:
            publish_on_commit(
                self.event_bus,
                OrderCancelledEvent(
                    order_id=str(order.id),
                    reason=order.cancellation_reason,
                    previous_status=previous_status,
                    actor_id=actor_id,
                ),
            )
        elif order.status == OrderStatus.COMPLETED:
            publish_on_commit(
                self.event_bus,
                OrderCompletedEvent(
                    order_id=str(order.id),
                    seller_id=str(order.seller_id),
                    commission=order.commission,
                    seller_payout=order.seller_payout,
                ),
            )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order_by_id(self, order_id: str, actor: Optional[User] = None) -> ServiceResult[Order]:
        """
        Fetch one order.

        When ``actor`` is given, only the buyer, the seller or an admin may read it.
        """
        try:
            order = Order.objects.select_related("buyer", "seller", "listing").get(id=order_id)
        except (Order.DoesNotExist, ValidationError):
            return service_err(ErrorCodes.ORDER_NOT_FOUND, f"Order {order_id} does not exist")
        except Exception as e:
            return self.error_from_exception(e, f"loading order {order_id}")

        if actor is not None and relation_to(actor, order.buyer_id, order.seller_id) is None:
            return service_err(ErrorCodes.PERMISSION_DENIED, "You are not a party to this order")

        return service_ok(order)

    def get_user_orders(
        self, user_id, narrow: Optional[Callable[[QuerySet], QuerySet]] = None
    ) -> ServiceResult[List[Order]]:
        """
        Orders where the user is either the buyer or the seller, newest first.

        ``narrow`` receives the queryset and may add further filters (the API
        passes its OrderFilter here).
        """
        try:
            queryset = Order.objects.filter(Q(buyer_id=user_id) | Q(seller_id=user_id))
            queryset = queryset.select_related("buyer", "seller")
            if narrow is not None:
                queryset = narrow(queryset)
            return service_ok(list(queryset))
        except ValidationError:
            return service_ok([])
        except Exception as e:
            return self.error_from_exception(e, f"listing orders for user {user_id}")

    def get_pending_confirmation_orders(self) -> ServiceResult[List[Order]]:
        """Orders whose buyer reported a payment that an operator has not confirmed yet, oldest first."""
        try:
            orders = list(
                Order.objects.filter(status=OrderStatus.PAYMENT_CONFIRMING)
                .select_related("buyer", "seller")
                .order_by("payment_sent_at", "created_at")
            )
            return service_ok(orders)
        except Exception as e:
            return self.error_from_exception(e, "listing orders awaiting payment confirmation")

    def get_order_history(self, order_id: str, actor: Optional[User] = None) -> ServiceResult[List[OrderTransition]]:
        """Audit trail of an order's status changes, oldest first."""
        order_result = self.get_order_by_id(order_id, actor=actor)
        if not order_result.ok:
            return order_result
        return service_ok(list(order_result.value.transitions.select_related("actor")))
