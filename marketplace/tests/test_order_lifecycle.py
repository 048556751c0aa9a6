import uuid
from unittest.mock import Mock, patch

from django.contrib.auth.models import AnonymousUser
from django.db import IntegrityError
from django.test import TestCase

from infrastructure.events import InMemoryEventBus
from marketplace.catalog.domain.services.inventory_service import InventoryService
from marketplace.models import Order, OrderTransition
from marketplace.ordering.domain.services.order_service import OrderService
from marketplace.ordering.domain.state_machine import OrderStatus
from marketplace.services.base import ErrorCodes, service_err, service_ok
from marketplace.tests.factories import (
    AdminFactory,
    BusinessSellerFactory,
    ListingFactory,
    OrderFactory,
    PaidOrderFactory,
    SellerFactory,
    UserFactory,
)


class OrderCheckoutTests(TestCase):
    def setUp(self):
        self.event_bus = InMemoryEventBus()
        self.service = OrderService(event_bus=self.event_bus)
        self.buyer = UserFactory(full_name="Awa Ndiaye", phone="+221770000001")
        self.seller = SellerFactory(full_name="Moussa Diop")
        self.listing = ListingFactory(seller=self.seller, price=15000, quantity=1, title="Boubou bazin")

    def test_create_order_meetup(self):
        result = self.service.create_order(self.buyer, self.listing.id, "meetup")

        self.assertTrue(result.ok, result.error_detail)
        order = result.value
        self.assertEqual(order.status, OrderStatus.PENDING_PAYMENT)
        self.assertEqual(order.article_price, 15000)
        self.assertEqual(order.delivery_fee, 0)
        self.assertEqual(order.commission, 1200)
        self.assertEqual(order.total_amount, 16200)
        self.assertEqual(order.seller_payout, 13800)
        self.assertEqual(order.version, 1)
        self.assertTrue(order.order_number.startswith("LM-"))

        # Snapshots
        self.assertEqual(order.buyer_name, "Awa Ndiaye")
        self.assertEqual(order.buyer_phone, "+221770000001")
        self.assertEqual(order.article_title, "Boubou bazin")
        self.assertEqual(order.seller_id, self.seller.id)

        self.listing.refresh_from_db()
        self.assertEqual(self.listing.quantity, 0)
        self.assertFalse(self.listing.is_available)

    def test_create_order_shipping_adds_fee(self):
        result = self.service.create_order(self.buyer, self.listing.id, "shipping", "Rue 10, Médina, Dakar")

        self.assertTrue(result.ok, result.error_detail)
        self.assertEqual(result.value.delivery_fee, 2500)
        self.assertEqual(result.value.total_amount, 18700)
        self.assertEqual(result.value.delivery_address, "Rue 10, Médina, Dakar")

    def test_business_seller_commission(self):
        listing = ListingFactory(seller=BusinessSellerFactory(), price=15000)

        result = self.service.create_order(self.buyer, listing.id, "meetup")

        self.assertEqual(result.value.commission, 750)
        self.assertEqual(result.value.total_amount, 15750)

    def test_shipping_requires_address(self):
        result = self.service.create_order(self.buyer, self.listing.id, "shipping", "  ")

        self.assertEqual(result.error, ErrorCodes.VALIDATION_ERROR)
        self.assertEqual(Order.objects.count(), 0)

    def test_unknown_delivery_method(self):
        result = self.service.create_order(self.buyer, self.listing.id, "drone")

        self.assertEqual(result.error, ErrorCodes.VALIDATION_ERROR)
        self.listing.refresh_from_db()
        self.assertEqual(self.listing.quantity, 1)

    def test_anonymous_buyer(self):
        result = self.service.create_order(AnonymousUser(), self.listing.id, "meetup")
        self.assertEqual(result.error, ErrorCodes.NOT_AUTHENTICATED)

    def test_unknown_listing(self):
        result = self.service.create_order(self.buyer, uuid.uuid4(), "meetup")
        self.assertEqual(result.error, ErrorCodes.LISTING_NOT_FOUND)

    def test_sold_out_listing(self):
        self.service.create_order(self.buyer, self.listing.id, "meetup")

        result = self.service.create_order(UserFactory(), self.listing.id, "meetup")

        self.assertEqual(result.error, ErrorCodes.VALIDATION_ERROR)
        self.assertEqual(Order.objects.count(), 1)

    def test_cannot_buy_own_listing(self):
        result = self.service.create_order(self.seller, self.listing.id, "meetup")
        self.assertEqual(result.error, ErrorCodes.VALIDATION_ERROR)

    def test_stock_decremented_exactly_once(self):
        inventory = Mock(spec=InventoryService)
        inventory.decrement_stock.return_value = service_ok({"new_quantity": 0})
        service = OrderService(inventory_service=inventory, event_bus=self.event_bus)

        result = service.create_order(self.buyer, self.listing.id, "meetup")

        self.assertTrue(result.ok)
        inventory.decrement_stock.assert_called_once_with(self.listing.id)

    def test_failed_stock_decrement_rolls_back_order(self):
        inventory = Mock(spec=InventoryService)
        inventory.decrement_stock.return_value = service_err(ErrorCodes.STORAGE_FAILURE, "store unavailable")
        service = OrderService(inventory_service=inventory, event_bus=self.event_bus)

        result = service.create_order(self.buyer, self.listing.id, "meetup")

        self.assertEqual(result.error, ErrorCodes.STORAGE_FAILURE)
        self.assertEqual(Order.objects.count(), 0)
        self.assertEqual(OrderTransition.objects.count(), 0)

    def test_order_number_collision_retries_with_fresh_number(self):
        existing = OrderFactory()
        self.listing.quantity = 2
        self.listing.save()

        with patch(
            "marketplace.ordering.domain.services.order_service.generate_order_number",
            side_effect=[existing.order_number, "LM-1-ABCDE"],
        ):
            result = self.service.create_order(self.buyer, self.listing.id, "meetup")

        self.assertTrue(result.ok, result.error_detail)
        self.assertEqual(result.value.order_number, "LM-1-ABCDE")
        self.listing.refresh_from_db()
        self.assertEqual(self.listing.quantity, 1)

    def test_order_number_collision_gives_up_after_max_attempts(self):
        existing = OrderFactory()
        self.listing.quantity = 2
        self.listing.save()

        with patch(
            "marketplace.ordering.domain.services.order_service.generate_order_number",
            return_value=existing.order_number,
        ) as generate:
            result = self.service.create_order(self.buyer, self.listing.id, "meetup")

        self.assertEqual(result.error, ErrorCodes.STORAGE_FAILURE)
        self.assertEqual(generate.call_count, 5)
        self.assertEqual(Order.objects.count(), 1)
        self.listing.refresh_from_db()
        self.assertEqual(self.listing.quantity, 2)

    def test_other_integrity_errors_are_not_retried(self):
        with patch.object(
            OrderTransition.objects, "create", side_effect=IntegrityError("FOREIGN KEY constraint failed")
        ) as create_transition:
            result = self.service.create_order(self.buyer, self.listing.id, "meetup")

        self.assertEqual(result.error, ErrorCodes.STORAGE_FAILURE)
        self.assertEqual(create_transition.call_count, 1)
        self.assertEqual(Order.objects.count(), 0)
        self.listing.refresh_from_db()
        self.assertEqual(self.listing.quantity, 1)

    def test_amounts_frozen_after_price_change(self):
        order = self.service.create_order(self.buyer, self.listing.id, "meetup").value

        self.listing.price = 50000
        self.listing.save()
        order.refresh_from_db()

        self.assertEqual(order.article_price, 15000)
        self.assertEqual(order.total_amount, 16200)

    def test_order_placed_event_published_on_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            order = self.service.create_order(self.buyer, self.listing.id, "meetup").value

        events = self.event_bus.events_of_type("order.placed")
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0]["payload"]["order_id"], str(order.id))
        self.assertEqual(events[0]["payload"]["total_amount"], 16200)

    def test_failed_checkout_publishes_nothing(self):
        with self.captureOnCommitCallbacks(execute=True):
            self.service.create_order(self.seller, self.listing.id, "meetup")

        self.assertEqual(self.event_bus.published, [])

    def test_creation_recorded_in_history(self):
        order = self.service.create_order(self.buyer, self.listing.id, "meetup").value

        history = self.service.get_order_history(order.id, actor=self.buyer).value
        self.assertEqual([(t.event, t.to_status) for t in history], [("create", OrderStatus.PENDING_PAYMENT)])


class OrderTransitionTests(TestCase):
    def setUp(self):
        self.event_bus = InMemoryEventBus()
        self.service = OrderService(event_bus=self.event_bus)
        self.buyer = UserFactory()
        self.seller = SellerFactory()
        self.admin = AdminFactory()
        self.listing = ListingFactory(seller=self.seller, price=15000, quantity=1)
        self.order = self.service.create_order(self.buyer, self.listing.id, "meetup").value

    def test_full_lifecycle(self):
        steps = [
            (self.service.mark_payment_sent, self.buyer, OrderStatus.PAYMENT_CONFIRMING),
            (self.service.confirm_payment, self.admin, OrderStatus.PAID),
            (self.service.mark_as_shipped, self.seller, OrderStatus.SHIPPED),
            (self.service.mark_as_delivered, self.buyer, OrderStatus.DELIVERED),
            (self.service.complete, self.buyer, OrderStatus.COMPLETED),
        ]
        for method, actor, expected_status in steps:
            result = method(self.order.id, actor)
            self.assertTrue(result.ok, result.error_detail)
            self.assertEqual(result.value.status, expected_status)

        order = result.value
        self.assertEqual(order.version, 6)
        self.assertLessEqual(order.created_at, order.payment_sent_at)
        self.assertLessEqual(order.payment_sent_at, order.paid_at)
        self.assertLessEqual(order.paid_at, order.shipped_at)
        self.assertLessEqual(order.shipped_at, order.delivered_at)
        self.assertLessEqual(order.delivered_at, order.completed_at)
        self.assertTrue(order.is_terminal)

    def test_tracking_number_stored_on_ship(self):
        order = PaidOrderFactory(buyer=self.buyer, seller=self.seller, listing=self.listing)

        result = self.service.mark_as_shipped(order.id, self.seller, "DHL-778899")

        self.assertEqual(result.value.tracking_number, "DHL-778899")

    def test_buyer_cannot_confirm_own_payment(self):
        self.service.mark_payment_sent(self.order.id, self.buyer)

        result = self.service.confirm_payment(self.order.id, self.buyer)

        self.assertEqual(result.error, ErrorCodes.PERMISSION_DENIED)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.PAYMENT_CONFIRMING)

    def test_seller_cannot_report_payment(self):
        result = self.service.mark_payment_sent(self.order.id, self.seller)
        self.assertEqual(result.error, ErrorCodes.PERMISSION_DENIED)

    def test_buyer_cannot_ship(self):
        order = PaidOrderFactory(buyer=self.buyer, seller=self.seller, listing=self.listing)
        result = self.service.mark_as_shipped(order.id, self.buyer)
        self.assertEqual(result.error, ErrorCodes.PERMISSION_DENIED)

    def test_stranger_is_denied(self):
        result = self.service.mark_payment_sent(self.order.id, UserFactory())
        self.assertEqual(result.error, ErrorCodes.PERMISSION_DENIED)

    def test_stranger_denied_before_status_check(self):
        # A non-party learns nothing about the order's status
        result = self.service.complete(self.order.id, UserFactory())
        self.assertEqual(result.error, ErrorCodes.PERMISSION_DENIED)

    def test_anonymous_actor(self):
        result = self.service.mark_payment_sent(self.order.id, AnonymousUser())
        self.assertEqual(result.error, ErrorCodes.NOT_AUTHENTICATED)

    def test_admin_can_act_for_buyer(self):
        result = self.service.mark_payment_sent(self.order.id, self.admin)
        self.assertTrue(result.ok)

        history = self.service.get_order_history(self.order.id).value
        self.assertEqual(history[-1].actor_role, "admin")

    def test_invalid_transition(self):
        result = self.service.mark_as_shipped(self.order.id, self.seller)

        self.assertEqual(result.error, ErrorCodes.INVALID_TRANSITION)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.PENDING_PAYMENT)
        self.assertEqual(self.order.version, 1)

    def test_unknown_order(self):
        result = self.service.mark_payment_sent(uuid.uuid4(), self.buyer)
        self.assertEqual(result.error, ErrorCodes.ORDER_NOT_FOUND)

    def test_stale_version_rejected(self):
        self.service.mark_payment_sent(self.order.id, self.buyer)

        result = self.service.confirm_payment(self.order.id, self.admin, expected_version=1)

        self.assertEqual(result.error, ErrorCodes.CONCURRENT_MODIFICATION)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.PAYMENT_CONFIRMING)

    def test_matching_version_accepted(self):
        result = self.service.mark_payment_sent(self.order.id, self.buyer, expected_version=1)
        self.assertTrue(result.ok)
        self.assertEqual(result.value.version, 2)

    def test_cancel_keeps_stock_consumed(self):
        result = self.service.cancel_order(self.order.id, self.buyer, "Changed my mind")

        self.assertTrue(result.ok)
        self.assertEqual(result.value.status, OrderStatus.CANCELLED)
        self.assertEqual(result.value.cancellation_reason, "Changed my mind")
        self.assertEqual(result.value.cancelled_by_id, self.buyer.id)
        self.assertIsNotNone(result.value.cancelled_at)

        self.listing.refresh_from_db()
        self.assertEqual(self.listing.quantity, 0)

    def test_cancel_requires_reason(self):
        result = self.service.cancel_order(self.order.id, self.buyer, "   ")
        self.assertEqual(result.error, ErrorCodes.VALIDATION_ERROR)

    def test_cancelled_order_is_terminal(self):
        self.service.cancel_order(self.order.id, self.seller, "Article damaged before hand-over")

        self.assertEqual(
            self.service.mark_payment_sent(self.order.id, self.buyer).error, ErrorCodes.INVALID_TRANSITION
        )
        self.assertEqual(
            self.service.cancel_order(self.order.id, self.buyer, "again").error, ErrorCodes.INVALID_TRANSITION
        )

    def test_completed_order_cannot_be_cancelled(self):
        order = OrderFactory(buyer=self.buyer, seller=self.seller, listing=self.listing, status="completed")
        result = self.service.cancel_order(order.id, self.buyer, "Too late")
        self.assertEqual(result.error, ErrorCodes.INVALID_TRANSITION)

    def test_open_dispute_blocks_normal_flow(self):
        order = PaidOrderFactory(buyer=self.buyer, seller=self.seller, listing=self.listing)

        result = self.service.open_dispute(order.id, self.buyer, "not_received")
        self.assertEqual(result.value.status, OrderStatus.DISPUTED)
        self.assertEqual(result.value.dispute_reason, "not_received")

        self.assertEqual(self.service.mark_as_shipped(order.id, self.seller).error, ErrorCodes.INVALID_TRANSITION)
        self.assertEqual(
            self.service.cancel_order(order.id, self.buyer, "give up").error, ErrorCodes.INVALID_TRANSITION
        )

    def test_settlement_for_buyer_cancels(self):
        self.service.open_dispute(self.order.id, self.buyer, "fake")

        result = self.service.settle_for_buyer(self.order.id, "Refund approved")

        self.assertEqual(result.value.status, OrderStatus.CANCELLED)
        self.assertEqual(result.value.cancellation_reason, "Refund approved")
        history = self.service.get_order_history(self.order.id).value
        self.assertEqual(history[-1].actor_role, "system")
        self.assertIsNone(history[-1].actor)

    def test_settlement_for_seller_completes(self):
        self.service.open_dispute(self.order.id, self.seller, "communication")

        result = self.service.settle_for_seller(self.order.id, "Delivery proven")

        self.assertEqual(result.value.status, OrderStatus.COMPLETED)
        self.assertIsNotNone(result.value.completed_at)

    def test_settlement_requires_dispute(self):
        result = self.service.settle_for_seller(self.order.id)
        self.assertEqual(result.error, ErrorCodes.INVALID_TRANSITION)

    def test_status_changes_publish_events(self):
        with self.captureOnCommitCallbacks(execute=True):
            self.service.cancel_order(self.order.id, self.buyer, "Found it cheaper")

        changed = self.event_bus.events_of_type("order.status_changed")
        self.assertEqual(len(changed), 1)
        self.assertEqual(changed[0]["payload"]["from_status"], OrderStatus.PENDING_PAYMENT)
        self.assertEqual(changed[0]["payload"]["to_status"], OrderStatus.CANCELLED)

        cancelled = self.event_bus.events_of_type("order.cancelled")
        self.assertEqual(cancelled[0]["payload"]["reason"], "Found it cheaper")

    def test_rejected_transition_publishes_nothing(self):
        self.event_bus.clear()
        with self.captureOnCommitCallbacks(execute=True):
            self.service.confirm_payment(self.order.id, self.buyer)

        self.assertEqual(self.event_bus.published, [])


class OrderQueryTests(TestCase):
    def setUp(self):
        self.service = OrderService(event_bus=InMemoryEventBus())
        self.buyer = UserFactory()
        self.seller = SellerFactory()
        self.admin = AdminFactory()

    def test_pending_confirmation_queue(self):
        first = self.service.create_order(self.buyer, ListingFactory(seller=self.seller).id, "meetup").value
        second = self.service.create_order(self.buyer, ListingFactory(seller=self.seller).id, "meetup").value
        self.service.create_order(self.buyer, ListingFactory(seller=self.seller).id, "meetup")

        self.service.mark_payment_sent(first.id, self.buyer)
        self.service.mark_payment_sent(second.id, self.buyer)

        pending = self.service.get_pending_confirmation_orders().value
        self.assertEqual([o.id for o in pending], [first.id, second.id])

        self.service.confirm_payment(first.id, self.admin)
        self.service.confirm_payment(second.id, self.admin)

        self.assertEqual(self.service.get_pending_confirmation_orders().value, [])

    def test_user_orders_include_purchases_and_sales(self):
        bought = OrderFactory(buyer=self.buyer)
        sold = OrderFactory(listing=ListingFactory(seller=self.buyer))
        OrderFactory()

        orders = self.service.get_user_orders(self.buyer.id).value

        self.assertEqual({o.id for o in orders}, {bought.id, sold.id})

    def test_get_order_restricted_to_parties(self):
        order = OrderFactory(buyer=self.buyer, listing=ListingFactory(seller=self.seller))

        self.assertTrue(self.service.get_order_by_id(order.id, actor=self.buyer).ok)
        self.assertTrue(self.service.get_order_by_id(order.id, actor=self.seller).ok)
        self.assertTrue(self.service.get_order_by_id(order.id, actor=self.admin).ok)
        self.assertEqual(
            self.service.get_order_by_id(order.id, actor=UserFactory()).error, ErrorCodes.PERMISSION_DENIED
        )

    def test_malformed_order_id(self):
        self.assertEqual(self.service.get_order_by_id("nope").error, ErrorCodes.ORDER_NOT_FOUND)
