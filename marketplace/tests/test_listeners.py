from unittest.mock import MagicMock, patch

from django.test import SimpleTestCase

from infrastructure.events import InMemoryEventBus
from marketplace.infra.events.listeners import (
    handle_dispute_resolved,
    handle_order_cancelled,
    handle_order_placed,
    register_marketplace_listeners,
)


class ListenerTests(SimpleTestCase):
    def setUp(self):
        self.order_id = "4f6c1d0e-8a53-4c4e-9a57-2f0d2b0b7c11"

    def _resolved(self, resolution_type, reason="item not received"):
        return {
            "event_type": "dispute.resolved",
            "payload": {
                "dispute_id": "d-1",
                "order_id": self.order_id,
                "resolution_type": resolution_type,
                "amount": 16200 if resolution_type == "refund" else None,
                "reason": reason,
                "resolved_by": "admin-1",
            },
        }

    @patch("marketplace.infra.events.listeners.OrderService")
    def test_refund_settles_for_buyer(self, mock_service_class):
        mock_service = mock_service_class.return_value
        mock_service.settle_for_buyer.return_value = MagicMock(ok=True)

        handle_dispute_resolved(self._resolved("refund"))

        mock_service.settle_for_buyer.assert_called_once_with(self.order_id, "item not received")
        mock_service.settle_for_seller.assert_not_called()

    @patch("marketplace.infra.events.listeners.OrderService")
    def test_buyer_favor_settles_for_buyer(self, mock_service_class):
        mock_service = mock_service_class.return_value
        mock_service.settle_for_buyer.return_value = MagicMock(ok=True)

        handle_dispute_resolved(self._resolved("buyer_favor", "Courier lost it"))

        mock_service.settle_for_buyer.assert_called_once_with(self.order_id, "Courier lost it")

    @patch("marketplace.infra.events.listeners.OrderService")
    def test_seller_favor_settles_for_seller(self, mock_service_class):
        mock_service = mock_service_class.return_value
        mock_service.settle_for_seller.return_value = MagicMock(ok=True)

        handle_dispute_resolved(self._resolved("seller_favor", "Signed receipt"))

        mock_service.settle_for_seller.assert_called_once_with(self.order_id, "Signed receipt")
        mock_service.settle_for_buyer.assert_not_called()

    @patch("marketplace.infra.events.listeners.OrderService")
    def test_unknown_resolution_is_ignored(self, mock_service_class):
        handle_dispute_resolved(self._resolved("coin_flip"))

        mock_service_class.return_value.settle_for_buyer.assert_not_called()
        mock_service_class.return_value.settle_for_seller.assert_not_called()

    @patch("marketplace.infra.events.listeners.OrderService")
    def test_failed_settlement_is_logged(self, mock_service_class):
        mock_service = mock_service_class.return_value
        mock_service.settle_for_buyer.return_value = MagicMock(ok=False, error_detail="already cancelled")

        with self.assertLogs("marketplace.infra.events.listeners", level="ERROR") as logs:
            handle_dispute_resolved(self._resolved("refund"))

        self.assertIn("already cancelled", logs.output[0])

    def test_informational_handlers_tolerate_missing_payload(self):
        handle_order_placed({})
        handle_order_cancelled({"payload": {"order_id": self.order_id}})

    @patch("marketplace.infra.events.listeners.handle_dispute_resolved")
    def test_register_subscribes_handlers(self, mock_handler):
        bus = InMemoryEventBus()

        returned = register_marketplace_listeners(bus)
        bus.publish("dispute.resolved", {"order_id": self.order_id})

        self.assertIs(returned, bus)
        mock_handler.assert_called_once()
        self.assertEqual(mock_handler.call_args[0][0]["payload"], {"order_id": self.order_id})
