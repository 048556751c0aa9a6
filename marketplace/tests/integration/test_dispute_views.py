from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from marketplace.tests.factories import AdminFactory, DisputeFactory, PaidOrderFactory, UserFactory


class DisputeViewIntegrationTest(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.admin_user = AdminFactory()
        self.dispute = DisputeFactory()
        self.buyer = self.dispute.buyer
        self.seller = self.dispute.seller

        self.dispute_list_url = reverse("marketplace:dispute-list")

    def _action_url(self, name, dispute=None):
        return reverse(f"marketplace:dispute-{name}", kwargs={"pk": (dispute or self.dispute).id})

    def test_create_dispute(self):
        order = PaidOrderFactory()
        self.client.force_authenticate(user=order.buyer)

        response = self.client.post(
            self.dispute_list_url,
            {"order_id": str(order.id), "reason": "damaged", "description": "Sleeve torn"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["data"]["reason"], "damaged")
        self.assertEqual(response.data["data"]["messages"], [])
        self.assertIsNone(response.data["data"]["resolution"])

    def test_create_dispute_invalid_reason(self):
        order = PaidOrderFactory()
        self.client.force_authenticate(user=order.buyer)

        response = self.client.post(
            self.dispute_list_url,
            {"order_id": str(order.id), "reason": "bored", "description": "x"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"]["code"], "validation_error")

    def test_party_lists_own_disputes(self):
        DisputeFactory()
        self.client.force_authenticate(user=self.seller)

        response = self.client.get(self.dispute_list_url)

        self.assertEqual([d["id"] for d in response.data["data"]], [str(self.dispute.id)])

    def test_admin_lists_by_state(self):
        resolved = DisputeFactory(status="resolved_seller", resolution_type="seller_favor", resolution_reason="ok")
        self.client.force_authenticate(user=self.admin_user)

        response = self.client.get(self.dispute_list_url, {"state": "open"})
        self.assertEqual([d["id"] for d in response.data["data"]], [str(self.dispute.id)])

        response = self.client.get(self.dispute_list_url, {"state": "resolved"})
        self.assertEqual([d["id"] for d in response.data["data"]], [str(resolved.id)])

        response = self.client.get(self.dispute_list_url)
        self.assertEqual(len(response.data["data"]), 2)

        response = self.client.get(self.dispute_list_url, {"state": "lost"})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_retrieve_forbidden_for_stranger(self):
        self.client.force_authenticate(user=UserFactory())

        response = self.client.get(reverse("marketplace:dispute-detail", kwargs={"pk": self.dispute.id}))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_post_and_read_messages(self):
        self.client.force_authenticate(user=self.buyer)

        response = self.client.post(self._action_url("messages"), {"text": "Any news?"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["data"]["sender_role"], "buyer")

        self.client.force_authenticate(user=self.admin_user)
        self.client.post(self._action_url("messages"), {"text": "Checking with the seller"}, format="json")

        response = self.client.get(self._action_url("messages"))
        self.assertEqual([m["sender_role"] for m in response.data["data"]], ["buyer", "admin"])

    def test_refund_by_admin(self):
        self.client.force_authenticate(user=self.admin_user)

        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(
                self._action_url("refund"),
                {"amount": self.dispute.amount, "reason": "item not received"},
                format="json",
            )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        resolution = response.data["data"]["resolution"]
        self.assertEqual(resolution["type"], "refund")
        self.assertEqual(resolution["amount"], self.dispute.amount)
        self.assertEqual(resolution["reason"], "item not received")

        self.dispute.order.refresh_from_db()
        self.assertEqual(self.dispute.order.status, "cancelled")

    def test_refund_by_party_is_forbidden(self):
        self.client.force_authenticate(user=self.buyer)

        response = self.client.post(self._action_url("refund"), {"amount": 100, "reason": "pay me"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_refund_above_amount_rejected(self):
        self.client.force_authenticate(user=self.admin_user)

        response = self.client.post(
            self._action_url("refund"), {"amount": self.dispute.amount + 1, "reason": "generous"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_resolve_for_seller(self):
        self.client.force_authenticate(user=self.admin_user)

        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(
                self._action_url("resolve-seller"), {"reason": "Signed delivery slip"}, format="json"
            )

        self.assertEqual(response.data["data"]["status"], "resolved_seller")
        self.dispute.order.refresh_from_db()
        self.assertEqual(self.dispute.order.status, "completed")

    def test_resolve_twice_conflicts(self):
        self.client.force_authenticate(user=self.admin_user)
        self.client.post(self._action_url("resolve-buyer"), {"reason": "Courier lost it"}, format="json")

        response = self.client.post(self._action_url("resolve-seller"), {"reason": "Found it"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_update_status(self):
        self.client.force_authenticate(user=self.admin_user)

        response = self.client.post(self._action_url("update-status"), {"status": "investigating"}, format="json")
        self.assertEqual(response.data["data"]["status"], "investigating")

        response = self.client.post(
            self._action_url("update-status"),
            {"status": "resolved_buyer", "resolution": {"reason": "Seller unreachable"}},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["resolution"]["type"], "buyer_favor")
