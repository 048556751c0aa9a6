from decimal import Decimal

import pytest
from django.test import override_settings

from marketplace.ordering.domain.services.pricing_service import PricingService, calculate_commission
from marketplace.services.base import ErrorCodes


@pytest.mark.unit
class TestCalculateCommission:
    def test_minimum_commission_applies_to_cheap_articles(self):
        # 8% of 1000 is 80, below the 200 floor
        assert calculate_commission(1000, 0.08, 200) == 200

    def test_rate_applies_above_minimum(self):
        assert calculate_commission(10000, 0.08, 200) == 800

    def test_halves_round_up(self):
        # 10010 * 0.05 = 500.5
        assert calculate_commission(10010, 0.05, 0) == 501

    def test_below_half_rounds_down(self):
        # 10009 * 0.05 = 500.45
        assert calculate_commission(10009, 0.05, 0) == 500

    def test_accepts_decimal_inputs(self):
        assert calculate_commission(Decimal("15000"), Decimal("0.08"), 200) == 1200

    def test_zero_price_pays_minimum(self):
        assert calculate_commission(0, 0.08, 200) == 200

    def test_negative_price_rejected(self):
        with pytest.raises(ValueError):
            calculate_commission(-1, 0.08, 200)


@pytest.mark.unit
class TestPricingServiceUnit:
    def setup_method(self):
        self.service = PricingService()

    def test_commission_rate_by_account_type(self):
        assert self.service.commission_rate_for("individual") == 0.08
        assert self.service.commission_rate_for("business") == 0.05

    def test_unknown_account_type_uses_individual_rate(self):
        assert self.service.commission_rate_for("cooperative") == 0.08

    def test_meetup_is_free(self):
        result = self.service.delivery_fee_for("meetup")
        assert result.ok
        assert result.value == 0

    def test_shipping_flat_fee(self):
        result = self.service.delivery_fee_for("shipping")
        assert result.ok
        assert result.value == 2500

    def test_unknown_delivery_method(self):
        result = self.service.delivery_fee_for("drone")
        assert not result.ok
        assert result.error == ErrorCodes.VALIDATION_ERROR

    def test_breakdown_meetup_individual(self):
        result = self.service.calculate_order_breakdown(15000, "individual", "meetup")

        assert result.ok
        assert result.value == {
            "article_price": 15000,
            "delivery_fee": 0,
            "commission": 1200,
            "commission_rate": 0.08,
            "total_amount": 16200,
            "seller_payout": 13800,
        }

    def test_breakdown_shipping_business(self):
        result = self.service.calculate_order_breakdown(15000, "business", "shipping")

        assert result.ok
        assert result.value["commission"] == 750
        assert result.value["delivery_fee"] == 2500
        assert result.value["total_amount"] == 18250
        assert result.value["seller_payout"] == 14250

    def test_breakdown_total_is_sum_of_parts(self):
        value = self.service.calculate_order_breakdown(2750, "individual", "shipping").value
        assert value["total_amount"] == value["article_price"] + value["delivery_fee"] + value["commission"]

    def test_breakdown_rejects_negative_price(self):
        result = self.service.calculate_order_breakdown(-5, "individual", "meetup")
        assert not result.ok
        assert result.error == ErrorCodes.VALIDATION_ERROR

    @override_settings(
        MARKETPLACE={
            "COMMISSION_RATES": {"individual": 0.1},
            "MIN_COMMISSION": 0,
            "SHIPPING_FEE": 1000,
        }
    )
    def test_reads_configuration_from_settings(self):
        result = self.service.calculate_order_breakdown(5000, "individual", "shipping")
        assert result.value["commission"] == 500
        assert result.value["total_amount"] == 6500
