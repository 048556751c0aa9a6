"""
PricingService - Commission and order totals

Computes the platform commission, delivery fee and the amounts frozen on an
order at checkout. All amounts are whole FCFA; intermediate arithmetic uses
Decimal so that rates like 0.08 never introduce float rounding drift.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Union

from django.conf import settings

from marketplace.services.base import BaseService, ErrorCodes, ServiceResult, service_err, service_ok


logger = logging.getLogger(__name__)

DEFAULT_COMMISSION_RATE = 0.08
DEFAULT_MIN_COMMISSION = 200

DELIVERY_MEETUP = "meetup"
DELIVERY_SHIPPING = "shipping"
DELIVERY_METHODS = (DELIVERY_MEETUP, DELIVERY_SHIPPING)


def calculate_commission(
    price: Union[int, Decimal],
    rate: Union[float, Decimal] = DEFAULT_COMMISSION_RATE,
    min_commission: int = DEFAULT_MIN_COMMISSION,
) -> int:
    """
    Platform fee for a sale: ``max(round(price * rate), min_commission)``.

    Halves round up, so 0.5 FCFA becomes 1.

    Args:
        price: Article price in FCFA (non-negative)
        rate: Commission rate, e.g. 0.08 for 8%
        min_commission: Floor applied after rounding

    Returns:
        Commission in whole FCFA

    Raises:
        ValueError: If price is negative

    Example:
        >>> calculate_commission(1000, 0.08, 200)
        200
        >>> calculate_commission(10000, 0.08, 200)
        800
    """
    if price < 0:
        raise ValueError(f"Price must be non-negative, got {price}")

    raw = Decimal(str(price)) * Decimal(str(rate))
    rounded = int(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return max(rounded, int(min_commission))


class PricingService(BaseService):
    """
    Service for commission rates, delivery fees and order breakdowns.

    Reads its constants from ``settings.MARKETPLACE`` on every call so tests
    can change them with ``override_settings``.
    """

    @property
    def config(self) -> Dict:
        return getattr(settings, "MARKETPLACE", {})

    def commission_rate_for(self, account_type: str) -> float:
        """
        Commission rate for a seller account type.

        Unknown account types fall back to the individual rate.
        """
        rates = self.config.get("COMMISSION_RATES", {})
        return rates.get(account_type, rates.get("individual", DEFAULT_COMMISSION_RATE))

    def delivery_fee_for(self, delivery_method: str) -> ServiceResult[int]:
        """
        Delivery fee charged to the buyer.

        Args:
            delivery_method: "meetup" (free hand-over) or "shipping"

        Returns:
            ServiceResult with the fee in FCFA
        """
        if delivery_method == DELIVERY_MEETUP:
            return service_ok(0)
        if delivery_method == DELIVERY_SHIPPING:
            return service_ok(int(self.config.get("SHIPPING_FEE", 2500)))
        return service_err(
            ErrorCodes.VALIDATION_ERROR,
            f"Unknown delivery method '{delivery_method}'. Expected one of {', '.join(DELIVERY_METHODS)}",
        )

    @BaseService.log_performance
    def calculate_order_breakdown(
        self, price: int, account_type: str, delivery_method: str
    ) -> ServiceResult[Dict[str, Union[int, float]]]:
        """
        Compute every amount stored on a new order.

        Args:
            price: Listing price at checkout time
            account_type: Seller's account type ("individual" or "business")
            delivery_method: "meetup" or "shipping"

        Returns:
            ServiceResult with article_price, delivery_fee, commission,
            commission_rate, total_amount and seller_payout

        Example:
            >>> result = pricing_service.calculate_order_breakdown(15000, "individual", "meetup")
            >>> result.value["total_amount"]
            16200
        """
        if price is None or price < 0:
            return service_err(ErrorCodes.VALIDATION_ERROR, f"Invalid article price: {price}")

        fee_result = self.delivery_fee_for(delivery_method)
        if not fee_result.ok:
            return fee_result

        rate = self.commission_rate_for(account_type)
        commission = calculate_commission(
            price, rate, self.config.get("MIN_COMMISSION", DEFAULT_MIN_COMMISSION)
        )
        delivery_fee = fee_result.value

        return service_ok(
            {
                "article_price": int(price),
                "delivery_fee": delivery_fee,
                "commission": commission,
                "commission_rate": rate,
                "total_amount": int(price) + delivery_fee + commission,
                "seller_payout": int(price) - commission,
            }
        )
