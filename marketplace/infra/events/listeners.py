import logging

from infrastructure.events import get_event_bus
from marketplace.disputes.domain.models.dispute import ResolutionType
from marketplace.ordering.domain.services.order_service import OrderService


logger = logging.getLogger(__name__)


def handle_order_placed(event_data):
    """Handle order.placed event."""
    payload = event_data.get("payload", {})
    logger.info(
        f"[Marketplace Listener] Order placed: {payload.get('order_number')} "
        f"({payload.get('total_amount')} FCFA), awaiting payment from buyer {payload.get('buyer_id')}"
    )


def handle_order_cancelled(event_data):
    """Handle order.cancelled event."""
    payload = event_data.get("payload", {})
    # Stock taken at checkout is not given back on cancellation
    logger.info(
        f"[Marketplace Listener] Order {payload.get('order_id')} cancelled from "
        f"{payload.get('previous_status')}: {payload.get('reason')}. Listing stock left unchanged."
    )


def handle_order_completed(event_data):
    """Handle order.completed event."""
    payload = event_data.get("payload", {})
    logger.info(
        f"[Marketplace Listener] Order {payload.get('order_id')} completed: "
        f"payout of {payload.get('seller_payout')} FCFA due to seller {payload.get('seller_id')}, "
        f"commission {payload.get('commission')} FCFA earned"
    )


def handle_dispute_resolved(event_data):
    """Handle dispute.resolved event by settling the disputed order."""
    try:
        payload = event_data.get("payload", {})
        order_id = payload.get("order_id")
        resolution_type = payload.get("resolution_type")
        reason = payload.get("reason", "")

        logger.info(f"[Marketplace Listener] Dispute {payload.get('dispute_id')} resolved ({resolution_type})")

        service = OrderService()
        if resolution_type in (ResolutionType.REFUND, ResolutionType.BUYER_FAVOR):
            result = service.settle_for_buyer(order_id, reason)
        elif resolution_type == ResolutionType.SELLER_FAVOR:
            result = service.settle_for_seller(order_id, reason)
        else:
            logger.error(f"Unknown resolution type '{resolution_type}' for order {order_id}")
            return

        if not result.ok:
            logger.error(f"Failed to settle order {order_id} after dispute resolution: {result.error_detail}")
        else:
            logger.info(f"Order {order_id} settled as {result.value.status}")

    except Exception as e:
        logger.error(f"Error handling dispute.resolved event: {e}", exc_info=True)


def register_marketplace_listeners(event_bus=None):
    """Register all marketplace event listeners."""
    event_bus = event_bus or get_event_bus()
    event_bus.subscribe("order.placed", handle_order_placed)
    event_bus.subscribe("order.cancelled", handle_order_cancelled)
    event_bus.subscribe("order.completed", handle_order_completed)
    event_bus.subscribe("dispute.resolved", handle_dispute_resolved)
    logger.info("Marketplace event listeners registered")
    return event_bus
