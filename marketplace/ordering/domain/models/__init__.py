from .order import Order, OrderTransition


__all__ = [
    "Order",
    "OrderTransition",
]
