from prometheus_client import Counter, Histogram


# Order Metrics
orders_placed_total = Counter("marketplace_orders_placed_total", "Total orders placed", ["status"])
order_value = Histogram(
    "marketplace_order_value_fcfa",
    "Order total amount distribution in FCFA",
    buckets=[1000, 5000, 10000, 25000, 50000, 100000, 250000, 500000, float("inf")],
)
order_transitions_total = Counter(
    "marketplace_order_transitions_total", "Order status transitions attempted", ["event", "outcome"]
)
commission_recognized_total = Counter(
    "marketplace_commission_recognized_fcfa_total", "Commission recognized on completed orders"
)

# Stock Metrics
stock_decrements_total = Counter("marketplace_stock_decrements_total", "Stock decrements", ["outcome"])
listings_sold_out_total = Counter("marketplace_listings_sold_out_total", "Listings whose stock reached zero")

# Dispute Metrics
disputes_opened_total = Counter("marketplace_disputes_opened_total", "Disputes opened", ["reason"])
disputes_resolved_total = Counter("marketplace_disputes_resolved_total", "Disputes resolved", ["resolution"])
