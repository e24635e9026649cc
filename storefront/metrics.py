"""
Prometheus metrics: orders created, status changes, rejected transitions, stock and numbering fallbacks.
"""
from prometheus_client import Counter, generate_latest

orders_created_total = Counter(
    "orders_created_total",
    "Total orders created",
)
orders_deleted_total = Counter(
    "orders_deleted_total",
    "Total orders deleted by an admin",
)
order_status_changes_total = Counter(
    "order_status_changes_total",
    "Total accepted order status changes",
    ["from_status", "to_status", "role"],
)
order_transitions_rejected_total = Counter(
    "order_transitions_rejected_total",
    "Total order updates rejected due to invalid lifecycle transition",
    ["current_status", "attempted_status", "role"],
)
orders_rejected_insufficient_stock_total = Counter(
    "orders_rejected_insufficient_stock_total",
    "Total order creations rejected because the product had too little stock",
)
order_number_fallback_total = Counter(
    "order_number_fallback_total",
    "Total order numbers issued from the timestamp fallback (counter unavailable)",
)


def get_metrics_content_type():
    return "text/plain; charset=utf-8; version=0.0.4"


def get_metrics_bytes():
    return generate_latest()
