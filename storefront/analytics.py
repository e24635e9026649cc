"""
Admin dashboard summary over stored orders and products. Read-only.
"""
from collections import Counter, defaultdict
from datetime import datetime, timedelta

from storefront.models import Order, Product, utcnow
from storefront.queries import day_bounds, filter_orders

PERIODS = ("all", "today", "week", "month")
TOP_PRODUCTS_LIMIT = 10
TREND_DAYS = 30
UNKNOWN_PRODUCT_NAME = "غير معروف"


def period_range(
    period: str,
    start: datetime | None = None,
    end: datetime | None = None,
    now: datetime | None = None,
) -> tuple[datetime | None, datetime | None]:
    now = now or utcnow()
    if period == "today":
        return day_bounds(now.date())[0], now
    if period == "week":
        return day_bounds((now - timedelta(days=7)).date())[0], now
    if period == "month":
        return day_bounds((now - timedelta(days=30)).date())[0], now
    return start, end


def unit_price(product: Product) -> float:
    return product.discount_price or product.price


def empty_summary() -> dict:
    return summarize([], [])


def summarize(orders: list[Order], products: list[Product], now: datetime | None = None) -> dict:
    now = now or utcnow()
    by_id = {p.id: p for p in products}

    revenue_total = 0.0
    revenue_by_status: dict[str, float] = defaultdict(float)
    product_quantities: Counter = Counter()
    product_revenue: dict[str, float] = defaultdict(float)
    delivery_men: dict[str, dict] = {}

    for order in orders:
        product = by_id.get(order.product_id)
        value = unit_price(product) * order.quantity if product else 0.0
        revenue_total += value
        revenue_by_status[order.status] += value
        product_quantities[order.product_id] += order.quantity
        product_revenue[order.product_id] += value

        if order.delivery_man_id:
            stats = delivery_men.setdefault(
                order.delivery_man_id, {"totalOrders": 0, "delivered": 0, "inTransit": 0}
            )
            stats["totalOrders"] += 1
            if order.status in ("delivered", "completed"):
                stats["delivered"] += 1
            elif order.status == "in_transit":
                stats["inTransit"] += 1

    daily: dict[str, dict] = {}
    for order in filter_orders(orders, date_from=now - timedelta(days=TREND_DAYS)):
        day = daily.setdefault(order.created_at.date().isoformat(), {"orders": 0, "revenue": 0.0})
        day["orders"] += 1
        product = by_id.get(order.product_id)
        if product:
            day["revenue"] += unit_price(product) * order.quantity

    today_start, _ = day_bounds(now.date())
    top_products = [
        {
            "productId": product_id,
            "name": by_id[product_id].name if product_id in by_id else UNKNOWN_PRODUCT_NAME,
            "orders": quantity,
            "revenue": product_revenue[product_id],
        }
        for product_id, quantity in product_quantities.most_common(TOP_PRODUCTS_LIMIT)
    ]

    return {
        "orders": {
            "total": len(orders),
            "byStatus": dict(Counter(o.status for o in orders)),
            "today": len(filter_orders(orders, date_from=today_start)),
            "thisWeek": len(filter_orders(orders, date_from=now - timedelta(days=7))),
            "thisMonth": len(filter_orders(orders, date_from=now - timedelta(days=30))),
        },
        "products": {"total": len(products)},
        "revenue": {
            "total": revenue_total,
            "byStatus": dict(revenue_by_status),
            "averageOrderValue": revenue_total / len(orders) if orders else 0,
        },
        "topProducts": top_products,
        "deliveryMen": delivery_men,
        "dailyTrends": [{"date": date, **daily[date]} for date in sorted(daily)],
    }
