"""
Read-only filtering and sorting for the admin and delivery order lists.
"""
from datetime import date, datetime, time, timezone

from storefront.errors import ValidationError
from storefront.models import Order

SORT_KEYS = ("date-desc", "date-asc", "status", "customer", "orderNumber")

_END_OF_DAY = time(23, 59, 59, 999000)


def parse_date(value: str | None, end_of_day: bool = False) -> datetime | None:
    """Parse YYYY-MM-DD or an ISO timestamp. Naive values are taken as UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"Invalid date: {value}", date=value)
    if end_of_day:
        parsed = parsed.replace(hour=23, minute=59, second=59, microsecond=999000)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def day_bounds(day: date) -> tuple[datetime, datetime]:
    return (
        datetime.combine(day, time.min, tzinfo=timezone.utc),
        datetime.combine(day, _END_OF_DAY, tzinfo=timezone.utc),
    )


def matches_search(order: Order, search: str) -> bool:
    needle = search.lower()
    haystack = (order.order_number, order.customer_name, order.customer_phone, order.customer_address)
    return any(needle in (field or "").lower() for field in haystack)


def filter_orders(
    orders: list[Order],
    search: str | None = None,
    status: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> list[Order]:
    result = []
    for order in orders:
        if search and not matches_search(order, search):
            continue
        if status and order.status != status:
            continue
        if date_from and order.created_at < date_from:
            continue
        if date_to and order.created_at > date_to:
            continue
        result.append(order)
    return result


def sort_orders(orders: list[Order], sort: str | None = None) -> list[Order]:
    if sort == "date-asc":
        return sorted(orders, key=lambda o: o.created_at)
    if sort == "status":
        return sorted(orders, key=lambda o: o.status)
    if sort == "customer":
        return sorted(orders, key=lambda o: o.customer_name.lower())
    if sort == "orderNumber":
        return sorted(orders, key=lambda o: o.order_number)
    return sorted(orders, key=lambda o: o.created_at, reverse=True)
