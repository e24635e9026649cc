from datetime import datetime, timezone

import pytest

from storefront.errors import ValidationError
from storefront.models import Order
from storefront.queries import filter_orders, parse_date, sort_orders


def make_order(number: str, name: str, created: str, status: str = "pending", **extra) -> Order:
    return Order(
        id=number,
        order_number=number,
        product_id="p1",
        customer_name=name,
        customer_phone=extra.pop("phone", "0100"),
        customer_address=extra.pop("address", "Cairo"),
        quantity=1,
        status=status,
        created_at=datetime.fromisoformat(created).replace(tzinfo=timezone.utc),
        **extra,
    )


ORDERS = [
    make_order("ORD-2024-00001", "Mona", "2024-03-01T09:00:00", "pending", address="Giza"),
    make_order("ORD-2024-00002", "adam", "2024-03-02T23:30:00", "delivered", phone="0111 222"),
    make_order("ORD-2024-00003", "Zeinab", "2024-03-03T10:00:00", "assigned"),
]


def ids(orders):
    return [o.id for o in orders]


def test_default_sort_is_newest_first():
    assert ids(sort_orders(ORDERS)) == ["ORD-2024-00003", "ORD-2024-00002", "ORD-2024-00001"]


@pytest.mark.parametrize(
    "sort,expected",
    [
        ("date-asc", ["ORD-2024-00001", "ORD-2024-00002", "ORD-2024-00003"]),
        ("status", ["ORD-2024-00003", "ORD-2024-00002", "ORD-2024-00001"]),
        ("customer", ["ORD-2024-00002", "ORD-2024-00001", "ORD-2024-00003"]),
        ("orderNumber", ["ORD-2024-00001", "ORD-2024-00002", "ORD-2024-00003"]),
    ],
)
def test_named_sort_keys(sort, expected):
    assert ids(sort_orders(list(reversed(ORDERS)), sort)) == expected


def test_search_is_case_insensitive_over_number_name_phone_address():
    assert ids(filter_orders(ORDERS, search="MONA")) == ["ORD-2024-00001"]
    assert ids(filter_orders(ORDERS, search="giza")) == ["ORD-2024-00001"]
    assert ids(filter_orders(ORDERS, search="222")) == ["ORD-2024-00002"]
    assert ids(filter_orders(ORDERS, search="00003")) == ["ORD-2024-00003"]
    assert filter_orders(ORDERS, search="nobody") == []


def test_status_filter():
    assert ids(filter_orders(ORDERS, status="delivered")) == ["ORD-2024-00002"]


def test_date_range_end_is_end_of_day():
    start = parse_date("2024-03-02")
    end = parse_date("2024-03-02", end_of_day=True)
    assert end == datetime(2024, 3, 2, 23, 59, 59, 999000, tzinfo=timezone.utc)
    assert ids(filter_orders(ORDERS, date_from=start, date_to=end)) == ["ORD-2024-00002"]


def test_date_range_is_inclusive_at_start():
    start = parse_date("2024-03-01T09:00:00Z")
    assert ids(filter_orders(ORDERS, date_from=start)) == ids(ORDERS)


def test_invalid_date_is_a_validation_error():
    with pytest.raises(ValidationError):
        parse_date("next tuesday")


def test_empty_date_means_unbounded():
    assert parse_date("") is None
    assert parse_date(None) is None
