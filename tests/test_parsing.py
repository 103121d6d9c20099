import json
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from app.core.exceptions import InvalidOrderError
from app.db.models import OrderStatus
from app.ledger.models import PushEventKind
from app.ledger.parsing import normalize_item, parse_items, parse_order, parse_push_message, to_decimal


def test_item_label_with_quantity():
    item = normalize_item("2x Margherita Pizza")

    assert item.quantity == 2
    assert item.name == "Margherita Pizza"
    assert item.price == Decimal("0")


def test_item_object_without_quantity():
    item = normalize_item({"name": "Salad"})

    assert item.quantity == 1
    assert item.name == "Salad"
    assert item.price == Decimal("0")


def test_item_object_with_bad_fields_is_repaired():
    item = normalize_item({"name": "Soup", "quantity": "lots", "price": "-3"})

    assert item.quantity == 1
    assert item.price == Decimal("0")


def test_items_decoded_from_json_string():
    raw = json.dumps([{"name": "Gyoza", "quantity": 2, "price": 4.5}, "1x Ramen"])

    items = parse_items(raw)

    assert [(i.name, i.quantity, i.price) for i in items] == [
        ("Gyoza", 2, Decimal("4.5")),
        ("Ramen", 1, Decimal("0")),
    ]


def test_items_unknown_shapes():
    assert parse_items(None) == []
    assert parse_items("") == []
    assert parse_items(42) == []
    assert parse_items("3x Tacos")[0].quantity == 3


@pytest.mark.parametrize("value, expected", [
    ("28.75", Decimal("28.75")),
    ("$12.00", Decimal("12.00")),
    (32, Decimal("32")),
    (45.5, Decimal("45.5")),
    ("abc", None),
    ("NaN", None),
    (None, None),
    (True, None),
])
def test_to_decimal(value, expected):
    assert to_decimal(value) == expected


def test_parse_order_from_store_payload():
    order = parse_order({
        "id": 7,
        "customerName": "Mike Chen",
        "tableNumber": 4,
        "items": '["1x Spicy Ramen"]',
        "totalPrice": "28.75",
        "restaurantId": "res-1",
        "status": "pending",
        "createdAt": "2026-10-18T12:00:00Z",
    })

    assert order.id == "7"
    assert order.restaurant_id == "res-1"
    assert order.table_number == "4"
    assert order.items[0].name == "Spicy Ramen"
    assert order.amount == Decimal("28.75")
    assert order.created_at == datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def test_parse_order_defaults():
    order = parse_order({"id": "a1", "items": [{"name": "Tea", "price": "2.50", "quantity": 2}], "total": "n/a"})

    assert order.status == OrderStatus.PENDING
    assert order.display_name == "Guest"
    assert order.total_price is None
    assert order.amount == Decimal("5.00")
    assert order.restaurant_id is None


def test_parse_order_ignores_negative_total():
    order = parse_order({"id": 3, "items": ["2x Soda"], "totalPrice": "-12.00"})

    assert order.total_price is None
    assert order.amount == Decimal("0.00")


def test_parse_order_rejects_invalid_payloads():
    with pytest.raises(InvalidOrderError):
        parse_order({"customerName": "No Id"})
    with pytest.raises(InvalidOrderError):
        parse_order({"id": 1, "status": "cancelled"})
    with pytest.raises(InvalidOrderError):
        parse_order(["not", "an", "order"])


def test_parse_push_message():
    event = parse_push_message(json.dumps({"type": "ORDER_UPDATED", "order": {"id": 3, "status": "completed"}}))

    assert event.kind == PushEventKind.ORDER_UPDATED
    assert event.order.status == OrderStatus.COMPLETED


def test_parse_push_message_rejects_unknown_type():
    with pytest.raises(InvalidOrderError, match="Unknown push message type"):
        parse_push_message({"type": "PING"})
    with pytest.raises(InvalidOrderError):
        parse_push_message("{not json")
    with pytest.raises(InvalidOrderError, match="carries no order"):
        parse_push_message({"type": "NEW_ORDER"})
