"""
Normalization of order payloads coming from the store or the push channel.

Upstream data is loosely shaped: items arrive as JSON-encoded strings,
"2x Margherita Pizza" labels or objects with missing fields, and amounts as
numbers or strings. Everything is turned into the canonical ledger models
here, once, so the ledger itself only ever sees clean `Order` objects.
"""
import json
import logging
import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional

from pydantic import TypeAdapter, ValidationError

from app.core.exceptions import InvalidOrderError
from app.db.models import OrderStatus
from app.ledger.models import LineItem, Order, PushEvent, PushEventKind

logger = logging.getLogger(__name__)

ITEM_LABEL = re.compile(r"^(\d+)\s*x\s+(.+)$", re.IGNORECASE)
DEFAULT_ITEM_NAME = "Item"

_datetime_adapter = TypeAdapter(datetime)


def _first(data: dict, *keys):
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def to_decimal(value: Any) -> Optional[Decimal]:
    """Best-effort amount parsing; None for anything that is not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().lstrip("$").replace(",", "")
        if not value:
            return None
    try:
        amount = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount


def _to_quantity(value: Any) -> int:
    if isinstance(value, bool):
        return 1
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        return 1
    return quantity if quantity >= 1 else 1


def normalize_item(raw: Any) -> LineItem:
    if isinstance(raw, LineItem):
        return raw

    if isinstance(raw, str):
        label = raw.strip()
        match = ITEM_LABEL.match(label)
        if match:
            return LineItem(name=match.group(2).strip(), quantity=int(match.group(1)) or 1)
        return LineItem(name=label or DEFAULT_ITEM_NAME)

    if isinstance(raw, dict):
        name = _first(raw, "name", "title", "productName", "item")
        price = to_decimal(_first(raw, "price", "unitPrice", "priceAtPurchase"))
        return LineItem(
            name=str(name) if name not in (None, "") else DEFAULT_ITEM_NAME,
            quantity=_to_quantity(_first(raw, "quantity", "qty")),
            price=price if price is not None and price >= 0 else Decimal("0"),
        )

    return LineItem(name=str(raw) if raw is not None else DEFAULT_ITEM_NAME)


def parse_items(raw: Any) -> List[LineItem]:
    if raw is None:
        return []

    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return []
        try:
            raw = json.loads(text)
        except ValueError:
            # A bare label such as "2x Margherita Pizza"
            return [normalize_item(text)]

    if isinstance(raw, dict):
        return [normalize_item(raw)]
    if isinstance(raw, (list, tuple)):
        return [normalize_item(item) for item in raw]

    logger.warning(f"Dropping items of unexpected type {type(raw).__name__}")
    return []


def parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    try:
        parsed = _datetime_adapter.validate_python(value)
    except ValidationError:
        logger.warning(f"Unparseable order timestamp: {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_status(value: Any) -> OrderStatus:
    if value is None:
        return OrderStatus.PENDING
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(str(value).strip().lower())
    except ValueError:
        raise InvalidOrderError(f"Invalid order status: {value!r}")


def parse_order(raw: Any) -> Order:
    """Turn a store/push payload into an `Order`, or raise InvalidOrderError."""
    if isinstance(raw, Order):
        return raw
    if not isinstance(raw, dict):
        raise InvalidOrderError(f"Order payload must be an object, got {type(raw).__name__}")

    order_id = _first(raw, "id", "orderId")
    if order_id is None or isinstance(order_id, bool) or str(order_id).strip() == "":
        raise InvalidOrderError("Order payload has no id")

    table = _first(raw, "tableNumber", "table_number", "table_no")
    customer = _first(raw, "customerName", "customer_name")
    restaurant = _first(raw, "restaurantId", "restaurant_id")

    # A negative total is unusable; the item sum stands in for it
    total = to_decimal(_first(raw, "totalPrice", "total_price", "total"))
    if total is not None and total < 0:
        logger.warning(f"Ignoring negative total {total} on order {order_id}")
        total = None

    return Order(
        id=str(order_id).strip(),
        restaurant_id=str(restaurant) if restaurant not in (None, "") else None,
        customer_name=str(customer) if customer not in (None, "") else None,
        table_number=str(table) if table not in (None, "") else None,
        items=parse_items(raw.get("items")),
        total_price=total,
        status=parse_status(raw.get("status")),
        created_at=parse_timestamp(_first(raw, "createdAt", "created_at")),
    )


def parse_push_message(raw: Any) -> PushEvent:
    """Validate a push envelope `{type, order}`, decoding JSON text first."""
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError:
            raise InvalidOrderError("Push message is not valid JSON")

    if not isinstance(raw, dict):
        raise InvalidOrderError("Push message must be an object")

    kind = str(raw.get("type") or "").upper()
    try:
        event_kind = PushEventKind(kind)
    except ValueError:
        raise InvalidOrderError(f"Unknown push message type: {raw.get('type')!r}")

    if raw.get("order") is None:
        raise InvalidOrderError(f"{event_kind.value} message carries no order")

    return PushEvent(kind=event_kind, order=parse_order(raw["order"]))
