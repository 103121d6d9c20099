import enum
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional

from pydantic import BaseModel

from app.db.models import OrderStatus

CENTS = Decimal("0.01")
PLACEHOLDER_CUSTOMER = "Guest"

STATUS_RANK = {
    OrderStatus.PENDING: 0,
    OrderStatus.COMPLETED: 1,
}


def quantize(amount: Decimal) -> Decimal:
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


class LineItem(BaseModel):
    name: str
    quantity: int = 1
    price: Decimal = Decimal("0")


class Order(BaseModel):
    """An order as the dashboard sees it, normalized from whatever the store sent."""

    id: str
    restaurant_id: Optional[str] = None
    customer_name: Optional[str] = None
    table_number: Optional[str] = None
    items: List[LineItem] = []
    total_price: Optional[Decimal] = None
    status: OrderStatus = OrderStatus.PENDING
    created_at: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        return self.customer_name or PLACEHOLDER_CUSTOMER

    @property
    def amount(self) -> Decimal:
        if self.total_price is not None:
            return self.total_price
        return sum((item.price * item.quantity for item in self.items), Decimal("0"))

    @property
    def is_completed(self) -> bool:
        return self.status == OrderStatus.COMPLETED


class PushEventKind(str, enum.Enum):
    NEW_ORDER = "NEW_ORDER"
    ORDER_UPDATED = "ORDER_UPDATED"


class PushEvent(BaseModel):
    kind: PushEventKind
    order: Order


class RevenueSnapshot(BaseModel):
    total_revenue: Decimal = Decimal("0.00")
    completed_count: int = 0
    average_order_value: Decimal = Decimal("0.00")

    @classmethod
    def from_orders(cls, orders: Iterable[Order]) -> "RevenueSnapshot":
        total = Decimal("0")
        count = 0
        for order in orders:
            total += order.amount
            count += 1

        average = total / count if count else Decimal("0")
        return cls(
            total_revenue=quantize(total),
            completed_count=count,
            average_order_value=quantize(average),
        )


class ResetBoundary(BaseModel):
    reset_at: Optional[datetime] = None

    def includes(self, created_at: datetime) -> bool:
        """True when an order created at `created_at` counts after the last reset."""
        return self.reset_at is None or created_at > self.reset_at


class LedgerState(BaseModel):
    pending: List[Order] = []
    completed: List[Order] = []
    revenue: RevenueSnapshot = RevenueSnapshot()
    highlighted: List[str] = []
    boundary: ResetBoundary = ResetBoundary()
