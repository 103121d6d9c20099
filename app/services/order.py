import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import Order, OrderStatus
from app.schemas.order import OrderCreate, OrderItemIn

logger = logging.getLogger(__name__)


def parse_status(value: Optional[str]) -> OrderStatus:
    try:
        return OrderStatus((value or "").strip().lower())
    except ValueError:
        raise ValueError('Invalid status. Must be "pending" or "completed"')


def _items_total(items: list) -> Decimal:
    total = Decimal("0.00")
    for item in items:
        if isinstance(item, OrderItemIn):
            total += item.price * item.quantity
    return total


async def create_order(db: AsyncSession, data: OrderCreate, default_restaurant_id: str) -> Order:
    total = data.total_price if data.total_price is not None else _items_total(data.items)

    order = Order(
        restaurant_id=data.restaurant_id or default_restaurant_id,
        customer_name=data.customer_name,
        table_number=data.table_number,
        items=[
            item.model_dump(mode="json") if isinstance(item, OrderItemIn) else item
            for item in data.items
        ],
        total_price=total,
        status=OrderStatus.PENDING,
    )
    db.add(order)
    await db.commit()
    await db.refresh(order)

    logger.info(f"Order created: id={order.id}, restaurant={order.restaurant_id}, total={order.total_price}")
    return order


async def list_orders(
    db: AsyncSession,
    restaurant_id: Optional[str] = None,
    since: Optional[datetime] = None
) -> list[Order]:
    stmt = select(Order)
    if restaurant_id:
        stmt = stmt.where(Order.restaurant_id == restaurant_id)
    if since is not None:
        if since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)
        stmt = stmt.where(Order.created_at > since.astimezone(timezone.utc))

    result = await db.execute(stmt.order_by(Order.created_at.desc(), Order.id.desc()))
    return list(result.scalars().all())


async def update_order_status(db: AsyncSession, order_id: int, status: Optional[str]) -> tuple[Optional[Order], bool]:
    """
    Move an order to a new status.

    Returns (order, changed); order is None when the id is unknown.
    Raises ValueError for an unknown status or an attempt to reopen a
    completed order.
    """
    new_status = parse_status(status)

    result = await db.execute(select(Order).where(Order.id == order_id))
    order = result.scalar_one_or_none()
    if not order:
        return None, False

    if order.status == new_status:
        return order, False

    if order.status == OrderStatus.COMPLETED:
        raise ValueError("Completed orders cannot be reopened")

    order.status = new_status
    await db.commit()
    await db.refresh(order)

    logger.info(f"Order {order.id} moved to {new_status.value}")
    return order, True
