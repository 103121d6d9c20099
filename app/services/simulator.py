import asyncio
import logging
from decimal import Decimal

from app.db.session import async_session
from app.schemas.order import OrderCreate, OrderItemIn
from app.services.broadcast import manager
from app.services.order import create_order

logger = logging.getLogger(__name__)


SAMPLE_ORDERS = [
    OrderCreate(
        customer_name="Sarah Johnson",
        table_number="4",
        items=[
            OrderItemIn(name="Margherita Pizza", quantity=2, price=Decimal("14.50")),
            OrderItemIn(name="Caesar Salad", quantity=1, price=Decimal("9.75")),
        ],
    ),
    OrderCreate(
        customer_name="Mike Chen",
        table_number="7",
        items=["1x Spicy Ramen", "2x Gyoza"],
        total_price=Decimal("28.75"),
    ),
    OrderCreate(
        customer_name="Emma Davis",
        table_number="2",
        items=[
            OrderItemIn(name="Grilled Salmon", quantity=1, price=Decimal("24.00")),
            OrderItemIn(name="Lemonade", quantity=2, price=Decimal("4.00")),
        ],
    ),
]


async def simulate_orders(restaurant_id: str, interval: float, samples: list = SAMPLE_ORDERS):
    """Create the sample orders one by one, broadcasting each as it lands."""
    for sample in samples:
        await asyncio.sleep(interval)
        try:
            async with async_session() as db:
                order = await create_order(db, sample, restaurant_id)
            await manager.broadcast_order("NEW_ORDER", order)
            logger.info(f"Simulated new order: #{order.id}")
        except Exception as e:
            logger.error(f"Error creating simulated order: {e}", exc_info=True)
