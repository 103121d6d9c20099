import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.db.session import get_db
from app.schemas.order import OrderCreate, OrderResponse, OrderStatusUpdate
from app.services.broadcast import manager
from app.services.order import create_order, list_orders, update_order_status

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.get("", response_model=List[OrderResponse])
async def get_orders(
    restaurant_id: Optional[str] = None,
    since: Optional[datetime] = None,
    db: AsyncSession = Depends(get_db)
):
    try:
        return await list_orders(db, restaurant_id, since)
    except Exception as e:
        logger.error(f"Error fetching orders: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch orders")


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def post_order(
    order_data: OrderCreate,
    db: AsyncSession = Depends(get_db)
):
    try:
        order = await create_order(db, order_data, settings.DEFAULT_RESTAURANT_ID)
    except Exception as e:
        logger.error(f"Server error creating order: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")

    await manager.broadcast_order("NEW_ORDER", order)
    return order


@router.patch("/{order_id}", response_model=OrderResponse)
@router.patch("/{order_id}/status", response_model=OrderResponse)
async def patch_order_status(
    order_id: int,
    update: OrderStatusUpdate,
    db: AsyncSession = Depends(get_db)
):
    try:
        order, changed = await update_order_status(db, order_id, update.status)
    except ValueError as e:
        logger.warning(f"Status update rejected for order {order_id}: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if not order:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")

    if changed:
        await manager.broadcast_order("ORDER_UPDATED", order)
    return order
