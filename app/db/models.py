from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Numeric, DateTime, JSON, Enum as SQLEnum
import enum

from app.db.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(String(64), nullable=False, index=True)
    customer_name = Column(String(255), nullable=True)
    table_number = Column(String(32), nullable=True)
    items = Column(JSON, default=list, nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)
    status = Column(
        SQLEnum(OrderStatus, values_callable=lambda e: [m.value for m in e]),
        default=OrderStatus.PENDING,
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
