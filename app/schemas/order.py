from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import List, Literal, Optional, Union
from decimal import Decimal
from datetime import datetime, timezone


class OrderItemIn(BaseModel):
    name: str = Field(min_length=1)
    quantity: int = Field(default=1, ge=1)
    price: Decimal = Field(default=Decimal("0"), ge=0)


class OrderCreate(BaseModel):
    restaurant_id: Optional[str] = None
    customer_name: Optional[str] = None
    table_number: Optional[str] = None
    items: List[Union[OrderItemIn, str]] = Field(min_length=1)
    total_price: Optional[Decimal] = Field(default=None, ge=0)

    @field_validator("table_number", mode="before")
    @classmethod
    def table_number_as_text(cls, value):
        if isinstance(value, int):
            return str(value)
        return value

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class OrderStatusUpdate(BaseModel):
    status: Optional[str] = None


class OrderResponse(BaseModel):
    id: int
    restaurant_id: str
    customer_name: Optional[str] = None
    table_number: Optional[str] = None
    items: List[Union[OrderItemIn, str]] = []
    total_price: Decimal
    status: str
    created_at: datetime

    @field_validator("status", mode="before")
    @classmethod
    def status_value(cls, value):
        return getattr(value, "value", value)

    @field_validator("created_at")
    @classmethod
    def created_at_utc(cls, value: datetime) -> datetime:
        # SQLite hands back naive datetimes; everything is stored in UTC.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True


class PushMessage(BaseModel):
    type: Literal["NEW_ORDER", "ORDER_UPDATED"]
    order: OrderResponse
