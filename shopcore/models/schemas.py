from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from shopcore.core.config import DEFAULT_PAGE_LIMIT
from shopcore.models.database import OrderStatus


class Address(BaseModel):
    city: Optional[str] = None
    street: Optional[str] = None
    zipcode: Optional[str] = None

    class Config:
        from_attributes = True


class OrderCreate(BaseModel):
    member_id: int
    item_id: int
    quantity: int = Field(gt=0)


class OrderCreated(BaseModel):
    order_id: int


class OrderSearch(BaseModel):
    """Filters for order lookup; unset fields match everything"""
    status: Optional[OrderStatus] = None
    member_name: Optional[str] = None


class Pagination(BaseModel):
    offset: int = Field(default=0, ge=0)
    limit: int = Field(default=DEFAULT_PAGE_LIMIT, gt=0)


class OrderLineView(BaseModel):
    item_name: str
    unit_price: int
    quantity: int


class OrderView(BaseModel):
    """Read-only order projection with its lines"""
    order_id: int
    name: str
    order_date: datetime
    order_status: OrderStatus
    address: Address
    order_lines: List[OrderLineView] = []


class SimpleOrderView(BaseModel):
    """Order projection limited to to-one relations (member, delivery)"""
    order_id: int
    name: str
    order_date: datetime
    order_status: OrderStatus
    address: Address

