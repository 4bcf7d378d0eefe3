from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .models import OrderStatus, PaymentMethod


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class CheckoutItem(CamelModel):
    id: str = Field(min_length=1, max_length=36)
    quantity: int = Field(gt=0)


class CheckoutRequest(CamelModel):
    address_id: str = Field(min_length=1, max_length=100)
    items: List[CheckoutItem] = Field(min_length=1)
    coupon_code: Optional[str] = Field(default=None, min_length=1, max_length=50)
    payment_method: PaymentMethod


class CheckoutResponse(CamelModel):
    """``order``/``key`` for gateway checkouts, ``message`` for cash on delivery."""

    message: Optional[str] = None
    order: Optional[dict] = None
    key: Optional[str] = None
    order_ids: List[str] = []


class OrderItemResponse(CamelModel):
    product_id: str
    quantity: int
    price: Decimal


class OrderResponse(CamelModel):
    id: str
    vendor_id: str
    address_id: str
    total: Decimal
    payment_method: PaymentMethod
    is_paid: bool
    status: OrderStatus
    is_coupon_used: bool
    gateway_order_id: Optional[str] = None
    refund_amount: Optional[Decimal] = None
    replacement_order_id: Optional[str] = None
    created_at: datetime
    items: List[OrderItemResponse] = []


class OrderListResponse(CamelModel):
    orders: List[OrderResponse]


class CancelOrderRequest(CamelModel):
    order_id: str = Field(min_length=1, max_length=36)


class CancelOrderResponse(CamelModel):
    message: str
    order: OrderResponse
