from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from services.order_service.schemas import CamelModel

from .models import RefundStatus


class RefundCreate(CamelModel):
    order_id: str = Field(min_length=1, max_length=36)
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    reason: Optional[str] = Field(default=None, max_length=500)


class RefundResponse(CamelModel):
    id: str
    order_id: str
    amount: Decimal
    reason: Optional[str] = None
    status: RefundStatus
    gateway_refund_id: Optional[str] = None
    processed_at: Optional[datetime] = None
    created_at: datetime


class RefundEnvelope(CamelModel):
    message: str
    refund: RefundResponse


class RefundListResponse(CamelModel):
    refunds: List[RefundResponse]
