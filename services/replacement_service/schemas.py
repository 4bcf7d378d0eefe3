from datetime import datetime
from typing import List, Optional

from pydantic import Field

from services.order_service.schemas import CamelModel, OrderResponse

from .models import ReplacementStatus


class ReplacementItem(CamelModel):
    product_id: str = Field(min_length=1, max_length=36)
    quantity: int = Field(gt=0)


class ReplacementCreate(CamelModel):
    original_order_id: str = Field(min_length=1, max_length=36)
    reason: str = Field(min_length=3, max_length=500)
    description: Optional[str] = Field(default=None, max_length=2000)
    images: List[str] = Field(default_factory=list, max_length=5)
    replacement_items: List[ReplacementItem] = Field(min_length=1)


class ReplacementResponse(CamelModel):
    id: str
    original_order_id: str
    replacement_order_id: str
    reason: str
    description: Optional[str] = None
    images: List[str] = []
    status: ReplacementStatus
    created_at: datetime


class ReplacementEnvelope(CamelModel):
    message: str
    replacement: ReplacementResponse
    order: OrderResponse


class ReplacementListResponse(CamelModel):
    replacements: List[ReplacementResponse]
