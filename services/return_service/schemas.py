from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field

from services.order_service.schemas import CamelModel

from .models import ReturnStatus


class ReturnCreate(CamelModel):
    order_id: str = Field(min_length=1, max_length=36)
    reason: str = Field(min_length=3, max_length=500)
    description: Optional[str] = Field(default=None, max_length=2000)
    images: List[str] = Field(default_factory=list, max_length=5)


class ReturnUpdate(CamelModel):
    status: Literal["APPROVED", "REJECTED", "PROCESSED"]
    admin_notes: Optional[str] = Field(default=None, max_length=1000)


class ReturnResponse(CamelModel):
    id: str
    order_id: str
    reason: str
    description: Optional[str] = None
    images: List[str] = []
    status: ReturnStatus
    admin_notes: Optional[str] = None
    processed_at: Optional[datetime] = None
    created_at: datetime


class ReturnEnvelope(CamelModel):
    message: str
    return_request: ReturnResponse


class ReturnListResponse(CamelModel):
    returns: List[ReturnResponse]
