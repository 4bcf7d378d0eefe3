"""
Wire contracts for the gateway webhook and the client verification call.

Webhook models accept unknown fields; only what reconciliation reads is
required.
"""
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from shared.config import settings

PAYMENT_CAPTURED = "payment.captured"
PAYMENT_FAILED = "payment.failed"
RECONCILED_EVENTS = (PAYMENT_CAPTURED, PAYMENT_FAILED)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PaymentEntity(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1)
    order_id: str = Field(min_length=1)
    amount: int = Field(gt=0)
    currency: str = Field(min_length=1)
    status: str = Field(min_length=1)
    signature: Optional[str] = None


class OrderNotes(BaseModel):
    model_config = ConfigDict(extra="allow")

    orderIds: str = Field(pattern=r"^[A-Za-z0-9_\-,]+$")
    userId: Optional[str] = None
    appId: Optional[str] = None

    @property
    def order_id_list(self) -> List[str]:
        return [part.strip() for part in self.orderIds.split(",") if part.strip()]


class OrderEntity(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1)
    amount: int = Field(gt=0)
    currency: str
    status: str = Field(min_length=1)
    notes: OrderNotes

    @model_validator(mode="after")
    def supported_currency(self):
        if self.currency != settings.GATEWAY_CURRENCY:
            raise ValueError(f"Only {settings.GATEWAY_CURRENCY} currency is supported")
        return self


class PaymentEnvelope(BaseModel):
    entity: PaymentEntity


class OrderEnvelope(BaseModel):
    entity: OrderEntity


class WebhookPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    payment: Optional[PaymentEnvelope] = None
    order: Optional[OrderEnvelope] = None


class WebhookEvent(BaseModel):
    model_config = ConfigDict(extra="allow")

    event: str = Field(min_length=1)
    id: Optional[str] = None
    payload: WebhookPayload

    @model_validator(mode="after")
    def required_entities(self):
        if self.event.startswith("payment.") and self.payload.payment is None:
            raise ValueError("payment.entity is required for payment events")
        if self.event in RECONCILED_EVENTS and self.payload.order is None:
            raise ValueError(f"order.entity is required for {self.event}")
        return self


class WebhookAck(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    message: str
    order_ids: Optional[List[str]] = None
    timestamp: datetime = Field(default_factory=utc_now)


class PaymentVerificationRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    gateway_order_id: str = Field(pattern=r"^order_[A-Za-z0-9]+$", max_length=64)
    gateway_payment_id: str = Field(pattern=r"^pay_[A-Za-z0-9]+$", max_length=64)
    gateway_signature: str = Field(pattern=r"^[A-Za-z0-9+/=]{43,}$", max_length=256)


class PaymentVerificationResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    message: str
    order_ids: List[str]
    already_verified: bool = False
    timestamp: datetime = Field(default_factory=utc_now)
