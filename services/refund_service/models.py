import enum

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Numeric, String, Text
from sqlalchemy.sql import func

from shared.config.database import Base
from services.order_service.models import new_id


class RefundStatus(str, enum.Enum):
    PENDING = "PENDING"      # reserved, or awaiting a manual cash refund
    PROCESSED = "PROCESSED"


class Refund(Base):
    """At most one per order; the unique ``order_id`` is what enforces it."""

    __tablename__ = "refunds"

    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, unique=True)
    user_id = Column(String(64), nullable=False, index=True)
    vendor_id = Column(String(36), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    reason = Column(Text, nullable=True)
    status = Column(
        Enum(RefundStatus, native_enum=False, length=20),
        nullable=False,
        default=RefundStatus.PENDING,
    )
    gateway_refund_id = Column(String(64), nullable=True)
    processed_by = Column(String(64), nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
