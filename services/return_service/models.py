import enum

from sqlalchemy import JSON, Column, DateTime, Enum, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from shared.config.database import Base
from services.order_service.models import new_id


class ReturnStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PROCESSED = "PROCESSED"


class ReturnRequest(Base):
    """Customer request to send a delivered order back. One per order."""

    __tablename__ = "return_requests"
    __table_args__ = (UniqueConstraint("order_id", "user_id", name="uq_return_order_user"),)

    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    reason = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    images = Column(JSON, nullable=False, default=list)
    status = Column(
        Enum(ReturnStatus, native_enum=False, length=20),
        nullable=False,
        default=ReturnStatus.PENDING,
    )
    admin_notes = Column(Text, nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
