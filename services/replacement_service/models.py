import enum

from sqlalchemy import JSON, Column, DateTime, Enum, ForeignKey, Index, String, Text, text
from sqlalchemy.sql import func

from shared.config.database import Base
from services.order_service.models import new_id


class ReplacementStatus(str, enum.Enum):
    # Rows are created PENDING here; review moves them on outside this service
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"


class Replacement(Base):
    __tablename__ = "replacements"
    __table_args__ = (
        # One live replacement per original order; rejected ones do not count
        Index(
            "uq_replacement_active_original",
            "original_order_id",
            unique=True,
            postgresql_where=text("status != 'REJECTED'"),
            sqlite_where=text("status != 'REJECTED'"),
        ),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    original_order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    replacement_order_id = Column(String(36), ForeignKey("orders.id"), nullable=False)
    user_id = Column(String(64), nullable=False, index=True)
    reason = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    images = Column(JSON, nullable=False, default=list)
    status = Column(
        Enum(ReplacementStatus, native_enum=False, length=20),
        nullable=False,
        default=ReplacementStatus.PENDING,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
