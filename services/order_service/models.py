import enum
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from shared.config.database import Base


def new_id() -> str:
    return str(uuid.uuid4())


class PaymentMethod(str, enum.Enum):
    COD = "COD"
    RAZORPAY = "RAZORPAY"


class OrderStatus(str, enum.Enum):
    ORDER_PLACED = "ORDER_PLACED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    RETURN_REQUESTED = "RETURN_REQUESTED"
    RETURN_APPROVED = "RETURN_APPROVED"
    RETURN_REJECTED = "RETURN_REJECTED"
    RETURNED = "RETURNED"
    REFUNDED = "REFUNDED"
    REPLACEMENT_REQUESTED = "REPLACEMENT_REQUESTED"


class Order(Base):
    """One vendor's share of a checkout. ``total`` is fixed at creation."""

    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(64), nullable=False, index=True)
    vendor_id = Column(String(36), ForeignKey("vendors.id"), nullable=False, index=True)
    address_id = Column(String(100), nullable=False)

    total = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(Enum(PaymentMethod, native_enum=False, length=20), nullable=False)
    is_paid = Column(Boolean, nullable=False, default=False)
    status = Column(
        Enum(OrderStatus, native_enum=False, length=32),
        nullable=False,
        default=OrderStatus.ORDER_PLACED,
    )
    is_coupon_used = Column(Boolean, nullable=False, default=False)
    coupon_code = Column(String(50), nullable=True)
    coupon_discount = Column(Numeric(5, 2), nullable=True)

    # Gateway correlation (shared by every sub-order of one checkout)
    gateway_order_id = Column(String(64), nullable=True, index=True)
    gateway_payment_id = Column(String(64), nullable=True)
    gateway_signature = Column(String(256), nullable=True)

    delivered_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    return_requested_at = Column(DateTime(timezone=True), nullable=True)
    return_reason = Column(Text, nullable=True)

    refunded_at = Column(DateTime(timezone=True), nullable=True)
    refund_amount = Column(Numeric(12, 2), nullable=True)
    refund_reason = Column(Text, nullable=True)

    replacement_requested_at = Column(DateTime(timezone=True), nullable=True)
    replacement_reason = Column(Text, nullable=True)
    replacement_order_id = Column(String(36), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    items = relationship(
        "OrderItem",
        back_populates="order",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )


class OrderItem(Base):
    """Snapshot of a product line at order time; catalog price changes never reach it."""

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(36), nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)  # unit price

    order = relationship("Order", back_populates="items")


class Coupon(Base):
    __tablename__ = "coupons"

    code = Column(String(50), primary_key=True)
    description = Column(String(255), nullable=True)
    discount = Column(Numeric(5, 2), nullable=False)  # percentage
    for_new_user = Column(Boolean, nullable=False, default=False)
    for_member = Column(Boolean, nullable=False, default=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)
