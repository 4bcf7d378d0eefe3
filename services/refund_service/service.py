"""
Refunds against an approved return.

The gateway is the source of truth for money. The refund row is reserved
first (the unique key turns a concurrent double submit into a conflict), the
gateway is called outside any transaction, and only a successful answer
finalises the refund and moves the order to REFUNDED. A failed call releases
the reservation, so the order looks exactly as it did before.
"""
from datetime import datetime, timezone

import structlog
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from shared.errors import ConflictError, NotFoundError, ValidationError
from shared.observability import ecomm_refund_total
from shared.persistence import atomic
from shared.security import CallerIdentity
from services.order_service.access import ensure_admin_or_vendor
from services.order_service.models import Order, OrderStatus, PaymentMethod
from services.order_service.pricing import quantize_money, to_minor_units
from services.order_service.repository import OrderRepository
from services.payment_service.gateway import GatewayClient
from services.return_service.repository import ReturnRepository

from .models import Refund, RefundStatus
from .repository import RefundRepository
from .schemas import RefundCreate

logger = structlog.get_logger(__name__)


def _refunds_through_gateway(order: Order) -> bool:
    return order.payment_method == PaymentMethod.RAZORPAY and bool(order.gateway_payment_id)


class RefundService:

    @staticmethod
    async def create_refund(
        db: AsyncSession, caller: CallerIdentity, data: RefundCreate, gateway: GatewayClient
    ) -> Refund:
        order = await OrderRepository.get_order(db, data.order_id)
        if order is None:
            raise NotFoundError("Order not found", operation="refund_create")
        await ensure_admin_or_vendor(db, caller, order, "refund_create")

        if not await ReturnRepository.has_approved(db, order.id):
            raise ConflictError(
                "No approved return request found for this order",
                operation="refund_create",
                code="RETURN_NOT_APPROVED",
            )

        amount = quantize_money(data.amount)
        if amount > order.total:
            raise ValidationError("Refund amount exceeds order total", operation="refund_create")

        via_gateway = _refunds_through_gateway(order)
        now = datetime.now(timezone.utc)
        refund = Refund(
            order_id=order.id,
            user_id=order.user_id,
            vendor_id=order.vendor_id,
            amount=amount,
            reason=data.reason,
            status=RefundStatus.PENDING,
            processed_by=caller.user_id,
        )
        order_values = {
            "status": OrderStatus.REFUNDED,
            "refunded_at": now,
            "refund_amount": amount,
            "refund_reason": data.reason,
        }

        try:
            async with atomic(db, "refund_reserve"):
                await RefundRepository.reserve(db, refund)
                if not via_gateway:
                    # Cash refunds are settled by hand; the row stays PENDING
                    await RefundService._mark_order_refunded(db, order.id, order_values)
        except IntegrityError as exc:
            ecomm_refund_total.labels(status="duplicate").inc()
            raise ConflictError(
                "Refund already exists for this order",
                operation="refund_create",
                code="REFUND_ALREADY_EXISTS",
            ) from exc

        if via_gateway:
            try:
                remote = await gateway.refund_payment(
                    order.gateway_payment_id,
                    to_minor_units(amount),
                    notes={"orderId": order.id, "reason": data.reason or "Customer refund"},
                )
            except Exception:
                async with atomic(db, "refund_release"):
                    await RefundRepository.release(db, refund.id)
                ecomm_refund_total.labels(status="failed").inc()
                raise

            async with atomic(db, "refund_finalize"):
                await RefundRepository.finalize(
                    db,
                    refund.id,
                    {
                        "status": RefundStatus.PROCESSED,
                        "gateway_refund_id": remote.get("id"),
                        "processed_at": now,
                    },
                )
                await RefundService._mark_order_refunded(db, order.id, order_values)

        await db.refresh(refund)
        ecomm_refund_total.labels(status=refund.status.value.lower()).inc()
        logger.info(
            "refund_created",
            refund_id=refund.id,
            order_id=order.id,
            amount=str(amount),
            via_gateway=via_gateway,
            actor=caller.user_id,
        )
        return refund

    @staticmethod
    async def _mark_order_refunded(db: AsyncSession, order_id: str, values: dict) -> None:
        await db.execute(
            update(Order)
            .where(Order.id == order_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    async def list_refunds(db: AsyncSession, caller: CallerIdentity) -> list[Refund]:
        if caller.is_admin:
            return await RefundRepository.list_all(db)
        return await RefundRepository.list_for_user(db, caller.user_id)
