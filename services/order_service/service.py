import time
from datetime import datetime, timezone

import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config import settings
from shared.errors import ConflictError, NotFoundError
from shared.observability import ecomm_checkout_duration_seconds, ecomm_checkout_total
from shared.persistence import atomic
from shared.security import CallerIdentity
from services.catalog_service.repository import CatalogRepository
from services.payment_service.gateway import GatewayClient

from .checkout_saga import build_checkout_saga
from .models import Coupon, Order, OrderStatus, PaymentMethod
from .pricing import price_checkout, to_minor_units
from .repository import CouponRepository, OrderRepository
from .schemas import CheckoutRequest, CheckoutResponse

logger = structlog.get_logger(__name__)

CANCELLABLE_STATUSES = (OrderStatus.ORDER_PLACED, OrderStatus.PROCESSING)


class OrderService:

    @staticmethod
    async def _resolve_coupon(db: AsyncSession, caller: CallerIdentity, code: str) -> Coupon:
        coupon = await CouponRepository.get_by_code(db, code)
        if coupon is None:
            raise NotFoundError("Coupon not found", operation="checkout", code="COUPON_NOT_FOUND")

        expires_at = coupon.expires_at
        if expires_at is not None:
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
            if expires_at < datetime.now(timezone.utc):
                raise ConflictError("Coupon has expired", operation="checkout", code="COUPON_EXPIRED")

        if coupon.for_new_user and await OrderRepository.count_user_orders(db, caller.user_id) > 0:
            raise ConflictError("Coupon valid for new users", operation="checkout", code="COUPON_NEW_USERS_ONLY")

        if coupon.for_member and not caller.is_member:
            raise ConflictError("Coupon valid for members only", operation="checkout", code="COUPON_MEMBERS_ONLY")

        return coupon

    @staticmethod
    async def checkout(
        db: AsyncSession, caller: CallerIdentity, data: CheckoutRequest, gateway: GatewayClient
    ) -> CheckoutResponse:
        started = time.perf_counter()
        items = [(item.id, item.quantity) for item in data.items]

        products = await CatalogRepository.get_products_by_ids(db, list({pid for pid, _ in items}))
        missing = [pid for pid, _ in items if pid not in products]
        if missing:
            raise NotFoundError(f"Product {missing[0]} not found", operation="checkout", code="PRODUCT_NOT_FOUND")

        coupon = None
        if data.coupon_code:
            coupon = await OrderService._resolve_coupon(db, caller, data.coupon_code)

        priced = price_checkout(
            items,
            products,
            discount_percent=coupon.discount if coupon else None,
            charge_shipping=not caller.is_member,
            shipping_fee=settings.SHIPPING_FEE,
        )

        ctx = {
            "db": db,
            "caller": caller,
            "priced": priced,
            "coupon": coupon,
            "address_id": data.address_id,
            "payment_method": data.payment_method,
            "gateway": gateway,
        }
        try:
            await build_checkout_saga(data.payment_method).execute(ctx)
        except Exception:
            ecomm_checkout_total.labels(status="failed", payment_method=data.payment_method.value).inc()
            raise

        ecomm_checkout_total.labels(status="success", payment_method=data.payment_method.value).inc()
        ecomm_checkout_duration_seconds.observe(time.perf_counter() - started)
        logger.info(
            "checkout_completed",
            user_id=caller.user_id,
            payment_method=data.payment_method.value,
            order_ids=ctx["order_ids"],
            vendor_count=len(priced.buckets),
            grand_total=str(priced.grand_total),
            coupon=coupon.code if coupon else None,
        )

        if data.payment_method == PaymentMethod.COD:
            return CheckoutResponse(message="Orders Placed Successfully", order_ids=ctx["order_ids"])
        return CheckoutResponse(
            order=ctx["gateway_order"], key=gateway.key_id, order_ids=ctx["order_ids"]
        )

    @staticmethod
    async def list_orders(db: AsyncSession, caller: CallerIdentity) -> list[Order]:
        return await OrderRepository.list_visible_orders(db, caller.user_id)

    @staticmethod
    async def cancel_order(
        db: AsyncSession, caller: CallerIdentity, order_id: str, gateway: GatewayClient
    ) -> Order:
        order = await OrderRepository.get_order(db, order_id)
        if order is None or order.user_id != caller.user_id:
            raise NotFoundError("Order not found or not owned by user", operation="order_cancel")
        if order.status not in CANCELLABLE_STATUSES:
            raise ConflictError("Order cannot be cancelled", operation="order_cancel", code="ORDER_NOT_CANCELLABLE")

        refunded = False
        if order.is_paid and order.payment_method == PaymentMethod.RAZORPAY and order.gateway_payment_id:
            # Money first: a failed remote refund leaves the order untouched
            await gateway.refund_payment(
                order.gateway_payment_id,
                to_minor_units(order.total),
                notes={"orderId": order.id, "reason": "Order cancelled"},
            )
            refunded = True

        now = datetime.now(timezone.utc)
        values = {"status": OrderStatus.CANCELLED, "cancelled_at": now}
        if refunded:
            values.update(refunded_at=now, refund_amount=order.total, refund_reason="Order cancelled")

        async with atomic(db, "order_cancel"):
            result = await db.execute(
                update(Order)
                .where(Order.id == order.id, Order.status.in_(CANCELLABLE_STATUSES))
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise ConflictError("Order cannot be cancelled", operation="order_cancel", code="ORDER_NOT_CANCELLABLE")

        await db.refresh(order)
        logger.info("order_cancelled", order_id=order.id, user_id=caller.user_id, refunded=refunded)
        return order
