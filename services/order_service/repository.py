from typing import Optional

from sqlalchemy import delete, func, or_, and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Coupon, Order, OrderItem, OrderStatus, PaymentMethod


class OrderRepository:
    """Order persistence. Writes flush but never commit; see shared.persistence.atomic."""

    @staticmethod
    async def add_orders(db: AsyncSession, orders: list[Order]) -> list[Order]:
        db.add_all(orders)
        await db.flush()
        return orders

    @staticmethod
    async def get_order(db: AsyncSession, order_id: str) -> Optional[Order]:
        result = await db.execute(select(Order).where(Order.id == order_id))
        return result.scalars().first()

    @staticmethod
    async def get_order_for_update(db: AsyncSession, order_id: str) -> Optional[Order]:
        result = await db.execute(
            select(Order)
            .where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    @staticmethod
    async def count_user_orders(db: AsyncSession, user_id: str) -> int:
        result = await db.execute(select(func.count(Order.id)).where(Order.user_id == user_id))
        return result.scalar_one()

    @staticmethod
    async def list_visible_orders(db: AsyncSession, user_id: str) -> list[Order]:
        """COD orders, plus gateway orders only once they are paid."""
        result = await db.execute(
            select(Order)
            .where(
                Order.user_id == user_id,
                or_(
                    Order.payment_method == PaymentMethod.COD,
                    and_(Order.payment_method == PaymentMethod.RAZORPAY, Order.is_paid.is_(True)),
                ),
            )
            .order_by(Order.created_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def find_by_gateway_order(
        db: AsyncSession, gateway_order_id: str, user_id: str
    ) -> list[Order]:
        result = await db.execute(
            select(Order)
            .where(Order.gateway_order_id == gateway_order_id, Order.user_id == user_id)
            .order_by(Order.id)
            .with_for_update()
        )
        return list(result.scalars().all())

    @staticmethod
    async def set_gateway_order_id(db: AsyncSession, order_ids: list[str], gateway_order_id: str) -> None:
        await db.execute(
            update(Order)
            .where(Order.id.in_(order_ids))
            .values(gateway_order_id=gateway_order_id)
        )

    @staticmethod
    async def mark_paid(
        db: AsyncSession,
        order_ids: list[str],
        gateway_order_id: str,
        gateway_payment_id: str,
        gateway_signature: str,
    ) -> list[str]:
        """Flip unpaid orders to paid. Already-paid rows are left untouched.

        The ``is_paid = false`` predicate is evaluated by the database inside
        the caller's transaction, so two racing confirmations cannot both apply.
        Returns the ids this call actually changed.
        """
        if not order_ids:
            return []
        result = await db.execute(
            update(Order)
            .where(
                Order.id.in_(order_ids),
                Order.gateway_order_id == gateway_order_id,
                Order.is_paid.is_(False),
            )
            .values(
                is_paid=True,
                gateway_payment_id=gateway_payment_id,
                gateway_signature=gateway_signature,
                status=OrderStatus.PROCESSING,
            )
            .returning(Order.id)
            .execution_options(synchronize_session=False)
        )
        return list(result.scalars().all())

    @staticmethod
    async def owners_of(db: AsyncSession, order_ids: list[str]) -> list[str]:
        if not order_ids:
            return []
        result = await db.execute(
            select(Order.user_id).where(Order.id.in_(order_ids)).distinct()
        )
        return list(result.scalars().all())

    @staticmethod
    async def delete_unpaid(db: AsyncSession, order_ids: list[str]) -> list[str]:
        """Delete-if-exists. Ids that are gone already are simply skipped."""
        if not order_ids:
            return []
        result = await db.execute(
            select(Order.id).where(Order.id.in_(order_ids), Order.is_paid.is_(False))
        )
        doomed = list(result.scalars().all())
        if doomed:
            await db.execute(delete(OrderItem).where(OrderItem.order_id.in_(doomed)))
            await db.execute(
                delete(Order)
                .where(Order.id.in_(doomed))
                .execution_options(synchronize_session=False)
            )
        return doomed


class CouponRepository:

    @staticmethod
    async def get_by_code(db: AsyncSession, code: str) -> Optional[Coupon]:
        result = await db.execute(select(Coupon).where(Coupon.code == code))
        return result.scalars().first()
