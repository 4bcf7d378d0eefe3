"""
Replacement orders.

Resends part (or all) of a delivered order as a new cash-on-delivery order,
priced from the unit prices stored on the original, never the catalog.
"""
from collections import OrderedDict
from datetime import datetime, timezone

import structlog
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from shared.errors import ConflictError, ValidationError
from shared.persistence import atomic
from shared.security import CallerIdentity
from services.order_service.access import load_owned_order
from services.order_service.models import Order, OrderItem, OrderStatus, PaymentMethod
from services.order_service.pricing import quantize_money
from services.order_service.repository import OrderRepository

from .models import Replacement, ReplacementStatus
from .repository import ReplacementRepository
from .schemas import ReplacementCreate

logger = structlog.get_logger(__name__)


def _not_delivered() -> ConflictError:
    return ConflictError(
        "Only delivered orders can be replaced", operation="replacement_create", code="ORDER_NOT_DELIVERED"
    )


class ReplacementService:

    @staticmethod
    async def create_replacement(
        db: AsyncSession, caller: CallerIdentity, data: ReplacementCreate
    ) -> tuple[Replacement, Order]:
        original = await load_owned_order(db, caller, data.original_order_id, "replacement_create")
        if original.status != OrderStatus.DELIVERED:
            raise _not_delivered()

        unit_prices = {item.product_id: item.price for item in original.items}
        requested: "OrderedDict[str, int]" = OrderedDict()
        for item in data.replacement_items:
            if item.product_id not in unit_prices:
                raise ValidationError(
                    f"Product {item.product_id} is not part of the original order",
                    operation="replacement_create",
                    code="ITEM_NOT_IN_ORDER",
                )
            requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity

        total = quantize_money(sum(unit_prices[pid] * qty for pid, qty in requested.items()))
        now = datetime.now(timezone.utc)

        try:
            async with atomic(db, "replacement_create"):
                locked = await OrderRepository.get_order_for_update(db, original.id)
                if locked is None or locked.status != OrderStatus.DELIVERED:
                    raise _not_delivered()

                new_order = Order(
                    user_id=original.user_id,
                    vendor_id=original.vendor_id,
                    address_id=original.address_id,
                    total=total,
                    payment_method=PaymentMethod.COD,
                    is_paid=False,
                    status=OrderStatus.ORDER_PLACED,
                    is_coupon_used=False,
                    items=[
                        OrderItem(product_id=pid, quantity=qty, price=unit_prices[pid])
                        for pid, qty in requested.items()
                    ],
                )
                await OrderRepository.add_orders(db, [new_order])

                replacement = await ReplacementRepository.add(
                    db,
                    Replacement(
                        original_order_id=original.id,
                        replacement_order_id=new_order.id,
                        user_id=caller.user_id,
                        reason=data.reason,
                        description=data.description,
                        images=list(data.images),
                        status=ReplacementStatus.PENDING,
                    ),
                )
                await db.execute(
                    update(Order)
                    .where(Order.id == original.id)
                    .values(
                        status=OrderStatus.REPLACEMENT_REQUESTED,
                        replacement_requested_at=now,
                        replacement_reason=data.reason,
                        replacement_order_id=new_order.id,
                    )
                    .execution_options(synchronize_session=False)
                )
        except IntegrityError as exc:
            raise ConflictError(
                "A replacement request already exists for this order",
                operation="replacement_create",
                code="REPLACEMENT_ALREADY_EXISTS",
            ) from exc

        await db.refresh(replacement)
        await db.refresh(new_order)
        logger.info(
            "replacement_created",
            replacement_id=replacement.id,
            original_order_id=original.id,
            replacement_order_id=new_order.id,
            total=str(total),
            user_id=caller.user_id,
        )
        return replacement, new_order

    @staticmethod
    async def list_replacements(db: AsyncSession, caller: CallerIdentity) -> list[Replacement]:
        if caller.is_admin:
            return await ReplacementRepository.list_all(db)
        return await ReplacementRepository.list_for_user(db, caller.user_id)
