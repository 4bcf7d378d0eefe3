"""
Return requests.

A customer asks to return a delivered order; the admin or the order's vendor
approves, rejects or closes the request. Each step moves the order status
with it, in the same transaction.
"""
from datetime import datetime, timedelta, timezone

import structlog
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from shared.errors import ConflictError, NotFoundError
from shared.persistence import atomic
from shared.security import CallerIdentity
from services.order_service.access import ensure_admin_or_vendor, load_owned_order
from services.order_service.models import Order, OrderStatus
from services.order_service.repository import OrderRepository

from .models import ReturnRequest, ReturnStatus
from .repository import ReturnRepository
from .schemas import ReturnCreate, ReturnUpdate

logger = structlog.get_logger(__name__)

STANDARD_RETURN_WINDOW = timedelta(days=7)
DEFECT_RETURN_WINDOW = timedelta(days=30)
DEFECT_KEYWORDS = ("defective", "damaged")

# status -> (required current status, order status it implies)
TRANSITIONS = {
    ReturnStatus.APPROVED: (ReturnStatus.PENDING, OrderStatus.RETURN_APPROVED),
    ReturnStatus.REJECTED: (ReturnStatus.PENDING, OrderStatus.RETURN_REJECTED),
    ReturnStatus.PROCESSED: (ReturnStatus.APPROVED, OrderStatus.RETURNED),
}


def return_window(reason: str) -> timedelta:
    lowered = reason.lower()
    if any(keyword in lowered for keyword in DEFECT_KEYWORDS):
        return DEFECT_RETURN_WINDOW
    return STANDARD_RETURN_WINDOW


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class ReturnService:

    @staticmethod
    async def create_return(db: AsyncSession, caller: CallerIdentity, data: ReturnCreate) -> ReturnRequest:
        order = await load_owned_order(db, caller, data.order_id, "return_create")
        if order.status != OrderStatus.DELIVERED:
            raise ConflictError(
                "Only delivered orders can be returned", operation="return_create", code="ORDER_NOT_DELIVERED"
            )

        delivered_at = _as_utc(order.delivered_at or order.updated_at or order.created_at)
        now = datetime.now(timezone.utc)
        if now - delivered_at > return_window(data.reason):
            raise ConflictError(
                "Return window has expired", operation="return_create", code="RETURN_WINDOW_EXPIRED"
            )

        request = ReturnRequest(
            order_id=order.id,
            user_id=caller.user_id,
            reason=data.reason,
            description=data.description,
            images=list(data.images),
            status=ReturnStatus.PENDING,
        )
        try:
            async with atomic(db, "return_create"):
                await ReturnRepository.add(db, request)
                await db.execute(
                    update(Order)
                    .where(Order.id == order.id)
                    .values(
                        status=OrderStatus.RETURN_REQUESTED,
                        return_requested_at=now,
                        return_reason=data.reason,
                    )
                    .execution_options(synchronize_session=False)
                )
        except IntegrityError as exc:
            raise ConflictError(
                "Return request already exists for this order",
                operation="return_create",
                code="RETURN_ALREADY_EXISTS",
            ) from exc

        await db.refresh(request)
        logger.info("return_requested", return_id=request.id, order_id=order.id, user_id=caller.user_id)
        return request

    @staticmethod
    async def update_return(
        db: AsyncSession, caller: CallerIdentity, return_id: str, data: ReturnUpdate
    ) -> ReturnRequest:
        request = await ReturnRepository.get(db, return_id)
        if request is None:
            raise NotFoundError("Return request not found", operation="return_update")
        order = await OrderRepository.get_order(db, request.order_id)
        if order is None:
            raise NotFoundError("Order not found", operation="return_update")
        await ensure_admin_or_vendor(db, caller, order, "return_update")

        target = ReturnStatus(data.status)
        required, order_status = TRANSITIONS[target]
        values = {"status": target, "admin_notes": data.admin_notes}
        if target == ReturnStatus.PROCESSED:
            values["processed_at"] = datetime.now(timezone.utc)

        async with atomic(db, "return_update"):
            moved = await ReturnRepository.transition(db, request.id, required, values)
            if not moved:
                raise ConflictError(
                    f"Return request cannot move from {request.status.value} to {target.value}",
                    operation="return_update",
                    code="INVALID_RETURN_TRANSITION",
                )
            await db.execute(
                update(Order)
                .where(Order.id == order.id)
                .values(status=order_status)
                .execution_options(synchronize_session=False)
            )

        await db.refresh(request)
        logger.info(
            "return_updated",
            return_id=request.id,
            order_id=order.id,
            status=target.value,
            actor=caller.user_id,
        )
        return request

    @staticmethod
    async def list_returns(db: AsyncSession, caller: CallerIdentity) -> list[ReturnRequest]:
        return await ReturnRepository.list_for_user(db, caller.user_id)

    @staticmethod
    async def get_return(db: AsyncSession, caller: CallerIdentity, return_id: str) -> ReturnRequest:
        """The requester, the admin and the order's vendor may read a return request."""
        request = await ReturnRepository.get(db, return_id)
        if request is None:
            raise NotFoundError("Return request not found", operation="return_get")
        if request.user_id == caller.user_id:
            return request
        order = await OrderRepository.get_order(db, request.order_id)
        if order is None:
            raise NotFoundError("Order not found", operation="return_get")
        await ensure_admin_or_vendor(db, caller, order, "return_get")
        return request
