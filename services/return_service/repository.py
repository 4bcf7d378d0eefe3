from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import ReturnRequest, ReturnStatus


class ReturnRepository:

    @staticmethod
    async def add(db: AsyncSession, request: ReturnRequest) -> ReturnRequest:
        db.add(request)
        await db.flush()
        return request

    @staticmethod
    async def get(db: AsyncSession, return_id: str) -> Optional[ReturnRequest]:
        result = await db.execute(select(ReturnRequest).where(ReturnRequest.id == return_id))
        return result.scalars().first()

    @staticmethod
    async def list_for_user(db: AsyncSession, user_id: str) -> list[ReturnRequest]:
        result = await db.execute(
            select(ReturnRequest)
            .where(ReturnRequest.user_id == user_id)
            .order_by(ReturnRequest.created_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def has_approved(db: AsyncSession, order_id: str) -> bool:
        result = await db.execute(
            select(ReturnRequest.id).where(
                ReturnRequest.order_id == order_id,
                ReturnRequest.status == ReturnStatus.APPROVED,
            )
        )
        return result.first() is not None

    @staticmethod
    async def transition(
        db: AsyncSession, return_id: str, from_status: ReturnStatus, values: dict
    ) -> bool:
        """Compare-and-set on status; False when someone moved it first."""
        result = await db.execute(
            update(ReturnRequest)
            .where(ReturnRequest.id == return_id, ReturnRequest.status == from_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
