from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Refund


class RefundRepository:

    @staticmethod
    async def reserve(db: AsyncSession, refund: Refund) -> Refund:
        """Insert and flush; a second refund for the order fails here on the unique key."""
        db.add(refund)
        await db.flush()
        return refund

    @staticmethod
    async def release(db: AsyncSession, refund_id: str) -> None:
        await db.execute(delete(Refund).where(Refund.id == refund_id))

    @staticmethod
    async def finalize(db: AsyncSession, refund_id: str, values: dict) -> None:
        await db.execute(
            update(Refund)
            .where(Refund.id == refund_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    async def list_all(db: AsyncSession) -> list[Refund]:
        result = await db.execute(select(Refund).order_by(Refund.created_at.desc()))
        return list(result.scalars().all())

    @staticmethod
    async def list_for_user(db: AsyncSession, user_id: str) -> list[Refund]:
        result = await db.execute(
            select(Refund).where(Refund.user_id == user_id).order_by(Refund.created_at.desc())
        )
        return list(result.scalars().all())
