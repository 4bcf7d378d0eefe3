from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Replacement


class ReplacementRepository:

    @staticmethod
    async def add(db: AsyncSession, replacement: Replacement) -> Replacement:
        db.add(replacement)
        await db.flush()
        return replacement

    @staticmethod
    async def list_all(db: AsyncSession) -> list[Replacement]:
        result = await db.execute(select(Replacement).order_by(Replacement.created_at.desc()))
        return list(result.scalars().all())

    @staticmethod
    async def list_for_user(db: AsyncSession, user_id: str) -> list[Replacement]:
        result = await db.execute(
            select(Replacement)
            .where(Replacement.user_id == user_id)
            .order_by(Replacement.created_at.desc())
        )
        return list(result.scalars().all())
