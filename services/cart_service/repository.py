from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Cart, CartItem


class CartRepository:
    """Cart persistence. Nothing here commits; callers own the transaction."""

    @staticmethod
    async def get(db: AsyncSession, user_id: str) -> Optional[Cart]:
        result = await db.execute(select(Cart).where(Cart.user_id == user_id))
        return result.scalars().first()

    @staticmethod
    async def replace_items(
        db: AsyncSession, user_id: str, expected_version: int, items: list[tuple[str, int]]
    ) -> Optional[int]:
        """Swap the whole snapshot if nobody wrote since ``expected_version``.

        Returns the new version, or None when the version check failed.
        """
        cart = await CartRepository.get(db, user_id)
        if cart is None:
            if expected_version != 0:
                return None
            db.add(Cart(user_id=user_id, version=0))
            await db.flush()

        result = await db.execute(
            update(Cart)
            .where(Cart.user_id == user_id, Cart.version == expected_version)
            .values(version=Cart.version + 1)
        )
        if result.rowcount != 1:
            return None

        await db.execute(delete(CartItem).where(CartItem.user_id == user_id))
        for product_id, quantity in items:
            db.add(CartItem(user_id=user_id, product_id=product_id, quantity=quantity))
        await db.flush()
        return expected_version + 1

    @staticmethod
    async def clear(db: AsyncSession, user_ids: list[str]) -> None:
        """Empty the given carts in one statement pair. Missing carts are skipped."""
        if not user_ids:
            return
        await db.execute(delete(CartItem).where(CartItem.user_id.in_(user_ids)))
        await db.execute(
            update(Cart)
            .where(Cart.user_id.in_(user_ids))
            .values(version=Cart.version + 1)
        )
