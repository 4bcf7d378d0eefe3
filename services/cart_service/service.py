from collections import OrderedDict

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from shared.errors import ConflictError
from shared.persistence import atomic
from .repository import CartRepository
from .schemas import CartResponse, CartUpdate


def _version_conflict() -> ConflictError:
    return ConflictError(
        "Cart was modified concurrently; reload and retry",
        operation="cart_replace",
        code="CART_VERSION_CONFLICT",
    )


class CartService:

    @staticmethod
    async def get_cart(db: AsyncSession, user_id: str) -> CartResponse:
        cart = await CartRepository.get(db, user_id)
        if cart is None:
            return CartResponse(version=0, items=[])
        return CartResponse.model_validate(cart)

    @staticmethod
    async def replace_cart(db: AsyncSession, user_id: str, data: CartUpdate) -> CartResponse:
        # Same product twice collapses into one line
        merged: "OrderedDict[str, int]" = OrderedDict()
        for item in data.items:
            merged[item.product_id] = merged.get(item.product_id, 0) + item.quantity

        try:
            async with atomic(db, "cart_replace"):
                new_version = await CartRepository.replace_items(
                    db, user_id, data.version, list(merged.items())
                )
                if new_version is None:
                    raise _version_conflict()
        except IntegrityError as exc:
            # Two first writes raced to create the cart row
            raise _version_conflict() from exc

        return CartResponse(
            version=new_version,
            items=[{"product_id": pid, "quantity": qty} for pid, qty in merged.items()],
        )
