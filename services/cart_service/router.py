from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.security import CallerIdentity, get_current_user

from .schemas import CartResponse, CartUpdate
from .service import CartService

router = APIRouter(prefix="/cart", tags=["Cart"])


@router.get("", response_model=CartResponse)
async def get_cart(
    caller: CallerIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await CartService.get_cart(db, caller.user_id)


@router.put("", response_model=CartResponse)
async def replace_cart(
    payload: CartUpdate,
    caller: CallerIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Replace the caller's cart snapshot; ``version`` must match the stored one."""
    return await CartService.replace_cart(db, caller.user_id, payload)
