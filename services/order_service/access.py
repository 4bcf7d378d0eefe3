from sqlalchemy.ext.asyncio import AsyncSession

from shared.errors import AuthorizationError, NotFoundError
from shared.security import CallerIdentity
from services.catalog_service.repository import CatalogRepository

from .models import Order
from .repository import OrderRepository


async def load_owned_order(db: AsyncSession, caller: CallerIdentity, order_id: str, operation: str) -> Order:
    """The order, provided the caller placed it."""
    order = await OrderRepository.get_order(db, order_id)
    if order is None:
        raise NotFoundError("Order not found", operation=operation)
    if order.user_id != caller.user_id:
        raise AuthorizationError("Order does not belong to user", operation=operation)
    return order


async def ensure_admin_or_vendor(db: AsyncSession, caller: CallerIdentity, order: Order, operation: str) -> None:
    if caller.is_admin:
        return
    vendor = await CatalogRepository.get_vendor(db, order.vendor_id)
    if vendor is None or vendor.owner_user_id != caller.user_id:
        raise AuthorizationError(
            "Only the platform admin or the order's vendor may do this", operation=operation
        )
