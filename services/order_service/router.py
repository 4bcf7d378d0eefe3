from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.security import CallerIdentity, get_current_user, set_csrf_token, verify_csrf_token
from services.payment_service.gateway import GatewayClient, get_gateway_client

from .schemas import (
    CancelOrderRequest,
    CancelOrderResponse,
    CheckoutRequest,
    CheckoutResponse,
    OrderListResponse,
)
from .service import OrderService

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post(
    "",
    response_model=CheckoutResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(get_current_user), Depends(verify_csrf_token)],
)
async def create_orders(
    payload: CheckoutRequest,
    response: Response,
    caller: CallerIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: GatewayClient = Depends(get_gateway_client),
):
    """Split the checkout into one order per vendor and start payment."""
    result = await OrderService.checkout(db, caller, payload, gateway)
    set_csrf_token(response)
    return result


@router.get("", response_model=OrderListResponse)
async def list_orders(
    caller: CallerIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    orders = await OrderService.list_orders(db, caller)
    return {"orders": orders}


@router.post("/cancel", response_model=CancelOrderResponse)
async def cancel_order(
    payload: CancelOrderRequest,
    caller: CallerIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: GatewayClient = Depends(get_gateway_client),
):
    order = await OrderService.cancel_order(db, caller, payload.order_id, gateway)
    return {"message": "Order cancelled successfully", "order": order}
