from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.security import CallerIdentity, get_current_user, set_csrf_token, verify_csrf_token
from services.payment_service.gateway import GatewayClient, get_gateway_client

from .schemas import RefundCreate, RefundEnvelope, RefundListResponse
from .service import RefundService

router = APIRouter(prefix="/refunds", tags=["Refunds"])


@router.post(
    "",
    response_model=RefundEnvelope,
    status_code=201,
    dependencies=[Depends(get_current_user), Depends(verify_csrf_token)],
)
async def create_refund(
    payload: RefundCreate,
    response: Response,
    caller: CallerIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: GatewayClient = Depends(get_gateway_client),
):
    refund = await RefundService.create_refund(db, caller, payload, gateway)
    set_csrf_token(response)
    return {"message": "Refund processed successfully", "refund": refund}


@router.get("", response_model=RefundListResponse)
async def list_refunds(
    caller: CallerIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"refunds": await RefundService.list_refunds(db, caller)}
