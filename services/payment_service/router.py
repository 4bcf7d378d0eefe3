from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.security import CallerIdentity, enforce_limit, get_current_user, ip_key, limiter, verify_origin
from shared.security.rate_limiter import verify_limit, webhook_limit

from .schemas import PaymentVerificationRequest, PaymentVerificationResponse, WebhookAck
from .service import ReconciliationService

SIGNATURE_HEADER = "X-Razorpay-Signature"

router = APIRouter(prefix="/payments", tags=["Payments"])


# Unauthenticated by identity, authenticated by signature
@router.post("/webhook", response_model=WebhookAck, response_model_exclude_none=True)
@limiter.limit(webhook_limit, key_func=ip_key)
async def payment_webhook(
    request: Request,   # REQUIRED: slowapi needs this to check IP/Headers
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    # The signature covers the exact bytes; never parse before reading them raw
    raw_body = await request.body()
    return await ReconciliationService.handle_webhook(db, raw_body, request.headers.get(SIGNATURE_HEADER))


@router.post(
    "/verify",
    response_model=PaymentVerificationResponse,
    # Budget is spent before the origin and identity checks
    dependencies=[Depends(enforce_limit(verify_limit, scope="payments_verify")), Depends(verify_origin)],
)
async def verify_payment(
    payload: PaymentVerificationRequest,
    caller: CallerIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ReconciliationService.verify_payment(db, caller, payload)
