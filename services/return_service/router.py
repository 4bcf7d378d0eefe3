from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.security import CallerIdentity, get_current_user, limiter
from shared.security.rate_limiter import return_limit

from .schemas import ReturnCreate, ReturnEnvelope, ReturnListResponse, ReturnUpdate
from .service import ReturnService

router = APIRouter(prefix="/returns", tags=["Returns"])


@router.post("", response_model=ReturnEnvelope, status_code=201)
@limiter.limit(return_limit)
async def create_return(
    request: Request,
    response: Response,
    payload: ReturnCreate,
    caller: CallerIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    created = await ReturnService.create_return(db, caller, payload)
    return {"message": "Return request submitted successfully", "return_request": created}


@router.put("/{return_id}", response_model=ReturnEnvelope)
async def update_return(
    return_id: str,
    payload: ReturnUpdate,
    caller: CallerIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    updated = await ReturnService.update_return(db, caller, return_id, payload)
    return {"message": f"Return request {updated.status.value.lower()}", "return_request": updated}


@router.get("", response_model=ReturnListResponse)
async def list_returns(
    caller: CallerIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"returns": await ReturnService.list_returns(db, caller)}


@router.get("/{return_id}", response_model=ReturnEnvelope)
async def get_return(
    return_id: str,
    caller: CallerIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    found = await ReturnService.get_return(db, caller, return_id)
    return {"message": "Return request found", "return_request": found}
