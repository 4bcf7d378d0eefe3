from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.security import CallerIdentity, get_current_user

from .schemas import ReplacementCreate, ReplacementEnvelope, ReplacementListResponse
from .service import ReplacementService

router = APIRouter(prefix="/replacements", tags=["Replacements"])


@router.post("", response_model=ReplacementEnvelope, status_code=201)
async def create_replacement(
    payload: ReplacementCreate,
    caller: CallerIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    replacement, order = await ReplacementService.create_replacement(db, caller, payload)
    return {
        "message": "Replacement request submitted successfully",
        "replacement": replacement,
        "order": order,
    }


@router.get("", response_model=ReplacementListResponse)
async def list_replacements(
    caller: CallerIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"replacements": await ReplacementService.list_replacements(db, caller)}
