"""DocLens Credit Routes

Endpoints:
- POST /api/credits/spend - Consume one credit (metered action)
- GET /api/credits/balance - Get current balance
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
import logging

from doclens.dependencies import get_credit_service, get_current_user
from doclens.services.credit_service import CreditService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/credits", tags=["Credits"])


class SpendResponse(BaseModel):
    ok: bool = True


class BalanceResponse(BaseModel):
    credits: int


@router.post("/spend", response_model=SpendResponse)
async def spend_credit(
    user=Depends(get_current_user),
    credit_service: CreditService = Depends(get_credit_service),
):
    """Consume one credit. 402 NO_CREDITS when the balance is zero."""
    await credit_service.spend_credit(user["user_id"])
    return SpendResponse()


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(
    user=Depends(get_current_user),
    credit_service: CreditService = Depends(get_credit_service),
):
    return BalanceResponse(credits=await credit_service.get_balance(user["user_id"]))
