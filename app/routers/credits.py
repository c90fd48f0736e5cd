from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from app.deps import get_current_profile
from app.models.profile import CreditType, Profile
from app.services import credits as credits_service
from app.services import profiles as profile_service

router = APIRouter()


class UseCreditsRequest(BaseModel):
    amount: int = Field(gt=0)
    reason: str | None = "Credit usage"
    credit_type: CreditType = "listing"


@router.get("/balance")
async def credits_balance(profile: Profile = Depends(get_current_profile)):
    """Return both balances for the caller."""
    return await credits_service.get_balances(profile.id)


@router.post("/use")
async def credits_use(body: UseCreditsRequest, profile: Profile = Depends(get_current_profile)):
    """Spend the caller's own credits; a short balance fails without a partial debit."""
    return await credits_service.use_balance(profile.id, body.amount, body.reason, body.credit_type)


@router.get("/transactions")
async def credits_transactions(
    profile: Profile = Depends(get_current_profile),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """Transaction history visible to the caller (newest first)."""
    records = await credits_service.list_transactions(profile.id, limit=limit, offset=offset)
    emails = await profile_service.emails_by_id(
        [r.user_id for r in records] + [r.performed_by for r in records]
    )
    return {
        "transactions": [credits_service.transaction_to_dict(r, emails) for r in records],
        "limit": limit,
        "offset": offset,
    }
