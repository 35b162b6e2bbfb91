"""Admin credit endpoints: read balance, grant top-ups."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from moviegen.dependencies import AdminAccess, DbSession
from moviegen.schemas.credits import BalanceResponse, CreditGrantBody
from moviegen.services import credit_ledger

router = APIRouter(prefix="/users/{user_id}/credits", tags=["credits"], dependencies=[AdminAccess])


@router.get("", response_model=BalanceResponse)
def credits_balance(user_id: UUID, db: DbSession):
    balance = credit_ledger.get_balance(db, user_id)
    if balance is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return BalanceResponse(userId=user_id, balanceCredits=balance)


@router.post("/grant", response_model=BalanceResponse)
def credits_grant(user_id: UUID, body: CreditGrantBody, db: DbSession):
    balance = credit_ledger.grant(db, user_id, body.amount, body.reason)
    if balance is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return BalanceResponse(userId=user_id, balanceCredits=balance)
