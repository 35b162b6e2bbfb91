"""Credit balance and admin grant schemas."""

from uuid import UUID

from pydantic import BaseModel, Field


class CreditGrantBody(BaseModel):
    amount: int = Field(..., gt=0)
    reason: str = "admin grant"


class BalanceResponse(BaseModel):
    userId: UUID
    balanceCredits: int
