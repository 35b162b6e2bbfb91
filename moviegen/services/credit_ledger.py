"""Credit ledger: the only code allowed to change a user's balance.

Every mutation is a single conditional UPDATE on the balance row plus a
CreditTransaction row, committed together. Project spend and the scene's
credit_cost move in the same transaction as the balance (deduct-and-bill).
Failures are returned as values so callers can branch without exceptions.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import case, select, update
from sqlalchemy.orm import Session

from moviegen.db.models.credit_transaction import CreditTransaction
from moviegen.db.models.enums import TransactionType
from moviegen.db.models.project import MovieProject
from moviegen.db.models.scene import MovieScene
from moviegen.db.models.user import User

logger = logging.getLogger(__name__)

INVALID_AMOUNT = "invalid_amount"
ACCOUNT_NOT_FOUND = "account_not_found"
INSUFFICIENT_CREDITS = "insufficient_credits"


@dataclass(frozen=True)
class DeductContext:
    """What a deduction pays for. Scene deductions also bill the scene and project."""

    reason: str = "generation"
    project_id: Optional[uuid.UUID] = None
    scene_id: Optional[uuid.UUID] = None
    metadata: Optional[dict[str, Any]] = None


@dataclass(frozen=True)
class DeductResult:
    success: bool
    new_balance: int
    error: Optional[str] = None
    already_billed: bool = False

    @property
    def insufficient_funds(self) -> bool:
        return self.error == INSUFFICIENT_CREDITS


def get_balance(db: Session, user_id: uuid.UUID) -> Optional[int]:
    return db.execute(select(User.balance_credits).where(User.id == user_id)).scalar_one_or_none()


def _claim_scene_billing(db: Session, scene_id: uuid.UUID, amount: int) -> bool:
    """Stamp credit_cost on a never-billed scene. False if it was billed before."""
    result = db.execute(
        update(MovieScene)
        .where(MovieScene.id == scene_id, MovieScene.credit_cost.is_(None))
        .values(credit_cost=amount)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def deduct(
    db: Session,
    user_id: uuid.UUID,
    amount: int,
    context: Optional[DeductContext] = None,
) -> DeductResult:
    """
    Atomically take `amount` credits from the user.

    Of K concurrent calls with cost C against balance B exactly floor(B/C) succeed:
    the WHERE clause re-checks the balance under the row's write lock, so there is
    no read-modify-write window.
    """
    context = context or DeductContext()
    if amount <= 0:
        return DeductResult(False, get_balance(db, user_id) or 0, INVALID_AMOUNT)

    if context.scene_id is not None and not _claim_scene_billing(db, context.scene_id, amount):
        # Billed by an earlier invocation that died before submitting.
        db.rollback()
        logger.info("Scene %s already billed; not charging again", context.scene_id)
        return DeductResult(True, get_balance(db, user_id) or 0, already_billed=True)

    new_balance = db.execute(
        update(User)
        .where(User.id == user_id, User.balance_credits >= amount)
        .values(balance_credits=User.balance_credits - amount)
        .returning(User.balance_credits)
        .execution_options(synchronize_session=False)
    ).scalar_one_or_none()

    if new_balance is None:
        db.rollback()
        balance = get_balance(db, user_id)
        if balance is None:
            return DeductResult(False, 0, ACCOUNT_NOT_FOUND)
        return DeductResult(False, balance, INSUFFICIENT_CREDITS)

    if context.project_id is not None:
        db.execute(
            update(MovieProject)
            .where(MovieProject.id == context.project_id)
            .values(spent_credits=MovieProject.spent_credits + amount)
            .execution_options(synchronize_session=False)
        )
    db.add(
        CreditTransaction(
            user_id=user_id,
            type=TransactionType.GENERATION,
            amount=-amount,
            balance_after=new_balance,
            reason=context.reason,
            project_id=context.project_id,
            scene_id=context.scene_id,
            metadata_=context.metadata,
        )
    )
    db.commit()
    return DeductResult(True, new_balance)


def _credit(
    db: Session,
    user_id: uuid.UUID,
    amount: int,
    tx_type: TransactionType,
    reason: str,
    project_id: Optional[uuid.UUID] = None,
    scene_id: Optional[uuid.UUID] = None,
) -> Optional[int]:
    new_balance = db.execute(
        update(User)
        .where(User.id == user_id)
        .values(balance_credits=User.balance_credits + amount)
        .returning(User.balance_credits)
        .execution_options(synchronize_session=False)
    ).scalar_one_or_none()
    if new_balance is None:
        return None
    db.add(
        CreditTransaction(
            user_id=user_id,
            type=tx_type,
            amount=amount,
            balance_after=new_balance,
            reason=reason,
            project_id=project_id,
            scene_id=scene_id,
        )
    )
    return new_balance


def refund(
    db: Session,
    user_id: uuid.UUID,
    amount: int,
    reason: str,
    project_id: Optional[uuid.UUID] = None,
    scene_id: Optional[uuid.UUID] = None,
    commit: bool = True,
) -> bool:
    """
    Trusted internal refund for the orchestrator's failure path. Always reports
    success. Project spend is lowered in lockstep and never goes below zero.

    With commit=False the caller owns the transaction, so a refund can be made
    atomic with the scene transition that triggered it.
    """
    if amount > 0:
        new_balance = _credit(
            db, user_id, amount, TransactionType.REFUND, reason,
            project_id=project_id, scene_id=scene_id,
        )
        if new_balance is None:
            logger.error("Refund of %s credits for missing user %s dropped", amount, user_id)
        if project_id is not None:
            remaining = MovieProject.spent_credits - amount
            db.execute(
                update(MovieProject)
                .where(MovieProject.id == project_id)
                .values(spent_credits=case((remaining < 0, 0), else_=remaining))
                .execution_options(synchronize_session=False)
            )
        logger.info("Refunded %s credits to %s: %s", amount, user_id, reason)
    if commit:
        db.commit()
    return True


def grant(db: Session, user_id: uuid.UUID, amount: int, reason: str) -> Optional[int]:
    """Admin top-up. Returns the new balance, or None for an invalid amount or unknown user."""
    if amount <= 0:
        return None
    new_balance = _credit(db, user_id, amount, TransactionType.ADMIN_GRANT, reason)
    if new_balance is None:
        db.rollback()
        return None
    db.commit()
    return new_balance
