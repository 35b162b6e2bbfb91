"""User model. Holds the per-owner credit balance."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import CheckConstraint, DateTime, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from moviegen.db.base import Base

if TYPE_CHECKING:
    from moviegen.db.models.credit_transaction import CreditTransaction
    from moviegen.db.models.project import MovieProject


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint('"balanceCredits" >= 0', name="users_balance_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    # Mutated only through moviegen.services.credit_ledger.
    balance_credits: Mapped[int] = mapped_column(
        "balanceCredits", Integer, default=0, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        "createdAt",
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        "updatedAt",
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    projects: Mapped[List["MovieProject"]] = relationship(
        "MovieProject", back_populates="owner", passive_deletes=True
    )
    credit_transactions: Mapped[List["CreditTransaction"]] = relationship(
        "CreditTransaction", back_populates="user", passive_deletes=True
    )
