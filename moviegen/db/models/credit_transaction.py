"""CreditTransaction model: one row per ledger mutation."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from moviegen.db.base import Base, JSONType
from moviegen.db.models.enums import TransactionType, enum_column

if TYPE_CHECKING:
    from moviegen.db.models.user import User


class CreditTransaction(Base):
    __tablename__ = "credit_transactions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        "userId",
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type: Mapped[TransactionType] = mapped_column(enum_column(TransactionType), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)  # negative for deductions
    balance_after: Mapped[int] = mapped_column("balanceAfter", Integer, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    # Plain references, not FKs: ledger history outlives deleted projects.
    project_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        "projectId", Uuid(as_uuid=True), nullable=True, index=True
    )
    scene_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        "sceneId", Uuid(as_uuid=True), nullable=True, index=True
    )
    metadata_: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        "metadata",
        JSONType,
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        "createdAt",
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    user: Mapped["User"] = relationship(
        "User", back_populates="credit_transactions", foreign_keys=[user_id]
    )
