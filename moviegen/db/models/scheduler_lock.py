"""SchedulerLock model: one row per running periodic job."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from moviegen.db.base import Base


class SchedulerLock(Base):
    __tablename__ = "scheduler_locks"

    # The primary key is the uniqueness constraint the lock relies on.
    job_name: Mapped[str] = mapped_column("jobName", String(100), primary_key=True)
    lock_id: Mapped[str] = mapped_column("lockId", String(100), nullable=False)
    acquired_at: Mapped[datetime] = mapped_column("acquiredAt", DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(
        "expiresAt", DateTime(timezone=True), nullable=False, index=True
    )
