"""MovieProject model: one multi-scene movie and its rolled-up progress."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from moviegen.db.base import Base, JSONType
from moviegen.db.models.enums import ProjectStatus, enum_column

if TYPE_CHECKING:
    from moviegen.db.models.scene import MovieScene
    from moviegen.db.models.user import User


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MovieProject(Base):
    __tablename__ = "movie_projects"
    __table_args__ = (
        Index("ix_movie_projects_status_updated", "status", "updatedAt"),
    )

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
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Story material the scene plan is written from.
    source_text: Mapped[Optional[str]] = mapped_column("sourceText", Text, nullable=True)
    target_duration_minutes: Mapped[int] = mapped_column(
        "targetDurationMinutes", Integer, default=10, nullable=False
    )
    status: Mapped[ProjectStatus] = mapped_column(
        enum_column(ProjectStatus),
        default=ProjectStatus.DRAFT,
        nullable=False,
    )
    model: Mapped[str] = mapped_column(String(50), default="kling-2.6", nullable=False)
    style: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    voice_id: Mapped[Optional[str]] = mapped_column("voiceId", String(100), nullable=True)
    current_scene: Mapped[int] = mapped_column("currentScene", Integer, default=0, nullable=False)
    total_scenes: Mapped[int] = mapped_column("totalScenes", Integer, default=0, nullable=False)
    completed_scenes: Mapped[int] = mapped_column(
        "completedScenes", Integer, default=0, nullable=False
    )
    estimated_credits: Mapped[int] = mapped_column(
        "estimatedCredits", Integer, default=0, nullable=False
    )
    spent_credits: Mapped[int] = mapped_column("spentCredits", Integer, default=0, nullable=False)
    final_video_url: Mapped[Optional[str]] = mapped_column(
        "finalVideoUrl", String(2048), nullable=True
    )
    total_duration_seconds: Mapped[Optional[float]] = mapped_column(
        "totalDurationSeconds", Float, nullable=True
    )
    error_message: Mapped[Optional[str]] = mapped_column("errorMessage", Text, nullable=True)
    script_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        "scriptData", JSONType, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        "createdAt",
        DateTime(timezone=True),
        default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        "updatedAt",
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        "completedAt",
        DateTime(timezone=True),
        nullable=True,
    )

    owner: Mapped["User"] = relationship("User", back_populates="projects", foreign_keys=[user_id])
    scenes: Mapped[List["MovieScene"]] = relationship(
        "MovieScene",
        back_populates="project",
        order_by="MovieScene.scene_number",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
