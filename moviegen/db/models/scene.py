"""MovieScene model: one fixed-length segment of a project, advanced by the orchestrator."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from moviegen.db.base import Base
from moviegen.db.models.enums import GenerationMode, SceneStatus, enum_column

if TYPE_CHECKING:
    from moviegen.db.models.project import MovieProject


class MovieScene(Base):
    __tablename__ = "movie_scenes"
    __table_args__ = (
        UniqueConstraint("projectId", "sceneNumber", name="movie_scenes_unique_number"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    project_id: Mapped[uuid.UUID] = mapped_column(
        "projectId",
        Uuid(as_uuid=True),
        ForeignKey("movie_projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    scene_number: Mapped[int] = mapped_column("sceneNumber", Integer, nullable=False)
    scene_title: Mapped[Optional[str]] = mapped_column("sceneTitle", String(200), nullable=True)
    video_prompt: Mapped[str] = mapped_column("videoPrompt", Text, nullable=False)
    narration_text: Mapped[Optional[str]] = mapped_column("narrationText", Text, nullable=True)
    status: Mapped[SceneStatus] = mapped_column(
        enum_column(SceneStatus),
        default=SceneStatus.PENDING,
        nullable=False,
        index=True,
    )
    retry_count: Mapped[int] = mapped_column(
        "retryCount", Integer, default=0, server_default="0", nullable=False
    )
    # NULL until first billed; never rewritten afterwards.
    credit_cost: Mapped[Optional[int]] = mapped_column("creditCost", Integer, nullable=True)
    generation_reference: Mapped[Optional[str]] = mapped_column(
        "generationReference", String(255), nullable=True
    )
    generation_mode: Mapped[Optional[GenerationMode]] = mapped_column(
        "generationMode", enum_column(GenerationMode), nullable=True
    )
    generation_started_at: Mapped[Optional[datetime]] = mapped_column(
        "generationStartedAt", DateTime(timezone=True), nullable=True
    )
    video_url: Mapped[Optional[str]] = mapped_column("videoUrl", String(2048), nullable=True)
    narrated_video_url: Mapped[Optional[str]] = mapped_column(
        "narratedVideoUrl", String(2048), nullable=True
    )
    public_video_url: Mapped[Optional[str]] = mapped_column(
        "publicVideoUrl", String(2048), nullable=True
    )
    last_frame_url: Mapped[Optional[str]] = mapped_column(
        "lastFrameUrl", String(2048), nullable=True
    )
    duration_seconds: Mapped[Optional[float]] = mapped_column(
        "durationSeconds", Float, nullable=True
    )
    error_message: Mapped[Optional[str]] = mapped_column("errorMessage", Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        "createdAt",
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        "completedAt", DateTime(timezone=True), nullable=True
    )

    project: Mapped["MovieProject"] = relationship(
        "MovieProject", back_populates="scenes", foreign_keys=[project_id]
    )
