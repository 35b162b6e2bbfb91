"""initial

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("balanceCredits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("createdAt", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updatedAt", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('"balanceCredits" >= 0', name="users_balance_non_negative"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "credit_transactions",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("userId", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("balanceAfter", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(255), nullable=True),
        sa.Column("projectId", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("sceneId", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.Column("createdAt", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["userId"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_credit_transactions_userId", "credit_transactions", ["userId"])
    op.create_index("ix_credit_transactions_projectId", "credit_transactions", ["projectId"])
    op.create_index("ix_credit_transactions_sceneId", "credit_transactions", ["sceneId"])

    op.create_table(
        "movie_projects",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("userId", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(30), nullable=False),
        sa.Column("model", sa.String(50), nullable=False),
        sa.Column("style", sa.String(50), nullable=True),
        sa.Column("voiceId", sa.String(100), nullable=True),
        sa.Column("currentScene", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("totalScenes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completedScenes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("estimatedCredits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("spentCredits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("finalVideoUrl", sa.String(2048), nullable=True),
        sa.Column("totalDurationSeconds", sa.Float(), nullable=True),
        sa.Column("errorMessage", sa.Text(), nullable=True),
        sa.Column("scriptData", postgresql.JSONB(), nullable=True),
        sa.Column("createdAt", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updatedAt", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completedAt", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["userId"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_movie_projects_userId", "movie_projects", ["userId"])
    op.create_index("ix_movie_projects_status_updated", "movie_projects", ["status", "updatedAt"])

    op.create_table(
        "movie_scenes",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("projectId", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("sceneNumber", sa.Integer(), nullable=False),
        sa.Column("sceneTitle", sa.String(200), nullable=True),
        sa.Column("videoPrompt", sa.Text(), nullable=False),
        sa.Column("narrationText", sa.Text(), nullable=True),
        sa.Column("status", sa.String(30), nullable=False),
        sa.Column("retryCount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("creditCost", sa.Integer(), nullable=True),
        sa.Column("generationReference", sa.String(255), nullable=True),
        sa.Column("generationMode", sa.String(30), nullable=True),
        sa.Column("generationStartedAt", sa.DateTime(timezone=True), nullable=True),
        sa.Column("videoUrl", sa.String(2048), nullable=True),
        sa.Column("narratedVideoUrl", sa.String(2048), nullable=True),
        sa.Column("publicVideoUrl", sa.String(2048), nullable=True),
        sa.Column("lastFrameUrl", sa.String(2048), nullable=True),
        sa.Column("durationSeconds", sa.Float(), nullable=True),
        sa.Column("errorMessage", sa.Text(), nullable=True),
        sa.Column("createdAt", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completedAt", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["projectId"], ["movie_projects.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("projectId", "sceneNumber", name="movie_scenes_unique_number"),
    )
    op.create_index("ix_movie_scenes_projectId", "movie_scenes", ["projectId"])
    op.create_index("ix_movie_scenes_status", "movie_scenes", ["status"])

    op.create_table(
        "scheduler_locks",
        sa.Column("jobName", sa.String(100), nullable=False),
        sa.Column("lockId", sa.String(100), nullable=False),
        sa.Column("acquiredAt", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expiresAt", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("jobName"),
    )
    op.create_index("ix_scheduler_locks_expiresAt", "scheduler_locks", ["expiresAt"])


def downgrade() -> None:
    op.drop_table("scheduler_locks")
    op.drop_table("movie_scenes")
    op.drop_table("movie_projects")
    op.drop_table("credit_transactions")
    op.drop_table("users")
