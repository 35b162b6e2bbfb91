"""movie project source text and target duration

Revision ID: 002
Revises: 001
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column("movie_projects", sa.Column("sourceText", sa.Text(), nullable=True))
    op.add_column(
        "movie_projects",
        sa.Column("targetDurationMinutes", sa.Integer(), nullable=False, server_default="10"),
    )


def downgrade() -> None:
    op.drop_column("movie_projects", "targetDurationMinutes")
    op.drop_column("movie_projects", "sourceText")
