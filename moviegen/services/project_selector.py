"""Pick the generating projects a scheduler pass will work on."""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from moviegen.db.models.enums import ProjectStatus
from moviegen.db.models.project import MovieProject
from moviegen.db.models.scene import MovieScene


def select_generating_projects(db: Session, batch_size: int) -> list[MovieProject]:
    """
    Up to `batch_size` generating projects, least recently updated first.

    Every transition bumps updated_at, so projects that made progress move to
    the back of the queue and a large batch cannot starve the rest.
    """
    if batch_size <= 0:
        return []
    return list(
        db.execute(
            select(MovieProject)
            .where(MovieProject.status == ProjectStatus.GENERATING)
            .order_by(MovieProject.updated_at.asc(), MovieProject.id.asc())
            .limit(batch_size)
        ).scalars()
    )


def current_scene(db: Session, project: MovieProject) -> Optional[MovieScene]:
    return db.execute(
        select(MovieScene).where(
            MovieScene.project_id == project.id,
            MovieScene.scene_number == project.current_scene,
        )
    ).scalar_one_or_none()


def get_project(db: Session, project_id: uuid.UUID) -> Optional[MovieProject]:
    return db.get(MovieProject, project_id)
