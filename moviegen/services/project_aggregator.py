"""Project-level rollups driven by scene transitions.

Each function is a compare-and-set on the project's status so a command that
landed in between (pause, cancel) always wins over a stale scheduler step.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from moviegen.core.exceptions import MovieGenError
from moviegen.db.models.enums import ProjectStatus, SceneStatus
from moviegen.db.models.project import MovieProject
from moviegen.db.models.scene import MovieScene
from moviegen.services.continuity import final_video_key

logger = logging.getLogger(__name__)

INSUFFICIENT_CREDITS_MESSAGE = "Insufficient credits. Add more credits and resume."


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _update_generating(db: Session, project_id: uuid.UUID, **values) -> bool:
    result = db.execute(
        update(MovieProject)
        .where(MovieProject.id == project_id, MovieProject.status == ProjectStatus.GENERATING)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def completed_scene_count(db: Session, project_id: uuid.UUID) -> int:
    return db.execute(
        select(func.count(MovieScene.id)).where(
            MovieScene.project_id == project_id,
            MovieScene.status == SceneStatus.COMPLETED,
        )
    ).scalar_one()


def complete_scene(
    db: Session,
    project_id: uuid.UUID,
    scene_id: uuid.UUID,
    scene_number: int,
    public_video_url: str,
    last_frame_url: Optional[str],
    duration_seconds: Optional[float],
    now: Optional[datetime] = None,
) -> bool:
    """
    merging -> completed, then in the same transaction recount completed_scenes and
    move current_scene past this scene if the project is still generating.
    """
    now = now or _now()
    result = db.execute(
        update(MovieScene)
        .where(MovieScene.id == scene_id, MovieScene.status == SceneStatus.MERGING)
        .values(
            status=SceneStatus.COMPLETED,
            public_video_url=public_video_url,
            last_frame_url=last_frame_url,
            duration_seconds=duration_seconds,
            error_message=None,
            completed_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        logger.info("Scene %s left merging before completion; ignoring", scene_id)
        return False
    db.execute(
        update(MovieProject)
        .where(MovieProject.id == project_id)
        .values(completed_scenes=completed_scene_count(db, project_id))
        .execution_options(synchronize_session=False)
    )
    db.execute(
        update(MovieProject)
        .where(
            MovieProject.id == project_id,
            MovieProject.status == ProjectStatus.GENERATING,
            MovieProject.current_scene == scene_number,
            MovieProject.total_scenes > scene_number,
        )
        .values(current_scene=scene_number + 1)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return True


def advance_project(db: Session, project_id: uuid.UUID, from_scene: int) -> bool:
    result = db.execute(
        update(MovieProject)
        .where(
            MovieProject.id == project_id,
            MovieProject.status == ProjectStatus.GENERATING,
            MovieProject.current_scene == from_scene,
        )
        .values(current_scene=from_scene + 1)
        .execution_options(synchronize_session=False)
    )
    moved = result.rowcount == 1
    if moved:
        db.commit()
    else:
        db.rollback()
    return moved


def pause_project(db: Session, project_id: uuid.UUID, message: str) -> bool:
    paused = _update_generating(db, project_id, status=ProjectStatus.PAUSED, error_message=message)
    db.commit()
    if paused:
        logger.warning("Project %s paused: %s", project_id, message)
    return paused


def fail_project(db: Session, project_id: uuid.UUID, message: str) -> bool:
    failed = _update_generating(db, project_id, status=ProjectStatus.FAILED, error_message=message)
    db.commit()
    if failed:
        logger.error("Project %s failed: %s", project_id, message)
    return failed


def _concatenate_final(project_id: uuid.UUID, scenes: list[MovieScene], media, storage) -> Optional[str]:
    urls = [s.public_video_url or s.video_url for s in scenes]
    if len(urls) == 1:
        return urls[0]
    if media is None or storage is None or not all(urls):
        return None
    try:
        videos = [media.download(url) for url in urls]
        final = media.concatenate(videos)
        return storage.put(final_video_key(project_id), final, "video/mp4")
    except MovieGenError as e:
        # The scenes are done and paid for; a missing final cut must not fail the project.
        logger.warning("Final concatenation for project %s failed: %s", project_id, e)
        return None


def finalize_project(
    db: Session,
    project_id: uuid.UUID,
    media=None,
    storage=None,
    now: Optional[datetime] = None,
) -> bool:
    """
    Called once the last scene is completed. Requires completed_scenes == total_scenes;
    anything else means scenes went missing and the project is failed instead.
    """
    now = now or _now()
    project = db.get(MovieProject, project_id)
    if project is None or project.status != ProjectStatus.GENERATING:
        return False
    scenes = list(
        db.execute(
            select(MovieScene)
            .where(MovieScene.project_id == project_id, MovieScene.status == SceneStatus.COMPLETED)
            .order_by(MovieScene.scene_number)
        ).scalars()
    )
    total = project.total_scenes
    if total == 0 or len(scenes) < total:
        return fail_project(db, project_id, f"Only {len(scenes)} of {total} scenes completed")

    final_url = _concatenate_final(project_id, scenes, media, storage)
    duration = sum(s.duration_seconds or 0 for s in scenes)
    completed = _update_generating(
        db,
        project_id,
        status=ProjectStatus.COMPLETED,
        completed_scenes=len(scenes),
        current_scene=total,
        final_video_url=final_url,
        total_duration_seconds=duration,
        error_message=None,
        completed_at=now,
    )
    db.commit()
    if completed:
        logger.info("Project %s completed: %s scenes, %.1fs", project_id, len(scenes), duration)
    return completed
