"""User/admin commands on movie projects: draft, scene plan, start, pause, resume, cancel, delete."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from moviegen.config import get_settings
from moviegen.core.exceptions import (
    InsufficientCreditsError,
    PermanentValidationError,
    ProjectNotFoundError,
    ProjectStateError,
    ScriptGenerationError,
)
from moviegen.db.models.enums import ProjectStatus, SceneStatus
from moviegen.db.models.project import MovieProject
from moviegen.db.models.scene import MovieScene
from moviegen.db.models.user import User
from moviegen.services.credit_ledger import get_balance
from moviegen.services.generation_gateway import MODELS, scene_credit_cost
from moviegen.services.llm_service import generate_movie_script
from moviegen.services.narration_service import OPENAI_VOICES

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (ProjectStatus.GENERATING, ProjectStatus.PAUSED)
CANCELLABLE_STATUSES = tuple(s for s in ProjectStatus if not s.is_terminal)
SKIPPABLE_SCENE_STATUSES = tuple(s for s in SceneStatus if not s.is_terminal)


def get_project(db: Session, project_id: uuid.UUID) -> MovieProject:
    project = db.get(MovieProject, project_id)
    if project is None:
        raise ProjectNotFoundError(f"Project {project_id} not found")
    return project


def list_projects(
    db: Session,
    user_id: Optional[uuid.UUID] = None,
    status: Optional[ProjectStatus] = None,
    limit: int = 50,
) -> list[MovieProject]:
    q = select(MovieProject).order_by(MovieProject.created_at.desc()).limit(limit)
    if user_id is not None:
        q = q.where(MovieProject.user_id == user_id)
    if status is not None:
        q = q.where(MovieProject.status == status)
    return list(db.execute(q).scalars())


def _require_status(project: MovieProject, allowed: tuple[ProjectStatus, ...], action: str) -> None:
    if project.status not in allowed:
        raise ProjectStateError(
            f"Cannot {action} a project that is {project.status.value}",
            current_status=project.status.value,
        )


def _set_status(
    db: Session,
    project: MovieProject,
    allowed: tuple[ProjectStatus, ...],
    action: str,
    **values,
) -> None:
    """
    Compare-and-set the stored row from one of `allowed`; `project.status` may be
    stale. Leaves the transaction open for the caller.
    """
    result = db.execute(
        update(MovieProject)
        .where(MovieProject.id == project.id, MovieProject.status.in_(allowed))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        return
    db.rollback()
    current = db.execute(
        select(MovieProject.status).where(MovieProject.id == project.id)
    ).scalar_one_or_none()
    if current is None:
        raise ProjectNotFoundError(f"Project {project.id} not found")
    raise ProjectStateError(f"Cannot {action} a project that is {current.value}", current_status=current.value)


def create_project(
    db: Session,
    user_id: uuid.UUID,
    title: str,
    model: str = "kling-2.6",
    style: Optional[str] = None,
    voice_id: Optional[str] = None,
    description: Optional[str] = None,
    source_text: Optional[str] = None,
    target_duration_minutes: int = 10,
) -> MovieProject:
    if db.get(User, user_id) is None:
        raise ProjectNotFoundError(f"User {user_id} not found")
    if model not in MODELS:
        raise PermanentValidationError(f"Unknown model: {model}")
    if voice_id and voice_id not in OPENAI_VOICES:
        raise PermanentValidationError(f"Unknown narration voice: {voice_id}")
    if target_duration_minutes < 1:
        raise PermanentValidationError("Target duration must be at least one minute")
    project = MovieProject(
        user_id=user_id,
        title=title,
        description=description,
        model=model,
        style=style,
        voice_id=voice_id,
        source_text=source_text,
        target_duration_minutes=target_duration_minutes,
        status=ProjectStatus.DRAFT,
    )
    db.add(project)
    db.commit()
    db.refresh(project)
    return project


def finalize_scene_plan(
    db: Session,
    project: MovieProject,
    scenes: list[dict[str, Any]],
    summary: Optional[str] = None,
) -> MovieProject:
    """
    Replace the project's scenes with `scenes` numbered 1..N (pending) and move it
    to script_ready. Each item needs a video_prompt; scene_title and narration_text
    are optional.
    """
    _require_status(project, (ProjectStatus.DRAFT, ProjectStatus.SCRIPT_READY), "plan scenes for")
    if not scenes:
        raise PermanentValidationError("A scene plan needs at least one scene")
    if any(not (s.get("video_prompt") or "").strip() for s in scenes):
        raise PermanentValidationError("Every scene needs a video prompt")

    cost = scene_credit_cost(project.model, get_settings().default_scene_credit_cost)
    script_data: dict[str, Any] = {"scenes": scenes}
    if summary:
        script_data["summary"] = summary
    _set_status(
        db,
        project,
        (ProjectStatus.DRAFT, ProjectStatus.SCRIPT_READY),
        "plan scenes for",
        status=ProjectStatus.SCRIPT_READY,
        total_scenes=len(scenes),
        current_scene=0,
        completed_scenes=0,
        estimated_credits=cost * len(scenes),
        script_data=script_data,
        error_message=None,
    )
    db.execute(delete(MovieScene).where(MovieScene.project_id == project.id))
    for number, item in enumerate(scenes, start=1):
        db.add(
            MovieScene(
                project_id=project.id,
                scene_number=number,
                scene_title=item.get("scene_title"),
                video_prompt=item["video_prompt"].strip(),
                narration_text=item.get("narration_text"),
                status=SceneStatus.PENDING,
            )
        )
    db.commit()
    db.refresh(project)
    return project


def generate_scene_plan(db: Session, project: MovieProject, client=None) -> MovieProject:
    """
    Write the scene plan from the project's source text with the LLM and finalize it.
    On failure the project keeps its status and records the error.
    """
    _require_status(project, (ProjectStatus.DRAFT, ProjectStatus.SCRIPT_READY), "write a script for")
    if not (project.source_text or "").strip():
        raise PermanentValidationError("Project has no source text to adapt")
    try:
        script = generate_movie_script(
            project.source_text,
            project.model,
            style=project.style,
            voice_id=project.voice_id,
            target_duration_minutes=project.target_duration_minutes,
            client=client,
        )
    except ScriptGenerationError as e:
        project.error_message = str(e)
        db.commit()
        logger.warning("Project %s: script generation failed: %s", project.id, e)
        raise
    logger.info("Project %s: script written with %d scenes", project.id, len(script.scenes))
    return finalize_scene_plan(db, project, script.scenes, summary=script.summary)


def start_project(db: Session, project: MovieProject) -> MovieProject:
    settings = get_settings()
    _require_status(project, (ProjectStatus.SCRIPT_READY,), "start")
    scene_count = db.execute(
        select(func.count(MovieScene.id)).where(MovieScene.project_id == project.id)
    ).scalar_one()
    if scene_count == 0 or scene_count != project.total_scenes:
        raise ProjectStateError(
            "Scene plan is incomplete; finalize it before starting",
            current_status=project.status.value,
        )

    active = db.execute(
        select(func.count(MovieProject.id)).where(
            MovieProject.user_id == project.user_id,
            MovieProject.status.in_(ACTIVE_STATUSES),
        )
    ).scalar_one()
    if active >= settings.max_active_projects_per_user:
        raise ProjectStateError(
            f"At most {settings.max_active_projects_per_user} projects can be in progress at once",
            current_status=project.status.value,
        )

    balance = get_balance(db, project.user_id) or 0
    if balance < settings.min_credits_to_start:
        raise InsufficientCreditsError(balance, settings.min_credits_to_start)

    _set_status(
        db,
        project,
        (ProjectStatus.SCRIPT_READY,),
        "start",
        status=ProjectStatus.GENERATING,
        current_scene=1,
        error_message=None,
    )
    db.commit()
    db.refresh(project)
    logger.info("Project %s started: %s scenes on %s", project.id, project.total_scenes, project.model)
    return project


def pause_project(db: Session, project: MovieProject) -> MovieProject:
    _set_status(
        db,
        project,
        (ProjectStatus.GENERATING,),
        "pause",
        status=ProjectStatus.PAUSED,
        error_message="Paused by user",
    )
    db.commit()
    db.refresh(project)
    return project


def resume_project(db: Session, project: MovieProject) -> MovieProject:
    """paused -> generating. Work resumes on the next scheduler pass where it stopped."""
    _set_status(
        db,
        project,
        (ProjectStatus.PAUSED,),
        "resume",
        status=ProjectStatus.GENERATING,
        error_message=None,
    )
    db.commit()
    db.refresh(project)
    return project


def cancel_project(db: Session, project: MovieProject) -> MovieProject:
    """Cancel the project and skip every scene that has not finished."""
    _set_status(db, project, CANCELLABLE_STATUSES, "cancel", status=ProjectStatus.CANCELLED)
    skipped = db.execute(
        update(MovieScene)
        .where(
            MovieScene.project_id == project.id,
            MovieScene.status.in_(SKIPPABLE_SCENE_STATUSES),
        )
        .values(status=SceneStatus.SKIPPED)
        .execution_options(synchronize_session=False)
    ).rowcount
    db.commit()
    db.refresh(project)
    logger.info("Project %s cancelled; %s scenes skipped", project.id, skipped)
    return project


def delete_project(db: Session, project: MovieProject) -> None:
    db.refresh(project)
    if project.status in ACTIVE_STATUSES:
        raise ProjectStateError(
            "Pause and cancel the project before deleting it",
            current_status=project.status.value,
        )
    db.delete(project)
    db.commit()
