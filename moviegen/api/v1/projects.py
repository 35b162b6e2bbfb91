"""Admin endpoints for movie projects."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, Response, status

from moviegen.config import get_settings
from moviegen.core.exceptions import (
    InsufficientCreditsError,
    PermanentValidationError,
    ProjectNotFoundError,
    ProjectStateError,
    ScriptGenerationError,
    insufficient_credits_exception,
    project_state_conflict_exception,
)
from moviegen.db.models.enums import ProjectStatus
from moviegen.dependencies import AdminAccess, DbSession
from moviegen.schemas.project import (
    ProjectCreateBody,
    ProjectResponse,
    ScenePlanBody,
    ScenePlanItem,
    SceneResponse,
    ScriptPreviewBody,
    ScriptPreviewResponse,
)
from moviegen.services import llm_service, project_commands
from moviegen.services.generation_gateway import MODELS, scene_credit_cost

router = APIRouter(prefix="/projects", tags=["projects"], dependencies=[AdminAccess])


def _scene_response(scene) -> SceneResponse:
    return SceneResponse(
        id=scene.id,
        sceneNumber=scene.scene_number,
        sceneTitle=scene.scene_title,
        videoPrompt=scene.video_prompt,
        narrationText=scene.narration_text,
        status=scene.status.value,
        retryCount=scene.retry_count,
        creditCost=scene.credit_cost,
        generationMode=scene.generation_mode.value if scene.generation_mode else None,
        videoUrl=scene.video_url,
        publicVideoUrl=scene.public_video_url,
        lastFrameUrl=scene.last_frame_url,
        durationSeconds=scene.duration_seconds,
        errorMessage=scene.error_message,
        completedAt=scene.completed_at,
    )


def _project_response(project, with_scenes: bool = False) -> ProjectResponse:
    return ProjectResponse(
        id=project.id,
        userId=project.user_id,
        title=project.title,
        description=project.description,
        status=project.status.value,
        model=project.model,
        style=project.style,
        voiceId=project.voice_id,
        sourceText=project.source_text,
        targetDurationMinutes=project.target_duration_minutes,
        currentScene=project.current_scene,
        totalScenes=project.total_scenes,
        completedScenes=project.completed_scenes,
        estimatedCredits=project.estimated_credits,
        spentCredits=project.spent_credits,
        finalVideoUrl=project.final_video_url,
        totalDurationSeconds=project.total_duration_seconds,
        errorMessage=project.error_message,
        createdAt=project.created_at,
        updatedAt=project.updated_at,
        completedAt=project.completed_at,
        scenes=[_scene_response(s) for s in project.scenes] if with_scenes else None,
    )


def _require_project(db: DbSession, project_id: UUID):
    try:
        return project_commands.get_project(db, project_id)
    except ProjectNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")


def _run_command(command, db: DbSession, project_id: UUID, *args):
    project = _require_project(db, project_id)
    try:
        return command(db, project, *args)
    except ProjectStateError as e:
        raise project_state_conflict_exception(e)
    except InsufficientCreditsError as e:
        raise insufficient_credits_exception(e.balance, e.required, str(e))
    except PermanentValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except ScriptGenerationError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


@router.get("", response_model=list[ProjectResponse])
def projects_list(
    db: DbSession,
    userId: Optional[UUID] = None,
    status_filter: Optional[ProjectStatus] = Query(None, alias="status"),
    limit: int = 50,
):
    projects = project_commands.list_projects(db, user_id=userId, status=status_filter, limit=limit)
    return [_project_response(p) for p in projects]


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
def projects_create(body: ProjectCreateBody, db: DbSession):
    try:
        project = project_commands.create_project(
            db,
            user_id=body.userId,
            title=body.title,
            model=body.model,
            style=body.style,
            voice_id=body.voiceId,
            description=body.description,
            source_text=body.sourceText,
            target_duration_minutes=body.targetDurationMinutes,
        )
    except ProjectNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PermanentValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return _project_response(project)


@router.post("/preview-script", response_model=ScriptPreviewResponse)
def projects_preview_script(body: ScriptPreviewBody):
    """Write a scene plan from source text without saving anything."""
    if body.model not in MODELS:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"Unknown model: {body.model}")
    try:
        script = llm_service.generate_movie_script(
            body.sourceText,
            body.model,
            style=body.style,
            voice_id=body.voiceId,
            target_duration_minutes=body.targetDurationMinutes,
        )
    except PermanentValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except ScriptGenerationError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    cost = scene_credit_cost(body.model, get_settings().default_scene_credit_cost)
    return ScriptPreviewResponse(
        scenes=[
            ScenePlanItem(
                videoPrompt=s["video_prompt"],
                sceneTitle=s["scene_title"],
                narrationText=s["narration_text"],
            )
            for s in script.scenes
        ],
        summary=script.summary,
        estimatedDurationSeconds=script.estimated_duration_seconds,
        estimatedCredits=cost * len(script.scenes),
    )


@router.get("/{id}", response_model=ProjectResponse)
def projects_get(id: UUID, db: DbSession):
    """Project with its scenes in scene order."""
    return _project_response(_require_project(db, id), with_scenes=True)


@router.put("/{id}/scenes", response_model=ProjectResponse)
def projects_scene_plan(id: UUID, body: ScenePlanBody, db: DbSession):
    scenes = [
        {
            "video_prompt": item.videoPrompt,
            "scene_title": item.sceneTitle,
            "narration_text": item.narrationText,
        }
        for item in body.scenes
    ]
    project = _run_command(project_commands.finalize_scene_plan, db, id, scenes)
    return _project_response(project, with_scenes=True)


@router.post("/{id}/generate-script", response_model=ProjectResponse)
def projects_generate_script(id: UUID, db: DbSession):
    """Write the scene plan from the project's source text and move it to script_ready."""
    project = _run_command(project_commands.generate_scene_plan, db, id)
    return _project_response(project, with_scenes=True)


@router.post("/{id}/start", response_model=ProjectResponse)
def projects_start(id: UUID, db: DbSession):
    return _project_response(_run_command(project_commands.start_project, db, id))


@router.post("/{id}/pause", response_model=ProjectResponse)
def projects_pause(id: UUID, db: DbSession):
    return _project_response(_run_command(project_commands.pause_project, db, id))


@router.post("/{id}/resume", response_model=ProjectResponse)
def projects_resume(id: UUID, db: DbSession):
    return _project_response(_run_command(project_commands.resume_project, db, id))


@router.post("/{id}/cancel", response_model=ProjectResponse)
def projects_cancel(id: UUID, db: DbSession):
    return _project_response(_run_command(project_commands.cancel_project, db, id), with_scenes=True)


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def projects_delete(id: UUID, db: DbSession):
    _run_command(project_commands.delete_project, db, id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
