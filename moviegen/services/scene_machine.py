"""Per-scene state machine.

Planning is pure: given the clock, a project snapshot and its current scene
snapshot, `plan_scene` returns the single transition intent the runner should
apply next. Nothing here touches the database or the network, so a pass can be
replayed and unit tested without a scheduler.

    pending ──submit──▶ generating ──done──▶ narrating ──▶ merging ──▶ completed
       │  └─fast path (video already recorded)──────────────▲   │
       ▼                    │              │                │   │
     failed ◀───────────────┴──────────────┴────────────────┘   │
       └──retry (retry_count+1)──▶ pending                        ▼
                                                           next scene / project done

The retry guard is `retry_count > 0`: it decides both whether entering generating
is billed and whether a failure is refunded, so one scene is charged at most
once and refunded at most once whatever its retry history.
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from moviegen.config import Settings
from moviegen.db.models.enums import GenerationMode, ProjectStatus, SceneStatus
from moviegen.db.models.project import MovieProject
from moviegen.db.models.scene import MovieScene
from moviegen.services.generation_gateway import GenerationPoll, GenerationStatus


class IntentKind(str, enum.Enum):
    WAIT = "wait"
    SUBMIT = "submit"
    FAST_FORWARD = "fast_forward"
    POLL = "poll"
    GENERATION_DONE = "generation_done"
    NARRATE = "narrate"
    SKIP_NARRATION = "skip_narration"
    MERGE = "merge"
    FAIL_SCENE = "fail_scene"
    RETRY = "retry"
    ADVANCE = "advance"
    COMPLETE_PROJECT = "complete_project"
    FAIL_PROJECT = "fail_project"


@dataclass(frozen=True)
class MachinePolicy:
    max_retries: int = 3
    generation_timeout: timedelta = timedelta(minutes=30)

    @classmethod
    def from_settings(cls, settings: Settings) -> "MachinePolicy":
        return cls(
            max_retries=settings.scene_max_retries,
            generation_timeout=timedelta(minutes=settings.scene_generation_timeout_minutes),
        )


@dataclass(frozen=True)
class ProjectView:
    id: uuid.UUID
    user_id: uuid.UUID
    status: ProjectStatus
    model: str
    current_scene: int
    total_scenes: int
    style: Optional[str] = None
    voice_id: Optional[str] = None

    @classmethod
    def of(cls, project: MovieProject) -> "ProjectView":
        return cls(
            id=project.id,
            user_id=project.user_id,
            status=project.status,
            model=project.model,
            current_scene=project.current_scene,
            total_scenes=project.total_scenes,
            style=project.style,
            voice_id=project.voice_id,
        )


@dataclass(frozen=True)
class SceneView:
    id: uuid.UUID
    project_id: uuid.UUID
    scene_number: int
    status: SceneStatus
    video_prompt: str = ""
    retry_count: int = 0
    credit_cost: Optional[int] = None
    generation_reference: Optional[str] = None
    generation_mode: Optional[GenerationMode] = None
    generation_started_at: Optional[datetime] = None
    video_url: Optional[str] = None
    narrated_video_url: Optional[str] = None
    narration_text: Optional[str] = None
    error_message: Optional[str] = None

    @classmethod
    def of(cls, scene: MovieScene) -> "SceneView":
        return cls(
            id=scene.id,
            project_id=scene.project_id,
            scene_number=scene.scene_number,
            status=scene.status,
            video_prompt=scene.video_prompt,
            retry_count=scene.retry_count,
            credit_cost=scene.credit_cost,
            generation_reference=scene.generation_reference,
            generation_mode=scene.generation_mode,
            generation_started_at=scene.generation_started_at,
            video_url=scene.video_url,
            narrated_video_url=scene.narrated_video_url,
            narration_text=scene.narration_text,
            error_message=scene.error_message,
        )

    @property
    def is_retry(self) -> bool:
        return self.retry_count > 0


@dataclass(frozen=True)
class TransitionIntent:
    kind: IntentKind
    project_id: uuid.UUID
    scene_id: Optional[uuid.UUID] = None
    scene_number: Optional[int] = None
    from_status: Optional[SceneStatus] = None
    to_status: Optional[SceneStatus] = None
    bill: bool = False
    refund: bool = False
    permanent: bool = False
    video_url: Optional[str] = None
    message: Optional[str] = None


def is_retry(scene: SceneView) -> bool:
    return scene.is_retry


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _after_video_status(project: ProjectView) -> SceneStatus:
    return SceneStatus.NARRATING if project.voice_id else SceneStatus.MERGING


def _scene_intent(kind: IntentKind, project: ProjectView, scene: SceneView, **kwargs) -> TransitionIntent:
    return TransitionIntent(
        kind=kind,
        project_id=project.id,
        scene_id=scene.id,
        scene_number=scene.scene_number,
        from_status=scene.status,
        **kwargs,
    )


def fail_scene_intent(
    project: ProjectView,
    scene: SceneView,
    message: str,
    permanent: bool = False,
) -> TransitionIntent:
    return _scene_intent(
        IntentKind.FAIL_SCENE,
        project,
        scene,
        to_status=SceneStatus.FAILED,
        refund=not scene.is_retry,
        permanent=permanent,
        message=message,
    )


def plan_scene(
    now: datetime,
    project: ProjectView,
    scene: Optional[SceneView],
    policy: MachinePolicy = MachinePolicy(),
) -> TransitionIntent:
    """Decide the next transition for the project's current scene."""
    if project.status != ProjectStatus.GENERATING:
        return TransitionIntent(IntentKind.WAIT, project.id, message=f"project is {project.status.value}")
    if scene is None:
        return TransitionIntent(IntentKind.COMPLETE_PROJECT, project.id)

    status = scene.status
    if status == SceneStatus.PENDING:
        if scene.video_url:
            # Generation already succeeded once; a later step failed. No resubmit, no charge.
            to_status = _after_video_status(project)
            if to_status == SceneStatus.NARRATING and scene.narrated_video_url:
                to_status = SceneStatus.MERGING
            return _scene_intent(IntentKind.FAST_FORWARD, project, scene, to_status=to_status)
        return _scene_intent(
            IntentKind.SUBMIT,
            project,
            scene,
            to_status=SceneStatus.GENERATING,
            bill=not scene.is_retry,
        )

    if status == SceneStatus.GENERATING:
        if not scene.generation_reference:
            return fail_scene_intent(project, scene, "No generation reference recorded", permanent=True)
        started = scene.generation_started_at
        if started is not None and now - _as_utc(started) > policy.generation_timeout:
            return fail_scene_intent(project, scene, "Video generation timed out")
        return _scene_intent(IntentKind.POLL, project, scene)

    if status == SceneStatus.NARRATING:
        if not project.voice_id or not scene.narration_text:
            return _scene_intent(IntentKind.SKIP_NARRATION, project, scene, to_status=SceneStatus.MERGING)
        if not scene.video_url:
            return fail_scene_intent(project, scene, "No video URL for narration")
        return _scene_intent(IntentKind.NARRATE, project, scene, to_status=SceneStatus.MERGING)

    if status == SceneStatus.MERGING:
        if not scene.video_url:
            return fail_scene_intent(project, scene, "No video URL for merging")
        return _scene_intent(IntentKind.MERGE, project, scene, to_status=SceneStatus.COMPLETED)

    if status == SceneStatus.FAILED:
        attempts = scene.retry_count + 1
        if attempts < policy.max_retries:
            return _scene_intent(IntentKind.RETRY, project, scene, to_status=SceneStatus.PENDING)
        return _scene_intent(
            IntentKind.FAIL_PROJECT,
            project,
            scene,
            message=(
                f"Scene {scene.scene_number} failed after {attempts} attempts: "
                f"{scene.error_message or 'unknown error'}"
            ),
        )

    # completed or skipped
    if scene.scene_number >= project.total_scenes:
        return _scene_intent(IntentKind.COMPLETE_PROJECT, project, scene)
    return _scene_intent(IntentKind.ADVANCE, project, scene)


def resolve_poll(project: ProjectView, scene: SceneView, poll: GenerationPoll) -> TransitionIntent:
    """Turn an observed gateway status into the generating scene's next intent."""
    if poll.status == GenerationStatus.COMPLETED and poll.output_url:
        return _scene_intent(
            IntentKind.GENERATION_DONE,
            project,
            scene,
            to_status=_after_video_status(project),
            video_url=poll.output_url,
        )
    if poll.status in (GenerationStatus.COMPLETED, GenerationStatus.FAILED):
        return fail_scene_intent(project, scene, poll.error or "Video generation failed")
    return _scene_intent(IntentKind.WAIT, project, scene, message=f"generation {poll.status.value}")


def plan_pass(
    now: datetime,
    batch: Iterable[tuple[ProjectView, Optional[SceneView]]],
    policy: MachinePolicy = MachinePolicy(),
) -> list[TransitionIntent]:
    """First intent for every project in the batch, in batch order."""
    return [plan_scene(now, project, scene, policy) for project, scene in batch]
