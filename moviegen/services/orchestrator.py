"""Scheduler pass: advance every generating project by a few scene transitions.

A pass holds the job lock, selects a batch of generating projects and gives
each one its own session. Per project it repeatedly plans the current scene's
next intent and applies it, stopping when nothing more can happen this pass
(generation still running, project paused/failed/completed) or after
`orchestrator_steps_per_project` steps. Scenes of one project are strictly
sequential: scene N+1 needs scene N's last frame.

Every scene write is a compare-and-set on the scene's status, so a late
completion for a scene that was skipped or already moved on is ignored.
"""

from __future__ import annotations

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session, sessionmaker

from moviegen.config import Settings, get_settings
from moviegen.core.exceptions import (
    GatewayProtocolError,
    MovieGenError,
    PermanentValidationError,
    TransientUpstreamError,
)
from moviegen.db.models.enums import GenerationMode, SceneStatus
from moviegen.db.models.scene import MovieScene
from moviegen.services import credit_ledger, project_aggregator
from moviegen.services.continuity import (
    build_seed,
    frame_key,
    narrated_video_key,
    previous_frame_url,
    video_key,
)
from moviegen.services.generation_gateway import (
    GenerationGateway,
    scene_credit_cost,
    scene_duration_seconds,
)
from moviegen.services.project_selector import current_scene, get_project, select_generating_projects
from moviegen.services.scene_machine import (
    IntentKind,
    MachinePolicy,
    ProjectView,
    SceneView,
    TransitionIntent,
    fail_scene_intent,
    plan_scene,
    resolve_poll,
)
from moviegen.services.scheduler_lock import held_lock

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StepResult:
    intent: TransitionIntent
    progressed: bool


@dataclass
class ProjectOutcome:
    project_id: uuid.UUID
    steps: list[str] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class PassReport:
    skipped: bool = False
    projects: int = 0
    processed: int = 0
    errors: int = 0
    outcomes: list[ProjectOutcome] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "skipped": self.skipped,
            "projects": self.projects,
            "processed": self.processed,
            "errors": self.errors,
            "outcomes": [
                {**asdict(o), "project_id": str(o.project_id)} for o in self.outcomes
            ],
        }


class SceneOrchestrator:
    def __init__(
        self,
        gateway: GenerationGateway,
        storage,
        media,
        narrator,
        session_factory: Optional[sessionmaker] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.gateway = gateway
        self.storage = storage
        self.media = media
        self.narrator = narrator
        self.settings = settings or get_settings()
        if session_factory is None:
            from moviegen.db.base import SessionLocal

            session_factory = SessionLocal
        self.session_factory = session_factory
        self.clock = clock or _utcnow
        self.policy = MachinePolicy.from_settings(self.settings)
        self._handlers = {
            IntentKind.WAIT: self._wait,
            IntentKind.SUBMIT: self._submit,
            IntentKind.FAST_FORWARD: self._fast_forward,
            IntentKind.POLL: self._poll,
            IntentKind.NARRATE: self._narrate,
            IntentKind.SKIP_NARRATION: self._skip_narration,
            IntentKind.MERGE: self._merge,
            IntentKind.FAIL_SCENE: self._fail_scene,
            IntentKind.RETRY: self._retry,
            IntentKind.ADVANCE: self._advance,
            IntentKind.COMPLETE_PROJECT: self._complete_project,
            IntentKind.FAIL_PROJECT: self._fail_project,
        }

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "SceneOrchestrator":
        """Wire the production adapters: fal.ai, S3, ffmpeg and OpenAI TTS."""
        from moviegen.services.generation_gateway import FalGateway
        from moviegen.services.media_service import FfmpegMedia
        from moviegen.services.narration_service import OpenAINarrator
        from moviegen.services.storage_service import ObjectStorage

        return cls(
            gateway=FalGateway(),
            storage=ObjectStorage(),
            media=FfmpegMedia(),
            narrator=OpenAINarrator(),
            settings=settings,
        )

    # Pass

    def run_pass(self) -> PassReport:
        settings = self.settings
        report = PassReport()
        db: Session = self.session_factory()
        try:
            with held_lock(
                db,
                settings.orchestrator_job_name,
                settings.orchestrator_lock_ttl_seconds,
                now=self.clock(),
            ) as lock_id:
                if lock_id is None:
                    report.skipped = True
                    return report
                project_ids = [p.id for p in select_generating_projects(db, settings.orchestrator_batch_size)]
                db.commit()
                report.projects = len(project_ids)
                for outcome in self._run_projects(project_ids):
                    report.outcomes.append(outcome)
                    report.processed += len(outcome.steps)
                    if outcome.error:
                        report.errors += 1
        finally:
            db.close()
        logger.info(
            "Scene pass: %s projects, %s transitions, %s errors",
            report.projects, report.processed, report.errors,
        )
        return report

    def _run_projects(self, project_ids: list[uuid.UUID]) -> list[ProjectOutcome]:
        workers = min(self.settings.orchestrator_project_concurrency, len(project_ids))
        if workers <= 1:
            return [self.process_project(pid) for pid in project_ids]
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="moviegen-project") as pool:
            return list(pool.map(self.process_project, project_ids))

    def process_project(self, project_id: uuid.UUID) -> ProjectOutcome:
        """Advance one project in its own session; errors stay inside this project."""
        outcome = ProjectOutcome(project_id=project_id)
        db: Session = self.session_factory()
        try:
            for _ in range(max(self.settings.orchestrator_steps_per_project, 1)):
                result = self.step(db, project_id)
                if not result.progressed:
                    break
                outcome.steps.append(result.intent.kind.value)
        except Exception as e:
            db.rollback()
            logger.exception("Project %s: scene step failed", project_id)
            outcome.error = str(e)
        finally:
            db.close()
        return outcome

    def step(self, db: Session, project_id: uuid.UUID) -> StepResult:
        """Plan and apply a single transition for the project's current scene."""
        project = get_project(db, project_id)
        if project is None:
            return StepResult(TransitionIntent(IntentKind.WAIT, project_id, message="not found"), False)
        scene = current_scene(db, project)
        project_view = ProjectView.of(project)
        scene_view = SceneView.of(scene) if scene is not None else None
        db.commit()

        intent = plan_scene(self.clock(), project_view, scene_view, self.policy)
        logger.debug(
            "Project %s scene %s: %s", project_id, intent.scene_number, intent.kind.value
        )
        return self._handlers[intent.kind](db, project_view, scene_view, intent)

    # Scene writes

    def _cas(self, db: Session, scene_id: uuid.UUID, expected: SceneStatus, **values) -> bool:
        result = db.execute(
            update(MovieScene)
            .where(MovieScene.id == scene_id, MovieScene.status == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def _transition(
        self,
        db: Session,
        intent: TransitionIntent,
        expected: SceneStatus,
        **values,
    ) -> StepResult:
        if not self._cas(db, intent.scene_id, expected, **values):
            db.rollback()
            logger.info("Scene %s is no longer %s; ignoring %s", intent.scene_id, expected.value, intent.kind.value)
            return StepResult(intent, False)
        db.commit()
        return StepResult(intent, True)

    # Handlers

    def _wait(self, db, project, scene, intent) -> StepResult:
        return StepResult(intent, False)

    def _submit(self, db: Session, project: ProjectView, scene: SceneView, intent: TransitionIntent) -> StepResult:
        if intent.bill:
            cost = scene.credit_cost or scene_credit_cost(project.model, self.settings.default_scene_credit_cost)
            result = credit_ledger.deduct(
                db,
                project.user_id,
                cost,
                credit_ledger.DeductContext(
                    reason=f"Movie scene {scene.scene_number}",
                    project_id=project.id,
                    scene_id=scene.id,
                    metadata={"model": project.model},
                ),
            )
            if not result.success:
                if result.insufficient_funds:
                    project_aggregator.pause_project(
                        db, project.id, project_aggregator.INSUFFICIENT_CREDITS_MESSAGE
                    )
                else:
                    project_aggregator.fail_project(db, project.id, f"Credit deduction failed: {result.error}")
                return StepResult(intent, False)

        seed = build_seed(
            scene.video_prompt,
            scene.scene_number,
            previous_frame_url(db, project.id, scene.scene_number),
        )
        db.commit()
        # An overlapping pass may have submitted this scene since it was planned.
        stored = db.execute(
            select(MovieScene.status, MovieScene.generation_reference).where(MovieScene.id == scene.id)
        ).one_or_none()
        if stored is None or stored.status != SceneStatus.PENDING or stored.generation_reference:
            logger.info(
                "Project %s scene %s already left pending; not submitting again",
                project.id, scene.scene_number,
            )
            return StepResult(intent, False)
        try:
            request_id = self.gateway.submit(seed, project.model, {"style": project.style})
        except PermanentValidationError as e:
            return self._fail_scene(db, project, scene, fail_scene_intent(project, scene, str(e), permanent=True))
        except MovieGenError as e:
            return self._fail_scene(db, project, scene, fail_scene_intent(project, scene, str(e)))

        logger.info(
            "Project %s scene %s submitted (%s, attempt %s): %s",
            project.id, scene.scene_number, seed.mode.value, scene.retry_count + 1, request_id,
        )
        return self._transition(
            db,
            intent,
            SceneStatus.PENDING,
            status=SceneStatus.GENERATING,
            generation_reference=request_id,
            generation_mode=seed.mode,
            generation_started_at=self.clock(),
        )

    def _fast_forward(self, db, project, scene, intent) -> StepResult:
        return self._transition(db, intent, SceneStatus.PENDING, status=intent.to_status)

    def _poll(self, db: Session, project: ProjectView, scene: SceneView, intent: TransitionIntent) -> StepResult:
        try:
            poll = self.gateway.poll(
                project.model,
                scene.generation_reference,
                scene.generation_mode or GenerationMode.TEXT_TO_VIDEO,
            )
        except (TransientUpstreamError, GatewayProtocolError) as e:
            # Leave the scene in generating; the next pass polls again.
            logger.warning("Project %s scene %s poll failed: %s", project.id, scene.scene_number, e)
            return StepResult(intent, False)
        except PermanentValidationError as e:
            return self._fail_scene(db, project, scene, fail_scene_intent(project, scene, str(e)))

        resolved = resolve_poll(project, scene, poll)
        if resolved.kind == IntentKind.FAIL_SCENE:
            return self._fail_scene(db, project, scene, resolved)
        if resolved.kind != IntentKind.GENERATION_DONE:
            return StepResult(resolved, False)
        return self._transition(
            db,
            resolved,
            SceneStatus.GENERATING,
            status=resolved.to_status,
            video_url=resolved.video_url,
        )

    def _narrate(self, db: Session, project: ProjectView, scene: SceneView, intent: TransitionIntent) -> StepResult:
        try:
            video = self.media.download(scene.video_url)
            audio = self.narrator.synthesize(scene.narration_text, project.voice_id)
            merged = self.media.merge_narration(video, audio)
            url = self.storage.put(
                narrated_video_key(project.id, scene.scene_number), merged, "video/mp4"
            )
        except MovieGenError as e:
            return self._fail_scene(db, project, scene, fail_scene_intent(project, scene, f"Narration failed: {e}"))
        return self._transition(
            db, intent, SceneStatus.NARRATING, status=SceneStatus.MERGING, narrated_video_url=url
        )

    def _skip_narration(self, db, project, scene, intent) -> StepResult:
        return self._transition(db, intent, SceneStatus.NARRATING, status=SceneStatus.MERGING)

    def _merge(self, db: Session, project: ProjectView, scene: SceneView, intent: TransitionIntent) -> StepResult:
        source = scene.narrated_video_url or scene.video_url
        try:
            data = self.media.download(source)
            public = self.storage.put(video_key(project.id, scene.scene_number), data, "video/mp4")
        except MovieGenError as e:
            return self._fail_scene(db, project, scene, fail_scene_intent(project, scene, f"Merge failed: {e}"))

        duration = scene_duration_seconds(project.model)
        last_frame = None
        if scene.scene_number < project.total_scenes:
            last_frame = self._store_last_frame(project, scene, data, duration)
        completed = project_aggregator.complete_scene(
            db, project.id, scene.id, scene.scene_number, public, last_frame, duration, now=self.clock()
        )
        if not completed:
            return StepResult(intent, False)
        logger.info("Project %s scene %s/%s completed", project.id, scene.scene_number, project.total_scenes)
        if scene.scene_number >= project.total_scenes:
            project_aggregator.finalize_project(db, project.id, self.media, self.storage, now=self.clock())
        return StepResult(intent, True)

    def _store_last_frame(self, project: ProjectView, scene: SceneView, video: bytes, duration: float) -> Optional[str]:
        try:
            frame = self.media.extract_last_frame(video, max(duration - 0.1, 0))
            return self.storage.put(frame_key(project.id, scene.scene_number), frame, "image/jpeg")
        except MovieGenError as e:
            logger.warning(
                "Project %s scene %s: no last frame (%s); next scene uses text-to-video",
                project.id, scene.scene_number, e,
            )
            return None

    def _fail_scene(self, db: Session, project: ProjectView, scene: SceneView, intent: TransitionIntent) -> StepResult:
        """Scene -> failed with its refund in the same transaction. Permanent errors fail the project."""
        if not self._cas(db, scene.id, intent.from_status, status=SceneStatus.FAILED, error_message=intent.message):
            db.rollback()
            return StepResult(intent, False)
        if intent.refund:
            cost = db.execute(select(MovieScene.credit_cost).where(MovieScene.id == scene.id)).scalar_one_or_none()
            if cost:
                credit_ledger.refund(
                    db,
                    project.user_id,
                    cost,
                    reason=f"Refund: movie scene {scene.scene_number} failed",
                    project_id=project.id,
                    scene_id=scene.id,
                    commit=False,
                )
        db.commit()
        logger.warning(
            "Project %s scene %s failed (attempt %s): %s",
            project.id, scene.scene_number, scene.retry_count + 1, intent.message,
        )
        if intent.permanent:
            project_aggregator.fail_project(db, project.id, f"Scene {scene.scene_number}: {intent.message}")
            return StepResult(intent, False)
        return StepResult(intent, True)

    def _retry(self, db, project, scene, intent) -> StepResult:
        return self._transition(
            db,
            intent,
            SceneStatus.FAILED,
            status=SceneStatus.PENDING,
            retry_count=MovieScene.retry_count + 1,
            error_message=None,
            generation_reference=None,
            generation_started_at=None,
        )

    def _advance(self, db, project, scene, intent) -> StepResult:
        return StepResult(intent, project_aggregator.advance_project(db, project.id, scene.scene_number))

    def _complete_project(self, db, project, scene, intent) -> StepResult:
        project_aggregator.finalize_project(db, project.id, self.media, self.storage, now=self.clock())
        return StepResult(intent, False)

    def _fail_project(self, db, project, scene, intent) -> StepResult:
        project_aggregator.fail_project(db, project.id, intent.message)
        return StepResult(intent, False)
