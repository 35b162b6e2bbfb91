"""Cron trigger for hosts without Celery beat: POST /cron/process-movie-scenes."""

from fastapi import APIRouter

from moviegen.dependencies import CronAccess
from moviegen.services.orchestrator import SceneOrchestrator

router = APIRouter(prefix="/cron", tags=["cron"], dependencies=[CronAccess])


def get_orchestrator() -> SceneOrchestrator:
    return SceneOrchestrator.from_settings()


@router.post("/process-movie-scenes")
def process_movie_scenes():
    """Run one scheduler pass synchronously and return its summary."""
    return get_orchestrator().run_pass().as_dict()
