"""Celery app configuration and beat schedule."""

from celery import Celery
from celery.signals import worker_process_init

from moviegen.config import get_settings
from moviegen.core.logging import configure_logging

settings = get_settings()
celery_app = Celery(
    "moviegen",
    broker=settings.celery_broker,
    backend=settings.redis_url,
    include=[
        "moviegen.workers.tasks.scenes",
    ],
)
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    beat_schedule={
        "process-movie-scenes": {
            "task": "moviegen.workers.tasks.scenes.process_movie_scenes",
            "schedule": float(settings.orchestrator_interval_seconds),
            # A pass older than one interval is stale; the next one supersedes it.
            "options": {"expires": settings.orchestrator_interval_seconds},
        },
    },
)


@worker_process_init.connect
def _init_worker_logging(**kwargs):
    configure_logging()
