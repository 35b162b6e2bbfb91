"""Scene scheduler task: one orchestrator pass per beat tick."""

from __future__ import annotations

import logging

from moviegen.services.orchestrator import SceneOrchestrator
from moviegen.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="moviegen.workers.tasks.scenes.process_movie_scenes")
def process_movie_scenes():
    """
    Advance every generating project. Overlapping invocations are harmless: the
    second one finds the job lock held and returns {"skipped": True}.
    """
    report = SceneOrchestrator.from_settings().run_pass()
    if report.skipped:
        logger.info("process_movie_scenes skipped: previous pass still running")
    return report.as_dict()
