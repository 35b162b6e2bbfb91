"""Process-wide logging setup for the API and Celery workers."""

import logging
from typing import Optional

from moviegen.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    settings = get_settings()
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format=LOG_FORMAT,
    )
    # httpx logs every request at INFO; the orchestrator polls a lot.
    logging.getLogger("httpx").setLevel(logging.WARNING)
