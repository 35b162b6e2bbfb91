"""SQLAlchemy models - import all for Alembic and relationships."""

from moviegen.db.base import Base
from moviegen.db.models.enums import (
    GenerationMode,
    ProjectStatus,
    SceneStatus,
    TransactionType,
)
from moviegen.db.models.user import User
from moviegen.db.models.credit_transaction import CreditTransaction
from moviegen.db.models.project import MovieProject
from moviegen.db.models.scene import MovieScene
from moviegen.db.models.scheduler_lock import SchedulerLock

__all__ = [
    "Base",
    "GenerationMode",
    "ProjectStatus",
    "SceneStatus",
    "TransactionType",
    "User",
    "CreditTransaction",
    "MovieProject",
    "MovieScene",
    "SchedulerLock",
]
