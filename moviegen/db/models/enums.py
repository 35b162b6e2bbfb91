"""Closed status enumerations. Raw strings are decoded into these at the boundary."""

import enum

from sqlalchemy import Enum


class ProjectStatus(str, enum.Enum):
    DRAFT = "draft"
    SCRIPT_READY = "script_ready"
    GENERATING = "generating"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ProjectStatus.COMPLETED, ProjectStatus.FAILED, ProjectStatus.CANCELLED)


class SceneStatus(str, enum.Enum):
    PENDING = "pending"
    GENERATING = "generating"
    NARRATING = "narrating"
    MERGING = "merging"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (SceneStatus.COMPLETED, SceneStatus.SKIPPED)


class GenerationMode(str, enum.Enum):
    TEXT_TO_VIDEO = "text-to-video"
    IMAGE_TO_VIDEO = "image-to-video"


class TransactionType(str, enum.Enum):
    GENERATION = "generation"
    REFUND = "refund"
    ADMIN_GRANT = "admin_grant"


def enum_column(enum_cls: type[enum.Enum], length: int = 30) -> Enum:
    """String-backed column that loads as the enum and rejects unknown values."""
    return Enum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )
