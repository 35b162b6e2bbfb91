"""Domain error taxonomy and HTTP error helpers for the admin surface."""

from typing import Optional

from fastapi import HTTPException

PROJECT_STATE_CONFLICT = "PROJECT_STATE_CONFLICT"
INSUFFICIENT_CREDITS = "INSUFFICIENT_CREDITS"


class MovieGenError(Exception):
    """Base class for orchestrator errors."""


class TransientUpstreamError(MovieGenError):
    """Gateway timeout, 5xx or network failure. Retried through failed -> pending."""


class PermanentValidationError(MovieGenError):
    """A prerequisite is missing; retrying cannot succeed."""


class GatewayProtocolError(MovieGenError):
    """The gateway answered with something we cannot decode."""


class MediaProcessingError(MovieGenError):
    """ffmpeg, download or upload failure while post-processing a scene."""


class NarrationError(MovieGenError):
    """Text-to-speech synthesis failed."""


class ScriptGenerationError(MovieGenError):
    """The LLM failed or answered with something that is not a usable scene plan."""


class ProjectStateError(MovieGenError):
    """A command is not valid for the project's current status."""

    def __init__(self, message: str, current_status: Optional[str] = None):
        super().__init__(message)
        self.current_status = current_status


class ProjectNotFoundError(MovieGenError):
    pass


class InsufficientCreditsError(MovieGenError):
    def __init__(self, balance: int, required: int, message: Optional[str] = None):
        super().__init__(message or f"Insufficient credits: have {balance}, need {required}")
        self.balance = balance
        self.required = required


def project_state_conflict_exception(err: ProjectStateError) -> HTTPException:
    """409 with body the admin UI can show next to the project."""
    return HTTPException(
        status_code=409,
        detail={
            "code": PROJECT_STATE_CONFLICT,
            "currentStatus": err.current_status,
            "message": str(err),
        },
    )


def insufficient_credits_exception(
    balance: int,
    required: int,
    message: Optional[str] = None,
) -> HTTPException:
    """402 with body for the 'top up credits' prompt."""
    return HTTPException(
        status_code=402,
        detail={
            "code": INSUFFICIENT_CREDITS,
            "balance": balance,
            "required": required,
            "message": message or "Insufficient credits.",
        },
    )
