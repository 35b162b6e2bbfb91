"""fal.ai queue client for scene video generation.

submit() enqueues a text-to-video or image-to-video request and returns the
request id; poll() reads its status and, once completed, the output URL. Raw
statuses are decoded into GenerationStatus here and nowhere else.
"""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import httpx

from moviegen.config import get_settings
from moviegen.core.exceptions import (
    GatewayProtocolError,
    MovieGenError,
    PermanentValidationError,
    TransientUpstreamError,
)
from moviegen.db.models.enums import GenerationMode
from moviegen.services.continuity import GenerationSeed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelConfig:
    text_model_id: str
    image_model_id: str
    cost_cents: int
    duration_seconds: float


MODELS: dict[str, ModelConfig] = {
    "hailuo-2.3": ModelConfig(
        text_model_id="fal-ai/minimax/hailuo-2.3/pro/text-to-video",
        image_model_id="fal-ai/minimax/hailuo-2.3/pro/image-to-video",
        cost_cents=49,
        duration_seconds=6,
    ),
    "kling-2.6": ModelConfig(
        text_model_id="fal-ai/kling-video/v2.6/pro/text-to-video",
        image_model_id="fal-ai/kling-video/v2.6/pro/image-to-video",
        cost_cents=35,
        duration_seconds=5,
    ),
    "veo3-fast": ModelConfig(
        text_model_id="fal-ai/veo3/fast",
        image_model_id="fal-ai/veo3/fast/image-to-video",
        cost_cents=80,
        duration_seconds=8,
    ),
    "sora-2": ModelConfig(
        text_model_id="fal-ai/sora-2/text-to-video",
        image_model_id="fal-ai/sora-2/image-to-video",
        cost_cents=80,
        duration_seconds=8,
    ),
}

STYLE_PREFIXES = {
    "cinematic": "cinematic film style,",
    "anime": "anime style,",
    "realistic": "photorealistic,",
    "abstract": "abstract art style,",
    "noir": "film noir style, black and white,",
    "retro": "retro VHS style,",
    "neon": "neon-lit cyberpunk style,",
}

_NEGATIVE_PROMPT = "blurry, low quality, distorted, watermark, text overlay"


class GenerationStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def decode(cls, raw: Any) -> "GenerationStatus":
        """Map any gateway spelling (any case) onto the closed set."""
        key = str(raw or "").strip().upper()
        try:
            return _RAW_STATUS[key]
        except KeyError:
            raise GatewayProtocolError(f"Unknown generation status: {raw!r}") from None


_RAW_STATUS = {
    "IN_QUEUE": GenerationStatus.PENDING,
    "QUEUED": GenerationStatus.PENDING,
    "PENDING": GenerationStatus.PENDING,
    "IN_PROGRESS": GenerationStatus.PROCESSING,
    "PROCESSING": GenerationStatus.PROCESSING,
    "RUNNING": GenerationStatus.PROCESSING,
    "COMPLETED": GenerationStatus.COMPLETED,
    "SUCCEEDED": GenerationStatus.COMPLETED,
    "FAILED": GenerationStatus.FAILED,
    "ERROR": GenerationStatus.FAILED,
    "CANCELLED": GenerationStatus.FAILED,
    "CANCELED": GenerationStatus.FAILED,
    "EXPIRED": GenerationStatus.FAILED,
}


@dataclass(frozen=True)
class GenerationPoll:
    status: GenerationStatus
    output_url: Optional[str] = None
    error: Optional[str] = None


class GenerationGateway(Protocol):
    def submit(self, seed: GenerationSeed, model: str, params: Optional[dict[str, Any]] = None) -> str:
        ...

    def poll(
        self,
        model: str,
        request_id: str,
        mode: GenerationMode = GenerationMode.TEXT_TO_VIDEO,
    ) -> GenerationPoll:
        ...


def get_model_config(model: str) -> Optional[ModelConfig]:
    return MODELS.get(model)


def scene_credit_cost(model: str, default: int = 7) -> int:
    """Credits per scene: model price in cents, five cents per credit, rounded up."""
    config = get_model_config(model)
    if not config:
        return default
    return math.ceil(config.cost_cents / 5)


def scene_duration_seconds(model: str, default: float = 5.0) -> float:
    config = get_model_config(model)
    return config.duration_seconds if config else default


def build_input(model: str, seed: GenerationSeed, style: Optional[str] = None) -> dict[str, Any]:
    """Model-specific request body. Durations differ in format per model."""
    prefix = STYLE_PREFIXES.get(style or "")
    prompt = f"{prefix} {seed.prompt}" if prefix else seed.prompt
    if model == "hailuo-2.3":
        body: dict[str, Any] = {"prompt": prompt, "prompt_optimizer": True}
    elif model == "kling-2.6":
        body = {
            "prompt": prompt,
            "negative_prompt": _NEGATIVE_PROMPT,
            "aspect_ratio": "9:16",
            "duration": "5",
            "generate_audio": False,
        }
    elif model == "veo3-fast":
        body = {
            "prompt": prompt,
            "negative_prompt": _NEGATIVE_PROMPT,
            "aspect_ratio": "9:16",
            "duration": "8s",
            "generate_audio": False,
        }
    elif model == "sora-2":
        body = {"prompt": prompt, "duration": 8, "aspect_ratio": "9:16"}
    else:
        raise PermanentValidationError(f"Unknown model: {model}")
    if seed.mode == GenerationMode.IMAGE_TO_VIDEO and seed.image_url:
        body["image_url"] = seed.image_url
    return body


def _raise_for_status(resp: httpx.Response, action: str) -> None:
    if resp.is_success:
        return
    message = f"fal.ai {action} failed: HTTP {resp.status_code} {resp.text[:300]}"
    if resp.status_code in (400, 404, 422):
        raise PermanentValidationError(message)
    raise TransientUpstreamError(message)


def _json_body(resp: httpx.Response, action: str, error_cls: type[MovieGenError] = GatewayProtocolError) -> dict[str, Any]:
    try:
        data = resp.json()
    except ValueError as e:
        raise error_cls(f"fal.ai {action} returned a non-JSON body: {resp.text[:200]!r}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise error_cls(f"fal.ai {action} returned {type(data).__name__}, expected an object")
    return data


class FalGateway:
    """Generation gateway backed by the fal.ai queue REST API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[httpx.Client] = None,
    ):
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.fal_key
        self.base_url = (base_url or settings.fal_queue_url).rstrip("/")
        self.submit_timeout = settings.fal_submit_timeout_seconds
        self.poll_timeout = settings.fal_poll_timeout_seconds
        self._client = client or httpx.Client()

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Key {self.api_key}",
            "Content-Type": "application/json",
        }

    def _model_id(self, model: str, mode: GenerationMode) -> str:
        config = get_model_config(model)
        if not config:
            raise PermanentValidationError(f"Unknown model: {model}")
        if mode == GenerationMode.IMAGE_TO_VIDEO:
            return config.image_model_id
        return config.text_model_id

    def submit(self, seed: GenerationSeed, model: str, params: Optional[dict[str, Any]] = None) -> str:
        params = params or {}
        if not self.api_key:
            raise PermanentValidationError("FAL_KEY is not set; cannot submit generations")
        model_id = self._model_id(model, seed.mode)
        body = build_input(model, seed, style=params.get("style"))
        query = {}
        if params.get("webhook_url"):
            query["fal_webhook"] = params["webhook_url"]
        try:
            resp = self._client.post(
                f"{self.base_url}/{model_id}",
                headers=self._headers(),
                params=query,
                json=body,
                timeout=self.submit_timeout,
            )
        except httpx.HTTPError as e:
            raise TransientUpstreamError(f"fal.ai submit error: {e}") from e
        _raise_for_status(resp, "submit")
        request_id = _json_body(resp, "submit", TransientUpstreamError).get("request_id")
        if not request_id:
            raise TransientUpstreamError("fal.ai submit returned no request_id")
        logger.info("Submitted %s (%s) request %s", model, seed.mode.value, request_id)
        return request_id

    def poll(
        self,
        model: str,
        request_id: str,
        mode: GenerationMode = GenerationMode.TEXT_TO_VIDEO,
    ) -> GenerationPoll:
        model_id = self._model_id(model, mode)
        try:
            resp = self._client.get(
                f"{self.base_url}/{model_id}/requests/{request_id}/status",
                headers=self._headers(),
                timeout=self.poll_timeout,
            )
            _raise_for_status(resp, "status")
            data = _json_body(resp, "status")
            status = GenerationStatus.decode(data.get("status"))
            if status != GenerationStatus.COMPLETED:
                return GenerationPoll(status=status, error=data.get("error"))

            result_url = data.get("response_url") or f"{self.base_url}/{model_id}/requests/{request_id}"
            result = self._client.get(result_url, headers=self._headers(), timeout=self.poll_timeout)
            _raise_for_status(result, "result")
        except httpx.HTTPError as e:
            raise TransientUpstreamError(f"fal.ai poll error: {e}") from e

        payload = _json_body(result, "result")
        video_url = (payload.get("video") or {}).get("url")
        if not video_url:
            # Completed without a video: fal reports model errors this way.
            return GenerationPoll(
                status=GenerationStatus.FAILED,
                error=str(payload.get("detail") or "Generation completed without a video"),
            )
        return GenerationPoll(status=GenerationStatus.COMPLETED, output_url=video_url)
