"""In-memory stand-ins for the orchestrator's external adapters."""

import threading
from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Any, Optional
from unittest.mock import MagicMock

from moviegen.core.exceptions import MediaProcessingError
from moviegen.db.models.enums import GenerationMode
from moviegen.services.continuity import GenerationSeed
from moviegen.services.generation_gateway import GenerationPoll, GenerationStatus


@dataclass
class Submission:
    request_id: str
    seed: GenerationSeed
    model: str
    params: dict
    thread: str = ""


class FakeGateway:
    """
    Every request completes on its first poll unless `script[request_id]` lists
    GenerationPoll results (or exceptions) to hand out first. `submit_errors` are
    raised by the next submits, in order.
    """

    def __init__(self):
        self.submissions: list[Submission] = []
        self.polls: list[str] = []
        self.submit_errors: list[Exception] = []
        self.script: dict[str, list[Any]] = {}
        self._lock = threading.Lock()

    def submit(self, seed: GenerationSeed, model: str, params: Optional[dict] = None) -> str:
        with self._lock:
            if self.submit_errors:
                raise self.submit_errors.pop(0)
            request_id = f"req-{len(self.submissions) + 1}"
            self.submissions.append(
                Submission(request_id, seed, model, params or {}, threading.current_thread().name)
            )
        return request_id

    def poll(self, model: str, request_id: str, mode: GenerationMode = GenerationMode.TEXT_TO_VIDEO) -> GenerationPoll:
        self.polls.append(request_id)
        queued = self.script.get(request_id)
        if queued:
            item = queued.pop(0)
            if isinstance(item, Exception):
                raise item
            return item
        return GenerationPoll(
            status=GenerationStatus.COMPLETED,
            output_url=f"https://fal.media/files/{request_id}.mp4",
        )

    def fail(self, request_id: str, error: str = "model error") -> None:
        self.script.setdefault(request_id, []).append(
            GenerationPoll(status=GenerationStatus.FAILED, error=error)
        )


class FakeStorage:
    def __init__(self):
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.fail_keys: set[str] = set()

    def put(self, key: str, data: bytes, content_type: str) -> str:
        if key in self.fail_keys:
            raise MediaProcessingError(f"S3 upload of {key} failed")
        self.objects[key] = (data, content_type)
        return f"https://cdn.test/{key}"


@dataclass
class FakeMedia:
    downloads: list[str] = field(default_factory=list)
    frame_error: Optional[Exception] = None
    concat_error: Optional[Exception] = None

    def download(self, url: str) -> bytes:
        self.downloads.append(url)
        return f"video:{url}".encode()

    def extract_last_frame(self, video: bytes, at_seconds: float) -> bytes:
        if self.frame_error:
            raise self.frame_error
        return b"\xff\xd8jpeg"

    def merge_narration(self, video: bytes, audio: bytes) -> bytes:
        return video + b"|" + audio

    def concatenate(self, videos) -> bytes:
        if self.concat_error:
            raise self.concat_error
        return b"".join(videos)


class FakeNarrator:
    def __init__(self):
        self.calls: list[tuple[str, str]] = []

    def synthesize(self, text: str, voice_id: str) -> bytes:
        self.calls.append((text, voice_id))
        return f"mp3:{text}".encode()


def chat_client(content: str, prompt_tokens: int = 1200, completion_tokens: int = 3400) -> MagicMock:
    """OpenAI client whose chat completion answers with `content`."""
    client = MagicMock()
    client.chat.completions.create.return_value = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
    )
    return client
