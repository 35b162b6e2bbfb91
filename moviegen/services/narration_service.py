"""Scene narration via OpenAI TTS."""

import logging
from typing import Optional

from openai import OpenAIError

from moviegen.config import get_settings
from moviegen.core.exceptions import NarrationError
from moviegen.services.llm_service import get_openai_client

logger = logging.getLogger(__name__)

OPENAI_VOICES = ("alloy", "echo", "fable", "onyx", "nova", "shimmer")


class OpenAINarrator:
    def __init__(self, model: Optional[str] = None):
        self.model = model or get_settings().openai_tts_model

    def synthesize(self, text: str, voice_id: str) -> bytes:
        """Return MP3 bytes for the narration text."""
        settings = get_settings()
        if not settings.openai_api_key:
            raise NarrationError("OPENAI_API_KEY is not set; cannot narrate scenes")
        try:
            resp = get_openai_client().audio.speech.create(
                model=self.model,
                voice=voice_id,
                input=text[:4096],
            )
        except OpenAIError as e:
            raise NarrationError(f"TTS failed: {e}") from e
        if not resp.content:
            raise NarrationError("No audio returned from narration")
        return resp.content
