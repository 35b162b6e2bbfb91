"""Unit tests for the movie script writer"""

import json
from unittest.mock import MagicMock, patch

import pytest
from openai import OpenAIError

from moviegen.config import get_settings
from moviegen.core.exceptions import PermanentValidationError, ScriptGenerationError
from moviegen.services.llm_service import (
    build_system_prompt,
    generate_movie_script,
    parse_movie_script,
    target_scene_count,
)
from tests.mocks.fakes import chat_client

SCRIPT = {
    "scenes": [
        {
            "scene_number": 1,
            "scene_title": "The Letter",
            "video_prompt": "  Close-up of a wax-sealed letter on a rain-streaked sill  ",
            "narration_text": "It arrived on the wettest night of the year.",
        },
        {
            "scene_number": 2,
            "scene_title": "",
            "video_prompt": "She tears it open, candlelight flickering across her face",
            "narration_text": "   ",
        },
    ],
    "summary": "A letter pulls a recluse back into the world.",
}


class TestParse:

    def test_fenced_json_with_narration(self):
        raw = "```json\n" + json.dumps(SCRIPT) + "\n```"
        script = parse_movie_script(raw, has_narration=True, max_scenes=150)

        assert len(script.scenes) == 2
        first, second = script.scenes
        assert first["video_prompt"] == "Close-up of a wax-sealed letter on a rain-streaked sill"
        assert first["scene_title"] == "The Letter"
        assert first["narration_text"] == "It arrived on the wettest night of the year."
        assert second["scene_title"] is None
        assert second["narration_text"] is None
        assert script.summary == "A letter pulls a recluse back into the world."

    def test_narration_dropped_without_voice(self):
        script = parse_movie_script(json.dumps(SCRIPT), has_narration=False, max_scenes=150)
        assert all(s["narration_text"] is None for s in script.scenes)

    def test_prose_around_the_object_is_ignored(self):
        raw = "Here is your script:\n" + json.dumps(SCRIPT) + "\nEnjoy!"
        assert len(parse_movie_script(raw, has_narration=False, max_scenes=150).scenes) == 2

    def test_truncates_to_max_scenes(self):
        many = {"scenes": [{"video_prompt": f"Shot {n}"} for n in range(1, 6)]}
        script = parse_movie_script(json.dumps(many), has_narration=False, max_scenes=3)
        assert [s["video_prompt"] for s in script.scenes] == ["Shot 1", "Shot 2", "Shot 3"]

    @pytest.mark.parametrize(
        "raw,message",
        [
            ("I'm sorry, I can't help with that.", "no JSON object"),
            ("{scenes: [oops}", "not valid JSON"),
            ('{"scenes": []}', "no scenes"),
            ('{"summary": "nothing else"}', "no scenes"),
            ('{"scenes": [{"video_prompt": "ok"}, {"scene_title": "blank"}]}', "Scene 2 has no video prompt"),
        ],
    )
    def test_unusable_answers(self, raw, message):
        with pytest.raises(ScriptGenerationError) as exc:
            parse_movie_script(raw, has_narration=False, max_scenes=150)
        assert message in str(exc.value)


class TestPrompt:

    def test_scene_count_follows_model_clip_length(self):
        assert target_scene_count("kling-2.6", 10) == 120
        assert target_scene_count("veo3-fast", 1) == 8
        assert target_scene_count("kling-2.6", 0) == 1

    def test_prompt_mentions_style_and_narration_rule(self):
        with_voice = build_system_prompt("hailuo-2.3", "noir", True, 2)
        assert "Visual style: noir" in with_voice
        assert "about 20 scenes" in with_voice
        assert "narration_text of at most 50 words" in with_voice

        silent = build_system_prompt("hailuo-2.3", None, False, 2)
        assert "Visual style" not in silent
        assert "narration_text to null" in silent


class TestGenerate:

    def test_calls_chat_completions_and_returns_script(self):
        client = chat_client(json.dumps(SCRIPT))

        script = generate_movie_script("Once upon a time", "kling-2.6", voice_id="nova", client=client)

        assert len(script.scenes) == 2
        assert script.estimated_duration_seconds == 10
        assert script.usage == {"input_tokens": 1200, "output_tokens": 3400}
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == get_settings().openai_model
        system, user = kwargs["messages"]
        assert system["role"] == "system"
        assert user["role"] == "user"
        assert user["content"].endswith("Once upon a time")

    def test_long_source_is_truncated(self):
        client = chat_client(json.dumps(SCRIPT))
        settings = get_settings().model_copy(update={"script_source_max_chars": 50})

        with patch("moviegen.services.llm_service.get_settings", return_value=settings):
            generate_movie_script("x" * 500, "kling-2.6", client=client)

        user = client.chat.completions.create.call_args.kwargs["messages"][1]["content"]
        assert "x" * 51 not in user
        assert "[Text truncated due to length]" in user

    def test_api_error_becomes_script_error(self):
        client = MagicMock()
        client.chat.completions.create.side_effect = OpenAIError("rate limited")

        with pytest.raises(ScriptGenerationError) as exc:
            generate_movie_script("Once upon a time", "kling-2.6", client=client)
        assert "rate limited" in str(exc.value)

    def test_requires_source_text(self):
        client = chat_client(json.dumps(SCRIPT))
        with pytest.raises(PermanentValidationError):
            generate_movie_script("   ", "kling-2.6", client=client)
        client.chat.completions.create.assert_not_called()

    def test_requires_api_key_when_no_client_given(self):
        settings = get_settings().model_copy(update={"openai_api_key": ""})
        with patch("moviegen.services.llm_service.get_settings", return_value=settings), patch(
            "moviegen.services.llm_service.get_openai_client"
        ) as factory:
            with pytest.raises(PermanentValidationError):
                generate_movie_script("Once upon a time", "kling-2.6")
        factory.assert_not_called()
