"""Unit tests for the fal.ai generation gateway"""

import json

import httpx
import pytest

from moviegen.core.exceptions import (
    GatewayProtocolError,
    PermanentValidationError,
    TransientUpstreamError,
)
from moviegen.db.models.enums import GenerationMode
from moviegen.services.continuity import GenerationSeed
from moviegen.services.generation_gateway import (
    FalGateway,
    GenerationStatus,
    build_input,
    scene_credit_cost,
    scene_duration_seconds,
)

BASE = "https://queue.test"


def _gateway(handler, api_key="fal-test-key"):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return FalGateway(api_key=api_key, base_url=BASE, client=client)


class TestStatusDecoding:

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("IN_QUEUE", GenerationStatus.PENDING),
            ("in_queue", GenerationStatus.PENDING),
            ("IN_PROGRESS", GenerationStatus.PROCESSING),
            ("Completed", GenerationStatus.COMPLETED),
            ("FAILED", GenerationStatus.FAILED),
            ("cancelled", GenerationStatus.FAILED),
        ],
    )
    def test_known_statuses(self, raw, expected):
        assert GenerationStatus.decode(raw) == expected

    @pytest.mark.parametrize("raw", ["", None, "MYSTERY"])
    def test_unknown_status_is_protocol_error(self, raw):
        with pytest.raises(GatewayProtocolError):
            GenerationStatus.decode(raw)


class TestModelCatalog:

    def test_credit_cost_rounds_up(self):
        assert scene_credit_cost("kling-2.6") == 7
        assert scene_credit_cost("hailuo-2.3") == 10
        assert scene_credit_cost("veo3-fast") == 16
        assert scene_credit_cost("unknown-model", default=9) == 9

    def test_durations(self):
        assert scene_duration_seconds("kling-2.6") == 5
        assert scene_duration_seconds("sora-2") == 8

    def test_build_input_applies_style_and_frame(self):
        seed = GenerationSeed("a lighthouse", GenerationMode.IMAGE_TO_VIDEO, "https://cdn.test/f.jpg")
        body = build_input("kling-2.6", seed, style="noir")
        assert body["prompt"] == "film noir style, black and white, a lighthouse"
        assert body["image_url"] == "https://cdn.test/f.jpg"
        assert body["duration"] == "5"

    def test_build_input_unknown_model(self):
        with pytest.raises(PermanentValidationError):
            build_input("nope", GenerationSeed("x"))


class TestSubmit:

    def test_posts_to_text_model_and_returns_request_id(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"request_id": "abc123"})

        request_id = _gateway(handler).submit(GenerationSeed("a lighthouse"), "kling-2.6", {"style": "anime"})
        assert request_id == "abc123"
        assert seen["url"] == f"{BASE}/fal-ai/kling-video/v2.6/pro/text-to-video"
        assert seen["auth"] == "Key fal-test-key"
        assert seen["body"]["prompt"].startswith("anime style,")

    def test_image_seed_uses_image_model(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            return httpx.Response(200, json={"request_id": "r1"})

        seed = GenerationSeed("x", GenerationMode.IMAGE_TO_VIDEO, "https://cdn.test/f.jpg")
        _gateway(handler).submit(seed, "hailuo-2.3")
        assert seen["path"] == "/fal-ai/minimax/hailuo-2.3/pro/image-to-video"

    def test_missing_key_is_permanent(self):
        gateway = _gateway(lambda request: httpx.Response(200, json={}), api_key="")
        with pytest.raises(PermanentValidationError):
            gateway.submit(GenerationSeed("x"), "kling-2.6")

    def test_validation_rejection_is_permanent(self):
        gateway = _gateway(lambda request: httpx.Response(422, json={"detail": "bad prompt"}))
        with pytest.raises(PermanentValidationError):
            gateway.submit(GenerationSeed("x"), "kling-2.6")

    def test_server_error_is_transient(self):
        gateway = _gateway(lambda request: httpx.Response(503, text="busy"))
        with pytest.raises(TransientUpstreamError):
            gateway.submit(GenerationSeed("x"), "kling-2.6")

    def test_html_body_is_transient(self):
        gateway = _gateway(lambda request: httpx.Response(200, text="<html>bad gateway</html>"))
        with pytest.raises(TransientUpstreamError):
            gateway.submit(GenerationSeed("x"), "kling-2.6")

    def test_network_error_is_transient(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransientUpstreamError):
            _gateway(handler).submit(GenerationSeed("x"), "kling-2.6")


class TestPoll:

    def test_in_progress(self):
        gateway = _gateway(lambda request: httpx.Response(200, json={"status": "IN_PROGRESS"}))
        poll = gateway.poll("kling-2.6", "r1")
        assert poll.status == GenerationStatus.PROCESSING
        assert poll.output_url is None

    def test_completed_fetches_result(self):
        def handler(request):
            if request.url.path.endswith("/status"):
                return httpx.Response(
                    200, json={"status": "COMPLETED", "response_url": f"{BASE}/results/r1"}
                )
            assert request.url.path == "/results/r1"
            return httpx.Response(200, json={"video": {"url": "https://fal.media/r1.mp4"}})

        poll = _gateway(handler).poll("kling-2.6", "r1")
        assert poll.status == GenerationStatus.COMPLETED
        assert poll.output_url == "https://fal.media/r1.mp4"

    def test_completed_without_video_is_failure(self):
        def handler(request):
            if request.url.path.endswith("/status"):
                return httpx.Response(200, json={"status": "COMPLETED"})
            return httpx.Response(200, json={"detail": "content policy"})

        poll = _gateway(handler).poll("kling-2.6", "r1")
        assert poll.status == GenerationStatus.FAILED
        assert poll.error == "content policy"

    def test_image_mode_polls_image_model(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            return httpx.Response(200, json={"status": "IN_QUEUE"})

        _gateway(handler).poll("kling-2.6", "r9", GenerationMode.IMAGE_TO_VIDEO)
        assert seen["path"] == "/fal-ai/kling-video/v2.6/pro/image-to-video/requests/r9/status"

    def test_unknown_status_raises_protocol_error(self):
        gateway = _gateway(lambda request: httpx.Response(200, json={"status": "WEIRD"}))
        with pytest.raises(GatewayProtocolError):
            gateway.poll("kling-2.6", "r1")

    def test_timeout_is_transient(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(TransientUpstreamError):
            _gateway(handler).poll("kling-2.6", "r1")

    def test_html_status_body_is_protocol_error(self):
        gateway = _gateway(lambda request: httpx.Response(200, text="<html>bad gateway</html>"))
        with pytest.raises(GatewayProtocolError):
            gateway.poll("kling-2.6", "req-1")

    def test_non_object_result_is_protocol_error(self):
        def handler(request):
            if request.url.path.endswith("/status"):
                return httpx.Response(200, json={"status": "COMPLETED"})
            return httpx.Response(200, json=["not", "an", "object"])

        with pytest.raises(GatewayProtocolError):
            _gateway(handler).poll("kling-2.6", "r1")
