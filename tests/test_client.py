import json

import pytest
import requests
from pydantic import ValidationError

from veo3ops.client.schemas import GenerationRequest
from veo3ops.client.veo_client import VeoClient, _parse_timestamp, parse_error_response
from veo3ops.errors import RemoteError
from veo3ops.operations.models import OperationStatus

from fakes import FakeResponse, FakeSession

BASE_URL = "https://example.test/v1beta"
OP_NAME = "models/veo-3.1-generate-preview/operations/abc123"


def make_client(*responses):
    session = FakeSession(list(responses))
    return VeoClient(api_key="test-key", base_url=BASE_URL + "/", session=session), session


def test_pending_operation():
    client, session = make_client(FakeResponse.json_body({
        "name": OP_NAME,
        "metadata": {"state": "PENDING"},
    }))

    op = client.get_operation(OP_NAME)

    assert op.id == OP_NAME
    assert op.status == OperationStatus.PENDING
    assert op.end_time is None
    request = session.requests[0]
    assert request["method"] == "GET"
    assert request["url"] == f"{BASE_URL}/{OP_NAME}"
    assert request["headers"]["x-goog-api-key"] == "test-key"


def test_running_operation_reports_progress():
    client, _ = make_client(FakeResponse.json_body({
        "name": OP_NAME,
        "done": False,
        "metadata": {"progressPercent": 40, "createTime": "2025-01-01T12:00:00Z"},
    }))

    op = client.get_operation(OP_NAME)

    assert op.status == OperationStatus.RUNNING
    assert op.progress == pytest.approx(0.4)
    assert op.start_time == _parse_timestamp("2025-01-01T12:00:00Z")


def test_progress_is_clamped():
    client, _ = make_client(FakeResponse.json_body({
        "name": OP_NAME,
        "metadata": {"progressPercent": 250},
    }))

    assert client.get_operation(OP_NAME).progress == 1.0


def test_done_operation_with_generated_samples():
    uri = "https://example.test/files/xyz:download?alt=media"
    client, _ = make_client(FakeResponse.json_body({
        "name": OP_NAME,
        "done": True,
        "response": {
            "@type": "type.googleapis.com/google.ai.generativelanguage.v1beta.PredictLongRunningResponse",
            "generateVideoResponse": {"generatedSamples": [{"video": {"uri": uri}}]},
        },
    }))

    op = client.get_operation(OP_NAME)

    assert op.status == OperationStatus.DONE
    assert op.progress == 1.0
    assert op.video_uri == uri
    assert op.end_time is not None


def test_done_operation_without_uri_is_still_done():
    client, _ = make_client(FakeResponse.json_body({
        "name": OP_NAME,
        "done": True,
        "response": {"somethingElse": {}},
    }))

    op = client.get_operation(OP_NAME)

    assert op.status == OperationStatus.DONE
    assert op.video_uri == ""


def test_failed_operation_carries_error():
    client, _ = make_client(FakeResponse.json_body({
        "name": OP_NAME,
        "done": True,
        "error": {"code": 3, "message": "prompt was blocked", "status": "INVALID_ARGUMENT"},
    }))

    op = client.get_operation(OP_NAME)

    assert op.status == OperationStatus.FAILED
    assert op.error.code == "3"
    assert op.error.message == "prompt was blocked"
    assert op.error.details["status"] == "INVALID_ARGUMENT"
    assert op.end_time is not None


def test_error_reply_is_parsed():
    body = json.dumps({
        "error": {"code": 429, "message": "Resource has been exhausted", "status": "RESOURCE_EXHAUSTED"},
    }).encode()
    client, _ = make_client(FakeResponse(429, body, reason="Too Many Requests"))

    with pytest.raises(RemoteError) as exc_info:
        client.get_operation(OP_NAME)

    error = exc_info.value
    assert error.status_code == 429
    assert error.error.code == "RESOURCE_EXHAUSTED"
    assert error.error.details == {"http_code": 429}
    assert "Resource has been exhausted" in str(error)


def test_non_json_error_reply():
    error = parse_error_response(502, b"<html>Bad Gateway</html>")

    assert error.status_code == 502
    assert error.error is None
    assert "Bad Gateway" in str(error)


def test_transport_failure_becomes_remote_error():
    client, _ = make_client(requests.exceptions.ConnectionError("connection refused"))

    with pytest.raises(RemoteError) as exc_info:
        client.get_operation(OP_NAME)
    assert exc_info.value.status_code is None
    assert isinstance(exc_info.value.__cause__, requests.exceptions.ConnectionError)


def test_malformed_body_becomes_remote_error():
    client, _ = make_client(FakeResponse(200, b"not json"))

    with pytest.raises(RemoteError, match="failed to parse"):
        client.get_operation(OP_NAME)


def test_cancel_posts_to_cancel_endpoint():
    client, session = make_client(FakeResponse.json_body({}))

    client.cancel_operation(OP_NAME)

    request = session.requests[0]
    assert request["method"] == "POST"
    assert request["url"] == f"{BASE_URL}/{OP_NAME}:cancel"
    assert json.loads(request["data"]) == {}


def test_cancel_rejected_by_api():
    body = json.dumps({"error": {"code": 400, "message": "already done"}}).encode()
    client, _ = make_client(FakeResponse(400, body))

    with pytest.raises(RemoteError) as exc_info:
        client.cancel_operation(OP_NAME)
    assert exc_info.value.error.code == "400"


def test_empty_operation_id_is_rejected():
    client, session = make_client()

    with pytest.raises(ValueError):
        client.get_operation("")
    with pytest.raises(ValueError):
        client.cancel_operation("")
    assert session.requests == []


def test_blank_api_key_is_rejected():
    with pytest.raises(ValueError):
        VeoClient(api_key="  ")


def test_generate_video_submits_payload():
    client, session = make_client(FakeResponse.json_body({"name": OP_NAME}))
    request = GenerationRequest(
        prompt="a heron landing on a misty lake",
        model="veo-3.1-generate-preview",
        negative_prompt="cartoon",
        seed=42,
    )

    op = client.generate_video(request)

    assert op.id == OP_NAME
    assert op.status == OperationStatus.PENDING
    assert op.metadata["prompt"] == "a heron landing on a misty lake"
    assert op.metadata["duration_seconds"] == 8

    sent = session.requests[0]
    assert sent["url"] == f"{BASE_URL}/models/veo-3.1-generate-preview:predictLongRunning"
    assert json.loads(sent["data"]) == {
        "instances": [{"prompt": "a heron landing on a misty lake"}],
        "parameters": {
            "aspectRatio": "16:9",
            "durationSeconds": 8,
            "resolution": "720p",
            "negativePrompt": "cartoon",
            "seed": 42,
        },
    }


def test_generate_video_without_name_fails():
    client, _ = make_client(FakeResponse.json_body({}))

    with pytest.raises(RemoteError, match="operation name"):
        client.generate_video(GenerationRequest(prompt="x", model="veo-3.1-generate-preview"))


@pytest.mark.parametrize("kwargs", [
    {"prompt": "   "},
    {"prompt": "word " * 1025},
    {"aspect_ratio": "4:3"},
    {"resolution": "4k"},
    {"duration_seconds": 5},
    {"resolution": "1080p", "duration_seconds": 6},
    {"person_generation": "everyone"},
    {"model": ""},
])
def test_generation_request_validation(kwargs):
    params = {"prompt": "a fox in snow", "model": "veo-3.1-generate-preview", **kwargs}

    with pytest.raises(ValidationError):
        GenerationRequest(**params)


def test_generation_request_1080p_at_eight_seconds_is_valid():
    request = GenerationRequest(
        prompt="a fox in snow",
        model="veo-3.1-generate-preview",
        resolution="1080p",
        duration_seconds=8,
        person_generation="allow_adult",
    )

    assert request.to_payload()["parameters"]["personGeneration"] == "allow_adult"


@pytest.mark.parametrize("value", [
    "2025-01-01T12:00:00Z",
    "2025-01-01T12:00:00.123456789Z",
    "2025-01-01T13:00:00+01:00",
])
def test_parse_timestamp_variants(value):
    expected = _parse_timestamp("2025-01-01T12:00:00Z")

    parsed = _parse_timestamp(value)

    assert parsed.tzinfo is None
    assert abs((parsed - expected).total_seconds()) < 1


def test_parse_timestamp_garbage():
    assert _parse_timestamp("yesterday") is None
    assert _parse_timestamp(None) is None
