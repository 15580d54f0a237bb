"""Tests for the streaming analysis endpoint."""

from __future__ import annotations

from collections.abc import AsyncIterator
from unittest.mock import MagicMock, patch

from fastapi import status
from fastapi.testclient import TestClient
from pydantic_ai.messages import ModelMessage, ModelRequest, ToolReturnPart
from pydantic_ai.models.function import AgentInfo, DeltaToolCall, DeltaToolCalls

from conftest import fragments_stream, parse_sse
from schemas.analysis import MAX_TEXT_LENGTH
from schemas.streaming import (
    AnalysisCompleteFrame,
    CleanupMarkersFrame,
    ConversationFrame,
    ErrorFrame,
    stream_frame_adapter,
)
from services.retrieval import RetrievalService
from services.streaming.protocol import (
    ANALYSIS_DATA_END,
    ANALYSIS_DATA_START,
    LEGACY_ANALYSIS_SENTINEL,
)


PAYLOAD = (
    '{"textType":"email","tone":"formal","purpose":null,"audience":null,'
    '"instructions":"be concise","recommendations":["shorten"]}'
)
USER_TEXT = "hi team, i has news about the project"


def _post(client: TestClient, messages: list[dict[str, str]], **kwargs):
    return client.post("/api/analysis", json={"messages": messages}, **kwargs)


def _frames(body: str):
    events = parse_sse(body)
    assert events[-1] == "[DONE]"
    return [stream_frame_adapter.validate_json(event) for event in events[:-1]]


def _visible(frames) -> str:
    return "".join(f.content for f in frames if isinstance(f, ConversationFrame))


def test_analysis_streams_visible_text_and_result(client, use_function_model):
    use_function_model(
        fragments_stream(
            "Hello! ---ANAL",
            f"YSIS_DATA_START---\n{PAYLOAD}",
            f"\n{ANALYSIS_DATA_END}",
        )
    )

    response = _post(client, [{"role": "user", "content": USER_TEXT}])

    assert response.status_code == status.HTTP_200_OK
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"
    assert response.headers["x-correlation-id"]

    frames = _frames(response.text)
    assert _visible(frames) == "Hello!"

    cleanup = [f for f in frames if isinstance(f, CleanupMarkersFrame)]
    assert cleanup[0].markers == [ANALYSIS_DATA_START, ANALYSIS_DATA_END]

    complete = frames[-1]
    assert isinstance(complete, AnalysisCompleteFrame)
    result = complete.analysis_result
    assert result.original_text == USER_TEXT
    assert result.detected_text_type == "email"
    assert result.extracted_context.tone == "formal"
    assert result.extracted_context.purpose == "not specified"
    assert result.recommendations == ["shorten"]
    # Retrieval is not configured in tests, so only the model's summary remains
    assert result.retrieved_instructions == "be concise"


def test_analysis_uses_last_message(client, use_function_model):
    use_function_model(
        fragments_stream(f"Sure. {ANALYSIS_DATA_START}{{}}{ANALYSIS_DATA_END}")
    )

    response = _post(
        client,
        [
            {"role": "user", "content": "first draft"},
            {"role": "assistant", "content": "Looks good"},
            {"role": "user", "content": "second draft"},
        ],
    )

    complete = _frames(response.text)[-1]
    assert isinstance(complete, AnalysisCompleteFrame)
    assert complete.analysis_result.original_text == "second draft"
    assert complete.analysis_result.detected_text_type == "Unknown"


def test_analysis_collects_tool_results(client, use_function_model, monkeypatch):
    async def fake_search(self, query, text_type=None, **context):
        assert text_type == "email"
        return "Document 1 (Email guide):\nOpen with a greeting."

    monkeypatch.setattr(RetrievalService, "search_documents", fake_search)

    async def stream(
        messages: list[ModelMessage], info: AgentInfo
    ) -> AsyncIterator[str | DeltaToolCalls]:
        searched = any(
            isinstance(part, ToolReturnPart)
            for message in messages
            if isinstance(message, ModelRequest)
            for part in message.parts
        )
        if not searched:
            yield {
                0: DeltaToolCall(
                    name="search_documents",
                    json_args='{"query": "greetings", "text_type": "email"}',
                    tool_call_id="call-1",
                )
            }
            return
        yield "I found some guidance. "
        yield f"{ANALYSIS_DATA_START}{PAYLOAD}{ANALYSIS_DATA_END}"

    use_function_model(stream)

    response = _post(client, [{"role": "user", "content": USER_TEXT}])

    frames = _frames(response.text)
    assert _visible(frames) == "I found some guidance."
    # Tool traffic never reaches the visible stream
    assert "Retrieved instructions" not in _visible(frames)
    complete = frames[-1]
    assert isinstance(complete, AnalysisCompleteFrame)
    assert complete.analysis_result.retrieved_instructions == (
        "be concise\n\nDocument 1 (Email guide):\nOpen with a greeting."
    )


def test_analysis_accepts_legacy_sentinel(client, use_function_model):
    use_function_model(
        fragments_stream("All done. ", 'ANALYSIS_COMPLETE {"textType": "blog post"}')
    )

    frames = _frames(_post(client, [{"role": "user", "content": USER_TEXT}]).text)

    assert _visible(frames) == "All done."
    cleanup = [f for f in frames if isinstance(f, CleanupMarkersFrame)]
    assert cleanup[0].markers == [LEGACY_ANALYSIS_SENTINEL]
    complete = frames[-1]
    assert isinstance(complete, AnalysisCompleteFrame)
    assert complete.analysis_result.detected_text_type == "blog post"


def test_analysis_without_markers_has_no_result(client, use_function_model):
    use_function_model(fragments_stream("This reads like ", "a friendly email."))

    frames = _frames(_post(client, [{"role": "user", "content": USER_TEXT}]).text)

    assert _visible(frames) == "This reads like a friendly email."
    assert not any(isinstance(f, AnalysisCompleteFrame) for f in frames)
    assert not any(isinstance(f, CleanupMarkersFrame) for f in frames)


def test_model_failure_is_streamed_as_error_frame(client, use_function_model):
    async def failing(
        messages: list[ModelMessage], info: AgentInfo
    ) -> AsyncIterator[str]:
        yield "Starting the analysis"
        raise RuntimeError("upstream connection reset")

    use_function_model(failing)

    response = _post(client, [{"role": "user", "content": USER_TEXT}])

    assert response.status_code == status.HTTP_200_OK
    frames = _frames(response.text)
    assert isinstance(frames[-1], ErrorFrame)
    assert not any(isinstance(f, AnalysisCompleteFrame) for f in frames)


def test_empty_messages_are_rejected(client):
    response = _post(client, [])

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Invalid message format"
    assert body["details"]["type"] == "invalid_request"


def test_last_message_must_come_from_user(client):
    response = _post(
        client,
        [
            {"role": "user", "content": "draft"},
            {"role": "assistant", "content": "analysis"},
        ],
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["error"] == "Invalid message format"


def test_blank_user_message_is_rejected(client):
    response = _post(client, [{"role": "user", "content": "   "}])

    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_overlong_draft_is_validation_error(client):
    response = _post(client, [{"role": "user", "content": "x" * (MAX_TEXT_LENGTH + 1)}])

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["details"]["type"] == "validation_error"


def test_missing_messages_field_is_validation_error(client):
    response = client.post("/api/analysis", json={})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    body = response.json()
    assert body["error"] == "Invalid request data provided"
    assert body["details"]["type"] == "validation_error"


def test_unknown_role_is_validation_error(client):
    response = _post(client, [{"role": "system", "content": "hi"}])

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["details"]["type"] == "validation_error"


def test_rate_limited_request_gets_429(client):
    limited = MagicMock()
    limited.allowed = False
    limited.remaining = 0
    limited.reset = 0
    limiter = MagicMock()
    limiter.limit.return_value = limited

    with patch("core.ratelimit.get_ratelimiter", return_value=limiter):
        response = _post(client, [{"role": "user", "content": USER_TEXT}])

    assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
    assert response.headers["retry-after"] == "1"
    body = response.json()
    assert body["details"]["type"] == "rate_limited"
    assert body["error"] == "Too many requests. Please try again later."
