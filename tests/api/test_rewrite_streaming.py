"""Tests for the streaming rewrite and change-analysis endpoints."""

from __future__ import annotations

from fastapi import status

from api.routes.sse import OVERSIZED_FRAME_MESSAGE
from conftest import fragments_stream, parse_sse
from schemas.streaming import (
    AnalysisProgressFrame,
    ChangesCompleteFrame,
    ErrorFrame,
    RewriteChunkFrame,
    RewriteCompleteFrame,
    stream_frame_adapter,
)
from services.streaming.extractor import FALLBACK_CHANGE_SUMMARY


REWRITE_FRAGMENTS = (
    "**REWRITTEN TEXT:**\nDear team,\nI have ",
    "news to share.\n\n**EXPLANATION:**\n I fixed the verb agreement.\n\n",
    "**KEY IMPROVEMENTS:**\n- Correct grammar\n- Friendlier opening\n",
)

REWRITE_BODY = {
    "analysisId": "a-1",
    "originalText": "hi team, i has news",
    "instructions": "Be brief and friendly.",
    "context": {"textType": "email", "tone": "formal"},
}

CHANGE_BODY = {
    "originalText": "hi team, i has news",
    "rewrittenText": "Dear team, I have news.",
    "context": {"textType": "email"},
}


def _frames(body: str):
    events = parse_sse(body)
    assert events[-1] == "[DONE]"
    return [stream_frame_adapter.validate_json(event) for event in events[:-1]]


def test_rewrite_streams_chunks_then_result(client, use_function_model):
    use_function_model(fragments_stream(*REWRITE_FRAGMENTS))

    response = client.post("/api/rewrite", json=REWRITE_BODY)

    assert response.status_code == status.HTTP_200_OK
    assert response.headers["content-type"].startswith("text/event-stream")
    frames = _frames(response.text)

    chunks = "".join(f.content for f in frames if isinstance(f, RewriteChunkFrame))
    assert chunks == "".join(REWRITE_FRAGMENTS)

    complete = frames[-1]
    assert isinstance(complete, RewriteCompleteFrame)
    result = complete.result
    assert result.original_text == "hi team, i has news"
    assert result.rewritten_text == "Dear team,\nI have news to share."
    assert result.explanation == "I fixed the verb agreement."
    assert result.key_improvements == ["Correct grammar", "Friendlier opening"]


def test_rewrite_accepts_snake_case_body(client, use_function_model):
    use_function_model(fragments_stream("Just a better sentence."))

    response = client.post(
        "/api/rewrite",
        json={
            "original_text": "a sentence",
            "instructions": "Improve it",
            "context": {"text_type": "email"},
        },
    )

    complete = _frames(response.text)[-1]
    assert isinstance(complete, RewriteCompleteFrame)
    assert complete.result.rewritten_text == "Just a better sentence."


def test_rewrite_requires_context(client):
    body = {key: value for key, value in REWRITE_BODY.items() if key != "context"}

    response = client.post("/api/rewrite", json=body)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["details"]["type"] == "validation_error"


def test_rewrite_rejects_empty_text(client):
    response = client.post("/api/rewrite", json={**REWRITE_BODY, "originalText": ""})

    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_rewrite_rejects_text_over_the_length_limit(client):
    response = client.post(
        "/api/rewrite", json={**REWRITE_BODY, "originalText": "word " * 8000}
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["details"]["type"] == "validation_error"


def test_oversized_result_still_ends_with_done(client, use_function_model):
    paragraph = "A long rewritten paragraph that keeps going. " * 20
    use_function_model(
        fragments_stream("**REWRITTEN TEXT:**\n", *([paragraph] * 400))
    )

    response = client.post("/api/rewrite", json=REWRITE_BODY)

    assert response.status_code == status.HTTP_200_OK
    events = parse_sse(response.text)
    assert events.count("[DONE]") == 1
    frames = _frames(response.text)
    assert all(isinstance(f, RewriteChunkFrame) for f in frames[:-1])
    error = frames[-1]
    assert isinstance(error, ErrorFrame)
    assert error.message == OVERSIZED_FRAME_MESSAGE



def test_unconfigured_provider_is_internal_error(client, monkeypatch):
    def missing_credentials():
        raise ValueError("LLM_PROVIDER=openai requires OPENAI_API_KEY")

    monkeypatch.setattr("api.routes.rewrite.get_rewrite_agent", missing_credentials)

    response = client.post("/api/rewrite", json=REWRITE_BODY)

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    body = response.json()
    assert body["error"] == "An internal error occurred"
    assert body["details"]["type"] == "internal_server_error"


def test_change_analysis_streams_progress_then_result(client, use_function_model):
    use_function_model(
        fragments_stream(
            '{"changes": [{"type": "grammar", "originalPhrase": "i has", ',
            '"rewrittenPhrase": "I have", "explanation": "Agreement", ',
            '"importance": "high"}], "summary": "Fixed grammar", ',
            '"overallImprovements": ["Correct grammar"]}',
        )
    )

    response = client.post("/api/analyze-changes", json=CHANGE_BODY)

    assert response.status_code == status.HTTP_200_OK
    frames = _frames(response.text)
    assert any(isinstance(f, AnalysisProgressFrame) for f in frames)
    complete = frames[-1]
    assert isinstance(complete, ChangesCompleteFrame)
    assert complete.result.summary == "Fixed grammar"
    assert [change.id for change in complete.result.changes] == ["change-1"]
    assert complete.result.changes[0].importance == "high"


def test_change_analysis_without_json_falls_back(client, use_function_model):
    use_function_model(fragments_stream("The rewrite is clearer."))

    response = client.post("/api/analyze-changes", json=CHANGE_BODY)

    complete = _frames(response.text)[-1]
    assert isinstance(complete, ChangesCompleteFrame)
    assert complete.result.summary == FALLBACK_CHANGE_SUMMARY
    assert complete.result.changes == []


def test_change_analysis_context_is_optional(client, use_function_model):
    use_function_model(fragments_stream('{"changes": [], "summary": "Same"}'))

    response = client.post(
        "/api/analyze-changes",
        json={"originalText": "a", "rewrittenText": "b"},
    )

    complete = _frames(response.text)[-1]
    assert isinstance(complete, ChangesCompleteFrame)
    assert complete.result.summary == "Same"
