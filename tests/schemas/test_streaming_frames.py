"""Tests for SSE frame serialization."""

from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest

from schemas.analysis import AnalysisContext, AnalysisResult
from schemas.streaming import (
    MAX_SSE_FRAME_BYTES,
    AnalysisCompleteFrame,
    CleanupMarkersFrame,
    ConversationFrame,
    DoneFrame,
    ErrorFrame,
    SseFrameTooLargeError,
    stream_frame_adapter,
)


def _analysis_result() -> AnalysisResult:
    return AnalysisResult(
        id="a-1",
        original_text="hi team",
        detected_text_type="email",
        extracted_context=AnalysisContext(tone="formal"),
        retrieved_instructions="Be brief.",
        recommendations=["shorten"],
        timestamp=datetime(2025, 1, 2, 3, 4, 5, tzinfo=UTC),
    )


def test_frame_is_a_single_data_line() -> None:
    sse = ConversationFrame(content="Hello\nworld").to_sse()

    assert sse.startswith("data: ")
    assert sse.endswith("\n\n")
    assert sse.count("\n") == 2
    assert json.loads(sse[len("data: ") :]) == {
        "type": "conversation",
        "content": "Hello\nworld",
    }


def test_analysis_complete_uses_camel_case_keys() -> None:
    sse = AnalysisCompleteFrame(analysis_result=_analysis_result()).to_sse()
    data = json.loads(sse[len("data: ") :])

    assert data["type"] == "analysis_complete"
    result = data["analysisResult"]
    assert result["detectedTextType"] == "email"
    assert result["extractedContext"] == {
        "tone": "formal",
        "purpose": "not specified",
        "audience": "not specified",
    }
    assert result["retrievedInstructions"] == "Be brief."
    assert result["readyToRewrite"] is True
    assert result["timestamp"].startswith("2025-01-02T03:04:05")


def test_done_frame_uses_sentinel() -> None:
    assert DoneFrame().to_sse() == "data: [DONE]\n\n"


def test_oversized_frame_is_rejected() -> None:
    frame = ConversationFrame(content="x" * (MAX_SSE_FRAME_BYTES + 1))

    with pytest.raises(SseFrameTooLargeError, match="MAX_SSE_FRAME_BYTES") as exc:
        frame.to_sse()

    assert exc.value.size > MAX_SSE_FRAME_BYTES


@pytest.mark.parametrize(
    "frame",
    [
        ConversationFrame(content="Hi"),
        CleanupMarkersFrame(markers=["ANALYSIS_COMPLETE"]),
        ErrorFrame(message="Something went wrong. Please try again."),
        AnalysisCompleteFrame(analysis_result=_analysis_result()),
    ],
)
def test_frames_decode_to_their_own_type(frame) -> None:
    payload = frame.to_sse()[len("data: ") :].strip()

    assert stream_frame_adapter.validate_json(payload) == frame
