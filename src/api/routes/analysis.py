"""Streaming text analysis endpoint."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from core.config import Settings, get_settings
from core.error_handler import StructuredLogger
from core.exceptions import InvalidRequestError
from core.ratelimit import check_rate_limit
from schemas.analysis import AnalysisRequest
from schemas.streaming import AnalysisCompleteFrame, ConversationFrame
from services.ai.agent_stream import stream_agent_text
from services.ai.agents import build_analysis_prompt, get_analysis_agent
from services.ai.deps import AnalysisAgentDeps
from services.results import build_analysis_result
from services.retrieval import RetrievalService
from services.streaming.extractor import extract_analysis_payload
from services.streaming.protocol import analysis_markers
from services.streaming.reader import CompletionStreamReader

from .sse import sse_response


structured_logger = StructuredLogger(__name__)

router = APIRouter(tags=["analysis"])

INVALID_MESSAGE_FORMAT = "Invalid message format"


@router.post("/analysis", dependencies=[Depends(check_rate_limit)])
async def stream_analysis(
    payload: AnalysisRequest,
    settings: Annotated[Settings, Depends(get_settings)],
) -> StreamingResponse:
    """Analyze the latest user message and stream the findings.

    Emits ``conversation`` frames with the visible analysis, then
    ``cleanup_markers``, ``analysis_complete`` (when a payload was recovered)
    and ``done``.
    """
    latest = payload.messages[-1] if payload.messages else None
    if latest is None or latest.role != "user" or not latest.content.strip():
        raise InvalidRequestError(INVALID_MESSAGE_FORMAT)

    original_text = latest.content
    accept_legacy = settings.ACCEPT_LEGACY_ANALYSIS_SENTINEL
    agent = get_analysis_agent()
    deps = AnalysisAgentDeps(retrieval=RetrievalService(settings))

    def finalize(transcript: str) -> AnalysisCompleteFrame:
        analysis_payload = extract_analysis_payload(
            transcript, accept_legacy=accept_legacy
        )
        result = build_analysis_result(
            analysis_payload,
            original_text=original_text,
            retrieved=deps.retrieved_instructions,
        )
        structured_logger.info(
            "Analysis completed",
            analysis_id=result.id,
            text_type=result.detected_text_type,
            recommendation_count=len(result.recommendations),
        )
        return AnalysisCompleteFrame(analysis_result=result)

    reader = CompletionStreamReader(
        stream_agent_text(agent, build_analysis_prompt(original_text), deps=deps),
        chunk_frame=ConversationFrame,
        name="analysis",
        markers=analysis_markers(accept_legacy=accept_legacy),
        finalizer=finalize,
        idle_timeout=settings.STREAM_IDLE_TIMEOUT_SECONDS,
    )
    return sse_response(reader)
