"""Streaming change-analysis endpoint comparing original and rewritten text."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from core.config import Settings, get_settings
from core.ratelimit import check_rate_limit
from schemas.analysis import ChangeAnalysisRequest
from schemas.streaming import AnalysisProgressFrame, ChangesCompleteFrame
from services.ai.agent_stream import stream_agent_text
from services.ai.agents import build_change_analysis_prompt, get_change_analysis_agent
from services.ai.deps import ChangeAgentDeps
from services.streaming.extractor import parse_change_analysis
from services.streaming.reader import CompletionStreamReader

from .sse import sse_response


router = APIRouter(tags=["changes"])


def _finalize(transcript: str) -> ChangesCompleteFrame:
    return ChangesCompleteFrame(result=parse_change_analysis(transcript))


@router.post("/analyze-changes", dependencies=[Depends(check_rate_limit)])
async def stream_change_analysis(
    payload: ChangeAnalysisRequest,
    settings: Annotated[Settings, Depends(get_settings)],
) -> StreamingResponse:
    agent = get_change_analysis_agent()
    deps = ChangeAgentDeps(context=payload.context)
    reader = CompletionStreamReader(
        stream_agent_text(agent, build_change_analysis_prompt(payload), deps=deps),
        chunk_frame=AnalysisProgressFrame,
        name="changes",
        finalizer=_finalize,
        idle_timeout=settings.STREAM_IDLE_TIMEOUT_SECONDS,
    )
    return sse_response(reader)
