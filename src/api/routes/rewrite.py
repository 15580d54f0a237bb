"""Streaming rewrite endpoint."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from core.config import Settings, get_settings
from core.error_handler import StructuredLogger
from core.ratelimit import check_rate_limit
from schemas.analysis import RewriteRequest
from schemas.streaming import RewriteChunkFrame, RewriteCompleteFrame
from services.ai.agent_stream import stream_agent_text
from services.ai.agents import build_rewrite_prompt, get_rewrite_agent
from services.ai.deps import RewriteAgentDeps
from services.results import build_rewrite_result
from services.streaming.reader import CompletionStreamReader

from .sse import sse_response


structured_logger = StructuredLogger(__name__)

router = APIRouter(tags=["rewrite"])


@router.post("/rewrite", dependencies=[Depends(check_rate_limit)])
async def stream_rewrite(
    payload: RewriteRequest,
    settings: Annotated[Settings, Depends(get_settings)],
) -> StreamingResponse:
    """Rewrite the text using the analysis guidance, streaming raw chunks.

    The final ``rewrite_complete`` frame carries the parsed sections.
    """
    agent = get_rewrite_agent()
    deps = RewriteAgentDeps(context=payload.context)

    def finalize(transcript: str) -> RewriteCompleteFrame:
        result = build_rewrite_result(transcript, original_text=payload.original_text)
        structured_logger.info(
            "Rewrite completed",
            analysis_id=payload.analysis_id,
            improvement_count=len(result.key_improvements),
        )
        return RewriteCompleteFrame(result=result)

    reader = CompletionStreamReader(
        stream_agent_text(agent, build_rewrite_prompt(payload), deps=deps),
        chunk_frame=RewriteChunkFrame,
        name="rewrite",
        finalizer=finalize,
        idle_timeout=settings.STREAM_IDLE_TIMEOUT_SECONDS,
    )
    return sse_response(reader)
