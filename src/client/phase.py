"""Client-side sequencing of the analyze and rewrite calls."""

from __future__ import annotations

import logging
from enum import StrEnum

import httpx
from pydantic import ValidationError

from schemas.analysis import (
    AnalysisResult,
    ChangeAnalysisContext,
    ChangeAnalysisRequest,
    ChangeAnalysisResult,
    ConversationMessage,
    RewriteContext,
    RewriteRequest,
    RewriteResult,
)
from schemas.streaming import (
    AnalysisCompleteFrame,
    ChangesCompleteFrame,
    CleanupMarkersFrame,
    ConversationFrame,
    ErrorFrame,
    RewriteChunkFrame,
    RewriteCompleteFrame,
)

from .api import ApiError, RewriterApiClient


logger = logging.getLogger(__name__)

ANALYSIS_ERROR_MESSAGE = "Sorry, there was an error during analysis. Please try again."
REWRITE_PROCESSING_EXPLANATION = "Processing..."

_TRANSPORT_ERRORS = (httpx.HTTPError, ApiError, ValidationError)


class Phase(StrEnum):
    INPUT = "input"
    ANALYZING = "analyzing"
    READY = "ready"
    REWRITING = "rewriting"
    COMPLETE = "complete"


class PhaseTransitionError(RuntimeError):
    """Operation not allowed in the controller's current phase."""

    def __init__(self, operation: str, phase: Phase):
        super().__init__(f"Cannot {operation} while in phase '{phase}'")
        self.operation = operation
        self.phase = phase


def strip_markers(text: str, markers: list[str]) -> str:
    """Cut ``text`` at the first occurrence of each marker, then trim."""
    for marker in markers:
        idx = text.find(marker)
        if idx != -1:
            text = text[:idx]
    return text.strip()


class PhaseController:
    """Tracks one user through input, analyzing, ready, rewriting and complete.

    Operations run one at a time: analysis must finish before a rewrite can
    start. Failures never raise to the caller; they move the controller back
    to the last stable phase and record ``last_error``.
    """

    def __init__(self, api: RewriterApiClient):
        self._api = api
        self.phase = Phase.INPUT
        self.messages: list[ConversationMessage] = []
        self.analysis: AnalysisResult | None = None
        self.rewrite_result: RewriteResult | None = None
        self.change_analysis: ChangeAnalysisResult | None = None
        self.last_error: str | None = None

    def _require(self, operation: str, *allowed: Phase) -> None:
        if self.phase not in allowed:
            raise PhaseTransitionError(operation, self.phase)

    def reset(self) -> None:
        """Start over from an empty input phase."""
        self._require("reset", Phase.INPUT, Phase.READY, Phase.COMPLETE)
        self.phase = Phase.INPUT
        self.messages = []
        self.analysis = None
        self.rewrite_result = None
        self.change_analysis = None
        self.last_error = None

    async def analyze(self, text: str) -> AnalysisResult | None:
        """Stream an analysis of ``text``; returns the result when one arrives."""
        self._require("analyze", Phase.INPUT, Phase.COMPLETE)
        if not text.strip():
            raise ValueError("Text to analyze must not be empty")

        self.reset()
        user = ConversationMessage(role="user", content=text)
        assistant = ConversationMessage(role="assistant", content="")
        self.messages = [user, assistant]
        self.phase = Phase.ANALYZING

        result: AnalysisResult | None = None
        error: str | None = None
        try:
            async for frame in self._api.stream_analysis([user]):
                if isinstance(frame, ConversationFrame):
                    assistant.content += frame.content
                elif isinstance(frame, CleanupMarkersFrame):
                    assistant.content = strip_markers(assistant.content, frame.markers)
                elif isinstance(frame, AnalysisCompleteFrame):
                    result = frame.analysis_result
                elif isinstance(frame, ErrorFrame):
                    error = frame.message
        except _TRANSPORT_ERRORS as e:
            logger.warning("Analysis request failed: %s", type(e).__name__)
            error = str(e)

        if error is not None:
            assistant.content = ANALYSIS_ERROR_MESSAGE
            self.last_error = error
            self.phase = Phase.INPUT
            return None

        if result is None:
            logger.info("Analysis stream ended without a structured result")
            self.phase = Phase.INPUT
            return None

        self.analysis = result
        self.phase = Phase.READY
        return result

    def _rewrite_request(self, analysis: AnalysisResult) -> RewriteRequest:
        context = analysis.extracted_context
        return RewriteRequest(
            analysis_id=analysis.id,
            original_text=analysis.original_text,
            instructions=analysis.retrieved_instructions,
            context=RewriteContext(
                text_type=analysis.detected_text_type,
                tone=context.tone,
                purpose=context.purpose,
                audience=context.audience,
            ),
        )

    async def rewrite(self) -> RewriteResult | None:
        """Stream a rewrite of the analyzed text."""
        self._require("rewrite", Phase.READY)
        analysis = self.analysis
        if analysis is None:
            raise PhaseTransitionError("rewrite", self.phase)

        self.phase = Phase.REWRITING
        self.rewrite_result = None
        self.last_error = None

        partial = ""
        final: RewriteResult | None = None
        error: str | None = None
        try:
            request = self._rewrite_request(analysis)
            async for frame in self._api.stream_rewrite(request):
                if isinstance(frame, RewriteChunkFrame):
                    partial += frame.content
                    self.rewrite_result = RewriteResult(
                        original_text=analysis.original_text,
                        rewritten_text=partial,
                        explanation=REWRITE_PROCESSING_EXPLANATION,
                    )
                elif isinstance(frame, RewriteCompleteFrame):
                    final = frame.result
                elif isinstance(frame, ErrorFrame):
                    error = frame.message
        except _TRANSPORT_ERRORS as e:
            logger.warning("Rewrite request failed: %s", type(e).__name__)
            error = str(e)

        if error is not None or final is None:
            self.last_error = error
            self.rewrite_result = None
            self.phase = Phase.READY
            return None

        self.rewrite_result = final
        self.phase = Phase.COMPLETE
        return final

    async def analyze_changes(self) -> ChangeAnalysisResult | None:
        """Explain the differences between the original and the rewrite."""
        self._require("analyze changes", Phase.COMPLETE)
        analysis = self.analysis
        rewrite = self.rewrite_result
        if analysis is None or rewrite is None:
            raise PhaseTransitionError("analyze changes", self.phase)

        context = analysis.extracted_context
        request = ChangeAnalysisRequest(
            original_text=rewrite.original_text,
            rewritten_text=rewrite.rewritten_text,
            context=ChangeAnalysisContext(
                text_type=analysis.detected_text_type,
                tone=context.tone,
                purpose=context.purpose,
                audience=context.audience,
            ),
        )

        result: ChangeAnalysisResult | None = None
        try:
            async for frame in self._api.stream_change_analysis(request):
                if isinstance(frame, ChangesCompleteFrame):
                    result = frame.result
                elif isinstance(frame, ErrorFrame):
                    self.last_error = frame.message
        except _TRANSPORT_ERRORS as e:
            logger.warning("Change analysis request failed: %s", type(e).__name__)
            self.last_error = str(e)
            return None

        self.change_analysis = result
        return result
