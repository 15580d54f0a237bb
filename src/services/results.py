"""Assemble final analysis and rewrite results from parsed transcripts."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from schemas.analysis import (
    NO_DOCUMENTS_FOUND,
    AnalysisPayload,
    AnalysisResult,
    RewriteResult,
)
from services.streaming.exceptions import MarkerExtractionError
from services.streaming.extractor import parse_rewrite_sections, split_bullets


def build_analysis_result(
    payload: AnalysisPayload,
    *,
    original_text: str,
    retrieved: list[str] | None = None,
) -> AnalysisResult:
    """Combine the model's payload with the guidance its tools retrieved.

    The model's own summary of the guidelines comes first, followed by the
    raw documents from each search_documents call.
    """
    parts = [payload.instructions.strip(), *(doc.strip() for doc in retrieved or [])]
    instructions = "\n\n".join(part for part in parts if part)
    return AnalysisResult(
        id=str(uuid.uuid4()),
        original_text=original_text,
        detected_text_type=payload.text_type,
        extracted_context=payload.context,
        retrieved_instructions=instructions or NO_DOCUMENTS_FOUND,
        recommendations=list(payload.recommendations),
        ready_to_rewrite=True,
        timestamp=datetime.now(UTC),
    )


def build_rewrite_result(transcript: str, *, original_text: str) -> RewriteResult:
    """Parse a rewrite transcript into the final result.

    Raises:
        MarkerExtractionError: the model produced no text at all.
    """
    if not transcript.strip():
        raise MarkerExtractionError("Rewrite transcript is empty")
    sections = parse_rewrite_sections(transcript)
    return RewriteResult(
        original_text=original_text,
        rewritten_text=sections.rewritten_text,
        explanation=sections.explanation,
        key_improvements=split_bullets(sections.key_improvements),
        changes_highlighted=[],
    )
