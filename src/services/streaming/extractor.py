"""Recover structured results from complete model transcripts.

The same transcript always yields the same result. Analysis extraction
signals an unrecoverable transcript with ``MarkerExtractionError``; rewrite
and change-analysis parsing always produce a result, falling back to
generic text.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from schemas.analysis import (
    DEFAULT_REWRITE_EXPLANATION,
    AnalysisPayload,
    ChangeAnalysisResult,
    RewriteSections,
    TextChange,
)
from services.streaming.exceptions import MarkerExtractionError
from services.streaming.protocol import (
    ANALYSIS_DATA_END,
    ANALYSIS_DATA_START,
    LEGACY_ANALYSIS_SENTINEL,
)


logger = logging.getLogger(__name__)

REWRITTEN_TEXT_HEADING = "**REWRITTEN TEXT:**"
EXPLANATION_HEADING = "**EXPLANATION:**"
KEY_IMPROVEMENTS_HEADING = "**KEY IMPROVEMENTS:**"
REWRITE_HEADINGS = (
    REWRITTEN_TEXT_HEADING,
    EXPLANATION_HEADING,
    KEY_IMPROVEMENTS_HEADING,
)

FALLBACK_CHANGE_SUMMARY = (
    "Text analysis completed. The rewritten version shows improvements in "
    "clarity, tone, and structure."
)
FALLBACK_OVERALL_IMPROVEMENTS = (
    "Enhanced professional tone",
    "Improved clarity and readability",
    "Better structure and flow",
)
DEFAULT_CHANGE_SUMMARY = "Analysis completed successfully."

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)
_LEGACY_PREFIX_RE = re.compile(r"\s*(?:_TOOL_CALL)?\s*:?\s*")
_BULLET_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+")


# -----------------------------------------------------------------------------
# Balanced-brace scanning
# -----------------------------------------------------------------------------


def _balanced_object_end(text: str, start: int) -> int | None:
    """Return the index just past the object opening at ``text[start]``.

    Braces inside JSON string literals (including escaped quotes) are ignored.
    """
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i + 1
    return None


def _balanced_objects(text: str) -> list[str]:
    """Every top-level balanced ``{...}`` span in ``text``, in order."""
    spans: list[str] = []
    pos = 0
    while True:
        start = text.find("{", pos)
        if start == -1:
            return spans
        end = _balanced_object_end(text, start)
        if end is None:
            # Unbalanced from here on; try the next brace
            pos = start + 1
            continue
        spans.append(text[start:end])
        pos = end


def _load_object(candidate: str) -> dict[str, Any] | None:
    try:
        value = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


def _largest_object(text: str) -> dict[str, Any] | None:
    for candidate in sorted(_balanced_objects(text), key=len, reverse=True):
        parsed = _load_object(candidate)
        if parsed is not None:
            return parsed
    return None


# -----------------------------------------------------------------------------
# Analysis payload
# -----------------------------------------------------------------------------


def extract_paired_payload(transcript: str) -> dict[str, Any]:
    """Parse the JSON object between the analysis data markers.

    A missing end marker means the payload runs to the end of the transcript.
    """
    start = transcript.find(ANALYSIS_DATA_START)
    if start == -1:
        raise MarkerExtractionError("Analysis data markers not found")
    body_start = start + len(ANALYSIS_DATA_START)
    end = transcript.find(ANALYSIS_DATA_END, body_start)
    body = transcript[body_start:] if end == -1 else transcript[body_start:end]
    body = body.strip()

    parsed = _load_object(body)
    if parsed is None:
        # Tolerate prose or a code fence wrapped around the object
        parsed = _largest_object(body)
    if parsed is None:
        raise MarkerExtractionError("Analysis data block is not a JSON object")
    return parsed


def extract_legacy_payload(transcript: str) -> dict[str, Any]:
    """Parse JSON following the bare ``ANALYSIS_COMPLETE`` sentinel.

    TODO: delete together with ACCEPT_LEGACY_ANALYSIS_SENTINEL once analysis
    prompts emitting the bare sentinel are gone.
    """
    idx = transcript.find(LEGACY_ANALYSIS_SENTINEL)
    if idx == -1:
        raise MarkerExtractionError("Legacy analysis sentinel not found")
    after = transcript[idx + len(LEGACY_ANALYSIS_SENTINEL) :]

    # 1. Object immediately after the sentinel
    prefix = _LEGACY_PREFIX_RE.match(after)
    offset = prefix.end() if prefix else 0
    if after[offset : offset + 1] == "{":
        end = _balanced_object_end(after, offset)
        if end is not None:
            parsed = _load_object(after[offset:end])
            if parsed is not None:
                return parsed

    # 2. Fenced code block
    for match in _FENCED_JSON_RE.finditer(after):
        parsed = _load_object(match.group(1))
        if parsed is not None:
            return parsed

    # 3. Largest balanced object anywhere after the sentinel
    parsed = _largest_object(after)
    if parsed is not None:
        return parsed

    raise MarkerExtractionError("No JSON object found after legacy sentinel")


def extract_analysis_payload(
    transcript: str, *, accept_legacy: bool = True
) -> AnalysisPayload:
    """Recover the analysis payload from a full transcript.

    Raises:
        MarkerExtractionError: no recoverable payload.
    """
    data: dict[str, Any] | None = None
    if ANALYSIS_DATA_START in transcript:
        data = extract_paired_payload(transcript)
    elif accept_legacy and LEGACY_ANALYSIS_SENTINEL in transcript:
        data = extract_legacy_payload(transcript)

    if data is None:
        raise MarkerExtractionError("Transcript contains no analysis markers")

    try:
        return AnalysisPayload.model_validate(data)
    except ValidationError as e:
        raise MarkerExtractionError(
            f"Analysis payload failed validation ({e.error_count()} errors)"
        ) from e


# -----------------------------------------------------------------------------
# Rewrite sections
# -----------------------------------------------------------------------------


def _section(transcript: str, heading: str) -> str | None:
    idx = transcript.find(heading)
    if idx == -1:
        return None
    start = idx + len(heading)
    ends = [
        pos
        for other in REWRITE_HEADINGS
        if other != heading and (pos := transcript.find(other, start)) != -1
    ]
    end = min(ends) if ends else len(transcript)
    return transcript[start:end].strip()


def parse_rewrite_sections(transcript: str) -> RewriteSections:
    """Split a rewrite transcript into its three headed sections.

    A missing rewritten-text section means the whole transcript is the
    rewritten text; a missing explanation gets a generic one.
    """
    rewritten = _section(transcript, REWRITTEN_TEXT_HEADING)
    explanation = _section(transcript, EXPLANATION_HEADING)
    improvements = _section(transcript, KEY_IMPROVEMENTS_HEADING)
    return RewriteSections(
        rewritten_text=rewritten if rewritten is not None else transcript.strip(),
        explanation=explanation or DEFAULT_REWRITE_EXPLANATION,
        key_improvements=improvements or "",
    )


def split_bullets(section: str) -> list[str]:
    """Turn a bullet list section into its items."""
    items: list[str] = []
    for line in section.splitlines():
        if not line.strip():
            continue
        if _BULLET_RE.match(line):
            items.append(_BULLET_RE.sub("", line, count=1).strip())
        elif items:
            # Continuation of a wrapped bullet
            items[-1] = f"{items[-1]} {line.strip()}"
        else:
            items.append(line.strip())
    return [item for item in items if item]


# -----------------------------------------------------------------------------
# Change analysis
# -----------------------------------------------------------------------------


def fallback_change_analysis() -> ChangeAnalysisResult:
    return ChangeAnalysisResult(
        changes=[],
        summary=FALLBACK_CHANGE_SUMMARY,
        overall_improvements=list(FALLBACK_OVERALL_IMPROVEMENTS),
    )


def parse_change_analysis(transcript: str) -> ChangeAnalysisResult:
    """Parse the change-analysis JSON, falling back to a generic result."""
    data = _largest_object(transcript)
    if data is None:
        logger.warning("Change analysis transcript contained no JSON object")
        return fallback_change_analysis()

    raw_changes = data.get("changes")
    changes: list[TextChange] = []
    skipped = 0
    for raw in raw_changes if isinstance(raw_changes, list) else []:
        if not isinstance(raw, dict):
            skipped += 1
            continue
        try:
            change = TextChange.model_validate(
                {**raw, "id": f"change-{len(changes) + 1}", "startPos": 0, "endPos": 0}
            )
        except ValidationError:
            skipped += 1
            continue
        changes.append(change)
    if skipped:
        logger.warning("Skipped %d malformed change entries", skipped)

    summary = data.get("summary")
    if not isinstance(summary, str) or not summary:
        summary = DEFAULT_CHANGE_SUMMARY
    improvements = data.get("overallImprovements")
    if not isinstance(improvements, list):
        improvements = []
    return ChangeAnalysisResult(
        changes=changes,
        summary=summary,
        overall_improvements=[str(i) for i in improvements],
    )
