"""Schemas for text analysis, rewriting and change analysis.

Wire JSON uses camelCase keys; Python attributes are snake_case and either
spelling is accepted on input.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel


NOT_SPECIFIED = "not specified"
UNKNOWN_TEXT_TYPE = "Unknown"
DEFAULT_REWRITE_EXPLANATION = (
    "Text has been rewritten according to the provided guidelines."
)
NO_DOCUMENTS_FOUND = "No relevant documents found."

# Longest draft accepted for analysis or rewriting
MAX_TEXT_LENGTH = 10_000


class CamelModel(BaseModel):
    """Base model serializing to camelCase while accepting both spellings."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Dump as JSON-compatible camelCase data."""
        return self.model_dump(mode="json", by_alias=True)


# -----------------------------------------------------------------------------
# Analysis
# -----------------------------------------------------------------------------


class ConversationMessage(CamelModel):
    """One turn of the analysis conversation."""

    role: Literal["user", "assistant"]
    content: str = Field(..., max_length=MAX_TEXT_LENGTH)


class AnalysisRequest(CamelModel):
    """Request body for POST /api/analysis."""

    messages: list[ConversationMessage]


class AnalysisContext(CamelModel):
    """Tone, purpose and audience detected for a text."""

    model_config = ConfigDict(frozen=True)

    tone: str = NOT_SPECIFIED
    purpose: str = NOT_SPECIFIED
    audience: str = NOT_SPECIFIED


def _text_or(default: str, value: Any) -> Any:
    if value is None:
        return default
    if isinstance(value, str) and not value.strip():
        return default
    return value


class AnalysisPayload(CamelModel):
    """Structured data the analysis model embeds between the data markers.

    Every field is optional on the wire. Missing, null or blank values are
    replaced with placeholders so downstream consumers never see a hole.
    ``summary`` is accepted as an alias of ``instructions`` for payloads
    produced by older prompts.
    """

    text_type: str = UNKNOWN_TEXT_TYPE
    tone: str = NOT_SPECIFIED
    purpose: str = NOT_SPECIFIED
    audience: str = NOT_SPECIFIED
    instructions: str = Field(
        default="",
        validation_alias=AliasChoices("instructions", "summary"),
    )
    recommendations: list[str] = Field(default_factory=list)

    @field_validator("text_type", mode="before")
    @classmethod
    def _default_text_type(cls, v: Any) -> Any:
        return _text_or(UNKNOWN_TEXT_TYPE, v)

    @field_validator("tone", "purpose", "audience", mode="before")
    @classmethod
    def _default_context(cls, v: Any) -> Any:
        return _text_or(NOT_SPECIFIED, v)

    @field_validator("instructions", mode="before")
    @classmethod
    def _default_instructions(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("recommendations", mode="before")
    @classmethod
    def _normalize_recommendations(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            return [v] if v.strip() else []
        if isinstance(v, list):
            return [str(item) for item in v if item is not None]
        return v

    @property
    def context(self) -> AnalysisContext:
        return AnalysisContext(
            tone=self.tone, purpose=self.purpose, audience=self.audience
        )


class AnalysisResult(CamelModel):
    """Immutable outcome of one analysis stream."""

    model_config = ConfigDict(frozen=True)

    id: str
    original_text: str
    detected_text_type: str
    extracted_context: AnalysisContext
    retrieved_instructions: str
    recommendations: list[str]
    ready_to_rewrite: bool = True
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


# -----------------------------------------------------------------------------
# Rewrite
# -----------------------------------------------------------------------------


class RewriteContext(CamelModel):
    text_type: str = Field(..., min_length=1)
    tone: str | None = None
    purpose: str | None = None
    audience: str | None = None


class RewriteRequest(CamelModel):
    """Request body for POST /api/rewrite."""

    analysis_id: str | None = None
    original_text: str = Field(..., min_length=1, max_length=MAX_TEXT_LENGTH)
    instructions: str = Field(..., min_length=1)
    context: RewriteContext


class ChangeHighlight(CamelModel):
    before: str
    after: str
    change_type: str
    reason: str


class RewriteSections(CamelModel):
    """The three trimmed sections of a rewrite transcript."""

    rewritten_text: str
    explanation: str
    key_improvements: str = ""


class RewriteResult(CamelModel):
    """Final structured rewrite returned in the ``rewrite_complete`` frame."""

    original_text: str
    rewritten_text: str
    explanation: str = DEFAULT_REWRITE_EXPLANATION
    key_improvements: list[str] = Field(default_factory=list)
    changes_highlighted: list[ChangeHighlight] = Field(default_factory=list)


# -----------------------------------------------------------------------------
# Change analysis
# -----------------------------------------------------------------------------


class ChangeAnalysisContext(CamelModel):
    text_type: str | None = None
    tone: str | None = None
    purpose: str | None = None
    audience: str | None = None


class ChangeAnalysisRequest(CamelModel):
    """Request body for POST /api/analyze-changes."""

    original_text: str = Field(..., min_length=1, max_length=MAX_TEXT_LENGTH)
    rewritten_text: str = Field(..., min_length=1, max_length=2 * MAX_TEXT_LENGTH)
    context: ChangeAnalysisContext | None = None


DEFAULT_CHANGE_TYPE = "other"
DEFAULT_IMPORTANCE = "medium"


def _label_or(default: str, value: Any) -> Any:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() or default
    return value


class TextChange(CamelModel):
    """One explained difference between the original and the rewrite.

    ``type`` and ``importance`` are free text from the model. They are
    lowercased but never rejected, so a change labelled ``"Word choice"`` is
    still reported; clients render unknown labels with a neutral style.
    """

    id: str
    type: str = DEFAULT_CHANGE_TYPE
    original_phrase: str
    rewritten_phrase: str
    explanation: str
    importance: str = DEFAULT_IMPORTANCE
    start_pos: int = 0
    end_pos: int = 0

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, v: Any) -> Any:
        return _label_or(DEFAULT_CHANGE_TYPE, v)

    @field_validator("importance", mode="before")
    @classmethod
    def _normalize_importance(cls, v: Any) -> Any:
        return _label_or(DEFAULT_IMPORTANCE, v)


class ChangeAnalysisResult(CamelModel):
    changes: list[TextChange] = Field(default_factory=list)
    summary: str
    overall_improvements: list[str] = Field(default_factory=list)
