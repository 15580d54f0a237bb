"""SSE frame schemas shared by the streaming routes and the client."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import Field, TypeAdapter

from schemas.analysis import (
    AnalysisResult,
    CamelModel,
    ChangeAnalysisResult,
    RewriteResult,
)


MAX_SSE_FRAME_BYTES: int = 262_144

DONE_SENTINEL = "[DONE]"


class SseFrameTooLargeError(ValueError):
    """A serialized frame is over ``MAX_SSE_FRAME_BYTES``."""

    def __init__(self, size: int):
        super().__init__(
            f"SSE payload of {size} bytes exceeded MAX_SSE_FRAME_BYTES "
            f"({MAX_SSE_FRAME_BYTES})"
        )
        self.size = size


class SseFrame(CamelModel):
    """Base class for every frame emitted on a streaming response."""

    def to_sse(self) -> str:
        """Serialize frame to SSE format with size validation."""
        payload = self.model_dump_json(by_alias=True)
        size = len(payload.encode("utf-8"))
        if size > MAX_SSE_FRAME_BYTES:
            raise SseFrameTooLargeError(size)
        return f"data: {payload}\n\n"


class ConversationFrame(SseFrame):
    """Visible analysis text for the end user."""

    type: Literal["conversation"] = "conversation"
    content: str


class CleanupMarkersFrame(SseFrame):
    """Markers that appeared in the transcript.

    Text reaching the client is already marker-free; clients that strip
    markers themselves treat this as a no-op.
    """

    type: Literal["cleanup_markers"] = "cleanup_markers"
    markers: list[str]


class AnalysisCompleteFrame(SseFrame):
    type: Literal["analysis_complete"] = "analysis_complete"
    analysis_result: AnalysisResult


class RewriteChunkFrame(SseFrame):
    type: Literal["rewrite_chunk"] = "rewrite_chunk"
    content: str


class RewriteCompleteFrame(SseFrame):
    type: Literal["rewrite_complete"] = "rewrite_complete"
    result: RewriteResult


class AnalysisProgressFrame(SseFrame):
    type: Literal["analysis_progress"] = "analysis_progress"
    content: str


class ChangesCompleteFrame(SseFrame):
    type: Literal["changes_complete"] = "changes_complete"
    result: ChangeAnalysisResult


class ErrorFrame(SseFrame):
    """Terminal failure of the upstream completion, followed by ``done``."""

    type: Literal["error"] = "error"
    message: str


class DoneFrame(SseFrame):
    """Exactly one per stream; nothing follows it."""

    type: Literal["done"] = "done"

    def to_sse(self) -> str:
        return f"data: {DONE_SENTINEL}\n\n"


TextFrame = ConversationFrame | RewriteChunkFrame | AnalysisProgressFrame

StreamFrame = Annotated[
    ConversationFrame
    | CleanupMarkersFrame
    | AnalysisCompleteFrame
    | RewriteChunkFrame
    | RewriteCompleteFrame
    | AnalysisProgressFrame
    | ChangesCompleteFrame
    | ErrorFrame
    | DoneFrame,
    Field(discriminator="type"),
]

stream_frame_adapter: TypeAdapter[StreamFrame] = TypeAdapter(StreamFrame)
