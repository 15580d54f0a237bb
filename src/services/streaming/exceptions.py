"""Domain errors raised while reading streamed completions.

Each error carries a stable ``error_code`` for log and span tagging. The
stream reader maps them to frames; they never escape as HTTP errors because
the response has already started by the time they occur.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, eq=False)
class StreamError(Exception):
    """Base class for streaming domain errors."""

    message: str
    error_code: str

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.error_code}: {self.message}"


class MarkerExtractionError(StreamError):
    """No structured payload could be recovered from a transcript."""

    def __init__(
        self, message: str = "No structured payload found in transcript"
    ) -> None:
        super().__init__(message=message, error_code="extraction_failed")


class StreamTimeoutError(StreamError):
    """The completion source went silent for longer than the idle timeout."""

    def __init__(self, message: str = "Completion stream stalled") -> None:
        super().__init__(message=message, error_code="stream_timeout")
