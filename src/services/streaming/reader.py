"""Turn a stream of completion text fragments into typed SSE frames."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable, AsyncIterator, Callable, Sequence

from core.observability import get_tracer
from schemas.streaming import (
    CleanupMarkersFrame,
    DoneFrame,
    ErrorFrame,
    SseFrame,
    TextFrame,
)
from services.streaming.exceptions import MarkerExtractionError, StreamTimeoutError
from services.streaming.protocol import MarkerSpec
from services.streaming.suppressor import MarkerSuppressor


logger = logging.getLogger(__name__)

_tracer = get_tracer(__name__)

# Called once with the full transcript; returns the completion frame, if any
Finalizer = Callable[[str], SseFrame | None]

DEFAULT_IDLE_TIMEOUT_SECONDS = 60.0


def user_friendly_error_message(exc: BaseException) -> str:
    """Convert upstream failures into messages safe to show end users."""
    if isinstance(exc, StreamTimeoutError):
        return (
            "The AI service stopped responding. "
            "Please wait a moment and try again."
        )

    exc_str = str(exc).lower()

    if "503" in exc_str or "overloaded" in exc_str or "unavailable" in exc_str:
        return (
            "The AI service is currently experiencing high demand. "
            "Please wait a moment and try again."
        )

    if "429" in exc_str or "rate limit" in exc_str or "quota" in exc_str:
        return (
            "You've sent too many requests. "
            "Please wait a minute before trying again."
        )

    if "timeout" in exc_str or "timed out" in exc_str:
        return (
            "The request took too long to complete. "
            "Please try a shorter text or try again later."
        )

    if "connection" in exc_str or "network" in exc_str:
        return (
            "There was a network issue connecting to the AI service. "
            "Please check your connection and try again."
        )

    logger.error("Unhandled stream error: %s", exc.__class__.__name__)
    return "Something went wrong. Please try again."


class CompletionStreamReader:
    """Single-use reader over one streamed completion.

    Iterating yields visible-text frames as fragments arrive, then (at end of
    stream) an optional ``cleanup_markers`` frame, the finalizer's completion
    frame and exactly one ``done`` frame. Source failures and idle stalls
    become an ``error`` frame followed by ``done``. The source is closed on
    every exit path, including when the consumer stops iterating early.

    A ``None`` fragment from the source ends the stream like exhaustion.
    """

    def __init__(
        self,
        source: AsyncIterable[str | None],
        *,
        chunk_frame: type[TextFrame],
        name: str,
        markers: Sequence[MarkerSpec] = (),
        finalizer: Finalizer | None = None,
        idle_timeout: float = DEFAULT_IDLE_TIMEOUT_SECONDS,
    ):
        if idle_timeout <= 0:
            raise ValueError("idle_timeout must be positive")
        self._source = source
        self._chunk_frame = chunk_frame
        self._name = name
        self._suppressor = MarkerSuppressor(markers) if markers else None
        self._finalizer = finalizer
        self._idle_timeout = idle_timeout
        self._parts: list[str] = []
        self._started = False

    @property
    def transcript(self) -> str:
        """Everything received so far, markers included."""
        return "".join(self._parts)

    def __aiter__(self) -> AsyncIterator[SseFrame]:
        if self._started:
            raise RuntimeError("CompletionStreamReader can only be iterated once")
        self._started = True
        return self._frames()

    async def _next_fragment(self, iterator: AsyncIterator[str | None]) -> str | None:
        try:
            return await asyncio.wait_for(anext(iterator), timeout=self._idle_timeout)
        except StopAsyncIteration:
            return None
        except TimeoutError:
            raise StreamTimeoutError(
                f"No fragment received within {self._idle_timeout:g} seconds"
            ) from None

    def _visible(self, text: str) -> str:
        if self._suppressor is None:
            return text
        return self._suppressor.feed(text)

    def _finalize(self, transcript: str) -> SseFrame | None:
        if self._finalizer is None:
            return None
        try:
            return self._finalizer(transcript)
        except MarkerExtractionError as e:
            logger.warning(
                "No structured result recovered from %s stream: %s (%s)",
                self._name,
                e.message,
                e.error_code,
            )
            return None

    async def _close_source(self, iterator: AsyncIterator[str | None]) -> None:
        aclose = getattr(iterator, "aclose", None)
        if aclose is None:
            return
        try:
            await aclose()
        except Exception as e:
            logger.warning("Failed to close %s completion source: %s", self._name, e)

    async def _frames(self) -> AsyncIterator[SseFrame]:
        iterator = aiter(self._source)
        outcome = "cancelled"
        with _tracer.start_as_current_span(f"stream.{self._name}") as span:
            try:
                while (fragment := await self._next_fragment(iterator)) is not None:
                    self._parts.append(fragment)
                    visible = self._visible(fragment)
                    if visible:
                        yield self._chunk_frame(content=visible)

                if self._suppressor is not None:
                    tail = self._suppressor.flush()
                    if tail:
                        yield self._chunk_frame(content=tail)
                    if self._suppressor.markers_seen:
                        yield CleanupMarkersFrame(
                            markers=self._suppressor.markers_seen
                        )

                completion = self._finalize(self.transcript)
                outcome = "completed" if completion is not None else "no_result"
                if completion is not None:
                    yield completion
            except StreamTimeoutError as e:
                outcome = "timeout"
                logger.warning("%s stream timed out: %s", self._name, e.message)
                yield ErrorFrame(message=user_friendly_error_message(e))
            except Exception as e:
                outcome = "error"
                logger.exception("%s stream failed", self._name)
                yield ErrorFrame(message=user_friendly_error_message(e))
            finally:
                await self._close_source(iterator)
                span.set_attribute("stream.name", self._name)
                span.set_attribute("stream.fragment_count", len(self._parts))
                span.set_attribute("stream.transcript_chars", len(self.transcript))
                span.set_attribute("stream.outcome", outcome)
            yield DoneFrame()
