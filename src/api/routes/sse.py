"""Shared helpers for text/event-stream responses."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, AsyncIterable

from fastapi.responses import StreamingResponse

from schemas.streaming import DoneFrame, ErrorFrame, SseFrame, SseFrameTooLargeError


logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    # Disable proxy buffering so fragments reach the browser immediately
    "X-Accel-Buffering": "no",
}

OVERSIZED_FRAME_MESSAGE = (
    "The result was too large to send. Please try a shorter text."
)


async def _encode(frames: AsyncIterable[SseFrame]) -> AsyncGenerator[str, None]:
    iterator = aiter(frames)
    try:
        async for frame in iterator:
            try:
                data = frame.to_sse()
            except SseFrameTooLargeError as e:
                # Headers are already sent; end the stream the normal way
                logger.warning(
                    "Dropped oversized %s (%d bytes)", type(frame).__name__, e.size
                )
                yield ErrorFrame(message=OVERSIZED_FRAME_MESSAGE).to_sse()
                yield DoneFrame().to_sse()
                return
            yield data
    finally:
        # Client disconnects close this generator; release the upstream too
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            await aclose()


def sse_response(frames: AsyncIterable[SseFrame]) -> StreamingResponse:
    return StreamingResponse(
        _encode(frames), media_type="text/event-stream", headers=SSE_HEADERS
    )
