"""Decode ``data:`` lines of a streaming response into typed frames."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, AsyncIterator, Iterable, Iterator

from pydantic import ValidationError

from schemas.streaming import (
    DONE_SENTINEL,
    DoneFrame,
    StreamFrame,
    stream_frame_adapter,
)


logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"


def decode_line(line: str) -> StreamFrame | None:
    """Decode one SSE line; returns None for blank, comment or malformed lines."""
    line = line.strip()
    if not line.startswith(DATA_PREFIX):
        return None
    data = line[len(DATA_PREFIX) :].strip()
    if data == DONE_SENTINEL:
        return DoneFrame()
    try:
        return stream_frame_adapter.validate_json(data)
    except ValidationError as e:
        logger.warning("Skipping malformed stream frame (%d errors)", e.error_count())
        return None


def iter_frames(lines: Iterable[str]) -> Iterator[StreamFrame]:
    """Yield frames up to and including ``done``."""
    for line in lines:
        frame = decode_line(line)
        if frame is None:
            continue
        yield frame
        if isinstance(frame, DoneFrame):
            return


async def aiter_frames(lines: AsyncIterable[str]) -> AsyncIterator[StreamFrame]:
    """Async variant of iter_frames for ``httpx.Response.aiter_lines()``."""
    async for line in lines:
        frame = decode_line(line)
        if frame is None:
            continue
        yield frame
        if isinstance(frame, DoneFrame):
            return
