"""Adapt a pydantic-ai agent run into a stream of text fragments."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any, TypeVar

from pydantic_ai import Agent
from pydantic_ai.messages import PartDeltaEvent, PartStartEvent, TextPart, TextPartDelta


DepsT = TypeVar("DepsT")


async def stream_agent_text(
    agent: Agent[DepsT, Any], prompt: str, *, deps: DepsT
) -> AsyncIterator[str]:
    """Yield the model's text output as it arrives.

    Tool calls and tool results are not part of the text stream; tools report
    back through ``deps``.
    """
    events = agent.run_stream_events(prompt, deps=deps)
    try:
        async for event in events:
            if isinstance(event, PartStartEvent) and isinstance(event.part, TextPart):
                if event.part.content:
                    yield event.part.content
            elif isinstance(event, PartDeltaEvent) and isinstance(
                event.delta, TextPartDelta
            ):
                if event.delta.content_delta:
                    yield event.delta.content_delta
    finally:
        aclose = getattr(events, "aclose", None)
        if aclose is not None:
            await aclose()
