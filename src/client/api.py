"""HTTP client for the Rewrite Assistant streaming API."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from schemas.analysis import (
    ChangeAnalysisRequest,
    ConversationMessage,
    RewriteRequest,
)
from schemas.streaming import StreamFrame

from .sse import aiter_frames


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = httpx.Timeout(10.0, read=120.0)


class ApiError(Exception):
    """Non-2xx response from the API, carrying the envelope's ``error`` text."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


class RewriterApiClient:
    """Thin async client; each ``stream_*`` call is one single-use frame stream.

    Pass ``client`` to share a connection pool or to target an ASGI app in
    tests (``httpx.AsyncClient(transport=httpx.ASGITransport(app=app))``).
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        *,
        client: httpx.AsyncClient | None = None,
    ):
        self._client = client or httpx.AsyncClient(
            base_url=base_url, timeout=DEFAULT_TIMEOUT
        )
        self._owns_client = client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> RewriterApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _stream(
        self, path: str, body: dict[str, Any]
    ) -> AsyncIterator[StreamFrame]:
        async with self._client.stream("POST", path, json=body) as response:
            if response.status_code >= 400:
                await response.aread()
                raise ApiError(response.status_code, _error_message(response))
            async for frame in aiter_frames(response.aiter_lines()):
                yield frame

    def stream_analysis(
        self, messages: list[ConversationMessage]
    ) -> AsyncIterator[StreamFrame]:
        body = {"messages": [m.to_wire() for m in messages]}
        return self._stream("/api/analysis", body)

    def stream_rewrite(self, request: RewriteRequest) -> AsyncIterator[StreamFrame]:
        return self._stream("/api/rewrite", request.to_wire())

    def stream_change_analysis(
        self, request: ChangeAnalysisRequest
    ) -> AsyncIterator[StreamFrame]:
        return self._stream("/api/analyze-changes", request.to_wire())


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.reason_phrase or "Request failed"
    if isinstance(payload, dict) and isinstance(payload.get("error"), str):
        return payload["error"]
    return response.reason_phrase or "Request failed"
