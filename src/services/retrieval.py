"""Writing-guideline retrieval from the Vectorize pipeline retrieval endpoint."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal

import httpx

from core.config import Settings, get_settings
from schemas.analysis import NO_DOCUMENTS_FOUND


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetrievedDocument:
    text: str
    source: str | None = None
    source_display_name: str | None = None
    relevancy: float | None = None


@dataclass(frozen=True)
class RetrievalOutcome:
    status: Literal["ok", "unconfigured", "error"]
    documents: list[RetrievedDocument]
    message: str | None = None


def build_enhanced_query(
    query: str,
    text_type: str | None = None,
    *,
    tone: str | None = None,
    purpose: str | None = None,
    audience: str | None = None,
) -> str:
    """Prefix the query with the text type and append known context."""
    enhanced = f"{text_type} rewriting instructions: {query}" if text_type else query
    context_parts = [
        f"{label}: {value}"
        for label, value in (
            ("tone", tone),
            ("purpose", purpose),
            ("audience", audience),
        )
        if value
    ]
    if context_parts:
        enhanced += f" ({', '.join(context_parts)})"
    return enhanced


def format_documents(documents: list[RetrievedDocument]) -> str:
    """Render documents as numbered context blocks for the model."""
    blocks = []
    for i, doc in enumerate(documents, start=1):
        label = doc.source_display_name or doc.source or "unknown source"
        blocks.append(f"Document {i} ({label}):\n{doc.text.strip()}")
    return "\n\n".join(blocks)


def _parse_documents(payload: dict[str, Any], limit: int) -> list[RetrievedDocument]:
    documents: list[RetrievedDocument] = []
    for item in (payload.get("documents") or [])[:limit]:
        text = item.get("text")
        if not text or not str(text).strip():
            continue
        relevancy = item.get("relevancy")
        documents.append(
            RetrievedDocument(
                text=str(text),
                source=item.get("source"),
                source_display_name=item.get("source_display_name"),
                relevancy=float(relevancy) if relevancy is not None else None,
            )
        )
    return documents


class RetrievalService:
    """Client for the external vector-search service.

    Pass ``client`` to reuse a pooled ``httpx.AsyncClient`` (tests inject one
    backed by ``httpx.MockTransport``); otherwise a client is opened per call.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ):
        self._settings = settings or get_settings()
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(
            self._settings.VECTORIZE_RETRIEVAL_URL
            and self._settings.VECTORIZE_ACCESS_TOKEN
        )

    async def _post(self, client: httpx.AsyncClient, query: str) -> dict[str, Any]:
        response = await client.post(
            self._settings.VECTORIZE_RETRIEVAL_URL or "",
            json={
                "question": query,
                "numResults": self._settings.RETRIEVAL_NUM_RESULTS,
            },
            headers={
                "Accept": "application/json",
                "Authorization": self._settings.VECTORIZE_ACCESS_TOKEN or "",
            },
        )
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError("retrieval response is not a JSON object")
        return payload

    async def retrieve_documents(self, query: str) -> RetrievalOutcome:
        if not self.configured:
            return RetrievalOutcome(
                status="unconfigured",
                documents=[],
                message="Vectorize retrieval endpoint is not configured.",
            )

        try:
            if self._client is not None:
                payload = await self._post(self._client, query)
            else:
                async with httpx.AsyncClient(
                    timeout=self._settings.RETRIEVAL_TIMEOUT_SECONDS
                ) as client:
                    payload = await self._post(client, query)
            documents = _parse_documents(payload, self._settings.RETRIEVAL_NUM_RESULTS)
            return RetrievalOutcome(status="ok", documents=documents)
        except httpx.HTTPError as exc:
            logger.warning(
                "Retrieval request failed: %s - %s", type(exc).__name__, str(exc)
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.warning(
                "Retrieval response parse failed: %s - %s", type(exc).__name__, str(exc)
            )

        return RetrievalOutcome(
            status="error",
            documents=[],
            message="Unable to retrieve relevant documents at this time.",
        )

    async def search_documents(
        self,
        query: str,
        text_type: str | None = None,
        *,
        tone: str | None = None,
        purpose: str | None = None,
        audience: str | None = None,
    ) -> str:
        """Search for rewriting guidelines and return them as one string.

        Never raises for upstream problems; returns ``NO_DOCUMENTS_FOUND``
        when the service is unconfigured, failing, or has no matches.
        """
        enhanced = build_enhanced_query(
            query, text_type, tone=tone, purpose=purpose, audience=audience
        )
        outcome = await self.retrieve_documents(enhanced)
        if outcome.status != "ok":
            logger.info(
                "Retrieval unavailable (%s): %s", outcome.status, outcome.message
            )
        return format_documents(outcome.documents) or NO_DOCUMENTS_FOUND
