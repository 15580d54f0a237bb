"""Tools available to the analysis agent."""

from __future__ import annotations

import logging

from pydantic_ai import RunContext

from schemas.analysis import NO_DOCUMENTS_FOUND
from services.ai.deps import AnalysisAgentDeps


logger = logging.getLogger(__name__)


async def tool_search_documents(
    ctx: RunContext[AnalysisAgentDeps],
    query: str,
    text_type: str | None = None,
    tone: str | None = None,
    purpose: str | None = None,
    audience: str | None = None,
) -> str:
    """Search proprietary writing guides for rewriting instructions.

    Args:
        query: The main search query describing the guidance needed.
        text_type: The kind of text, e.g. 'LinkedIn post', 'email', 'blog post'.
        tone: The desired tone, e.g. 'professional', 'casual', 'friendly'.
        purpose: The purpose of the text, e.g. 'networking', 'sales'.
        audience: The target audience, e.g. 'customers', 'colleagues'.
    """
    documents = await ctx.deps.retrieval.search_documents(
        query, text_type, tone=tone, purpose=purpose, audience=audience
    )
    if documents != NO_DOCUMENTS_FOUND:
        ctx.deps.retrieved_instructions.append(documents)
    logger.info(
        "search_documents completed (text_type=%s, found=%s)",
        text_type or "unspecified",
        documents != NO_DOCUMENTS_FOUND,
    )

    described = f" (Text type: {text_type})" if text_type else ""
    return (
        f'Search completed for query: "{query}"{described}.\n\n'
        f"Retrieved instructions: {documents}"
    )
