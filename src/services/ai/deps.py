"""Agent dependencies - shared types for agents and tools."""

from __future__ import annotations

from dataclasses import dataclass, field

from schemas.analysis import ChangeAnalysisContext, RewriteContext
from services.retrieval import RetrievalService


@dataclass
class AnalysisAgentDeps:
    """Dependencies injected into the analysis agent context.

    ``retrieved_instructions`` collects the guidance returned by every
    search_documents call of one run; it travels on the tool channel and is
    never echoed through the visible transcript.
    """

    retrieval: RetrievalService
    retrieved_instructions: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RewriteAgentDeps:
    context: RewriteContext


@dataclass(frozen=True)
class ChangeAgentDeps:
    context: ChangeAnalysisContext | None = None
