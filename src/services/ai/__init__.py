"""Init file for AI services."""

from .agent_stream import stream_agent_text
from .agents import (
    get_analysis_agent,
    get_change_analysis_agent,
    get_rewrite_agent,
)
from .deps import AnalysisAgentDeps, ChangeAgentDeps, RewriteAgentDeps


__all__ = [
    "AnalysisAgentDeps",
    "ChangeAgentDeps",
    "RewriteAgentDeps",
    "get_analysis_agent",
    "get_change_analysis_agent",
    "get_rewrite_agent",
    "stream_agent_text",
]
