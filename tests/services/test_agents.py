"""Tests for agent prompts, instructions and the search_documents tool."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic_ai import models
from pydantic_ai.messages import ModelMessage, ModelRequest, ModelResponse, TextPart
from pydantic_ai.models.function import AgentInfo, FunctionModel

from schemas.analysis import (
    NO_DOCUMENTS_FOUND,
    ChangeAnalysisContext,
    ChangeAnalysisRequest,
    RewriteContext,
    RewriteRequest,
)
from services.ai import agents
from services.ai.deps import AnalysisAgentDeps, ChangeAgentDeps, RewriteAgentDeps
from services.ai.tools import tool_search_documents
from services.streaming.protocol import ANALYSIS_DATA_END, ANALYSIS_DATA_START


# Block any real model requests in tests
models.ALLOW_MODEL_REQUESTS = False


def _rewrite_request(**context: str | None) -> RewriteRequest:
    return RewriteRequest(
        analysis_id="a-1",
        original_text="hi team, i has news",
        instructions="Be brief.",
        context=RewriteContext(text_type="email", **context),
    )


class TestPromptBuilders:
    def test_analysis_system_prompt_describes_data_block(self) -> None:
        assert ANALYSIS_DATA_START in agents.ANALYSIS_SYSTEM_PROMPT
        assert ANALYSIS_DATA_END in agents.ANALYSIS_SYSTEM_PROMPT
        assert "search_documents" in agents.ANALYSIS_SYSTEM_PROMPT

    def test_analysis_prompt_embeds_text(self) -> None:
        prompt = agents.build_analysis_prompt("Dear Sir")
        assert prompt.endswith("\n\nDear Sir")

    def test_rewrite_prompt_fills_missing_context(self) -> None:
        prompt = agents.build_rewrite_prompt(_rewrite_request(tone="formal"))

        assert '**ORIGINAL TEXT:**\n"hi team, i has news"' in prompt
        assert "**WRITING INSTRUCTIONS:**\nBe brief." in prompt
        assert "- Text Type: email" in prompt
        assert "- Tone: formal" in prompt
        assert "- Purpose: Not specified" in prompt

    def test_change_prompt_without_context(self) -> None:
        prompt = agents.build_change_analysis_prompt(
            ChangeAnalysisRequest(original_text="a", rewritten_text="b")
        )

        assert '**REWRITTEN TEXT:**\n"b"' in prompt
        assert "- Text Type: Not specified" in prompt


def _capturing_model(captured: list[list[ModelMessage]]) -> FunctionModel:
    def respond(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        captured.append(messages)
        return ModelResponse(parts=[TextPart("ok")])

    return FunctionModel(respond)


class TestAgentInstructions:
    @pytest.fixture(autouse=True)
    def _fresh_agents(self):
        agents.get_rewrite_agent.cache_clear()
        agents.get_change_analysis_agent.cache_clear()
        yield
        agents.get_rewrite_agent.cache_clear()
        agents.get_change_analysis_agent.cache_clear()

    @pytest.mark.asyncio
    async def test_rewrite_agent_adds_request_context(self, monkeypatch) -> None:
        captured: list[list[ModelMessage]] = []
        monkeypatch.setattr(agents, "_create_model", lambda: _capturing_model(captured))

        agent = agents.get_rewrite_agent()
        context = RewriteContext(text_type="email", tone="friendly")
        await agent.run("Rewrite this", deps=RewriteAgentDeps(context=context))

        request = captured[0][0]
        assert isinstance(request, ModelRequest)
        assert request.instructions is not None
        assert request.instructions.startswith("You are an expert text rewriting")
        assert "Text type: email, tone: friendly" in request.instructions
        assert "purpose: not specified" in request.instructions

    @pytest.mark.asyncio
    async def test_change_agent_defaults_context(self, monkeypatch) -> None:
        captured: list[list[ModelMessage]] = []
        monkeypatch.setattr(agents, "_create_model", lambda: _capturing_model(captured))

        agent = agents.get_change_analysis_agent()
        await agent.run("Compare", deps=ChangeAgentDeps())
        await agent.run(
            "Compare",
            deps=ChangeAgentDeps(
                context=ChangeAnalysisContext(text_type="email", audience="clients")
            ),
        )

        first = captured[0][0]
        second = captured[1][0]
        assert isinstance(first, ModelRequest)
        assert isinstance(second, ModelRequest)
        assert "general text for general audience" in (first.instructions or "")
        assert "email for clients" in (second.instructions or "")

    def test_agents_are_cached(self, monkeypatch) -> None:
        monkeypatch.setattr(agents, "_create_model", lambda: _capturing_model([]))

        assert agents.get_rewrite_agent() is agents.get_rewrite_agent()


class TestSearchDocumentsTool:
    @pytest.mark.asyncio
    async def test_collects_found_documents_on_deps(self) -> None:
        retrieval = MagicMock()
        retrieval.search_documents = AsyncMock(
            return_value="Document 1 (Email guide):\nBe brief."
        )
        ctx = MagicMock()
        ctx.deps = AnalysisAgentDeps(retrieval=retrieval)

        reply = await tool_search_documents(ctx, "greetings", "email", tone="formal")

        retrieval.search_documents.assert_awaited_once_with(
            "greetings", "email", tone="formal", purpose=None, audience=None
        )
        assert ctx.deps.retrieved_instructions == [
            "Document 1 (Email guide):\nBe brief."
        ]
        assert reply == (
            'Search completed for query: "greetings" (Text type: email).\n\n'
            "Retrieved instructions: Document 1 (Email guide):\nBe brief."
        )

    @pytest.mark.asyncio
    async def test_no_documents_are_not_collected(self) -> None:
        retrieval = MagicMock()
        retrieval.search_documents = AsyncMock(return_value=NO_DOCUMENTS_FOUND)
        ctx = MagicMock()
        ctx.deps = AnalysisAgentDeps(retrieval=retrieval)

        reply = await tool_search_documents(ctx, "greetings")

        assert ctx.deps.retrieved_instructions == []
        assert reply.endswith(f"Retrieved instructions: {NO_DOCUMENTS_FOUND}")
