"""Analysis, rewrite and change-analysis agents plus their prompt builders."""

from __future__ import annotations

import logging
from functools import lru_cache

from pydantic_ai import Agent, RunContext
from pydantic_ai.models import Model

from schemas.analysis import (
    ChangeAnalysisRequest,
    RewriteRequest,
)
from services.ai.deps import AnalysisAgentDeps, ChangeAgentDeps, RewriteAgentDeps
from services.ai.model_factory import create_resilient_http_client, get_chat_model
from services.ai.tools import tool_search_documents
from services.streaming.protocol import ANALYSIS_DATA_END, ANALYSIS_DATA_START


logger = logging.getLogger(__name__)

# pydantic-ai tool-call retries (argument validation / ModelRetry)
_TOOL_CALL_RETRIES = 2

_NOT_SPECIFIED = "Not specified"


# ============================================================================
# ANALYSIS
# ============================================================================

ANALYSIS_DATA_EXAMPLE = (
    '{"textType": "email", "tone": "professional", "purpose": "networking", '
    '"audience": "colleagues", "instructions": "Summary of the retrieved '
    'guidelines that apply to this text", "recommendations": ["Shorten the '
    'opening", "End with a clear call to action"]}'
)

ANALYSIS_SYSTEM_PROMPT = f"""You are a text analysis specialist. Your job is simple:

1. **ANALYZE** the user's text to identify:
   - Text type (email, LinkedIn post, blog post, etc.)
   - Current tone and style
   - Purpose and target audience

2. **SEARCH** for relevant writing guidelines using the search_documents tool.

3. **COMPLETE** your analysis: tell the user what you found in two or three
   friendly sentences, then end your reply with the analysis data block,
   exactly in this form:

{ANALYSIS_DATA_START}
{ANALYSIS_DATA_EXAMPLE}
{ANALYSIS_DATA_END}

Rules for the data block:
- It must be valid JSON with the keys textType, tone, purpose, audience,
  instructions and recommendations.
- Use null for tone, purpose or audience when they cannot be determined.
- "instructions" summarizes the retrieved guidelines to apply when rewriting.
- Never mention the data block or its markers in your prose.
- Write nothing after {ANALYSIS_DATA_END}.

Be helpful and concise in your analysis."""


def build_analysis_prompt(text: str) -> str:
    return f"Please analyze the following text:\n\n{text}"


# ============================================================================
# REWRITE
# ============================================================================

REWRITE_SYSTEM_PROMPT = """You are an expert text rewriting specialist focused on \
helping ESL (English as Second Language) speakers improve their writing.

**YOUR ROLE:**
You receive analyzed text along with specific rewriting instructions and context. \
Your job is to rewrite the text following those instructions while making it more \
effective and natural.

**REWRITING GUIDELINES:**

1. **Follow the Instructions**: Apply the specific guidelines found in the retrieved \
documents
2. **Improve Clarity**: Make the text clearer and more natural for native English \
speakers
3. **Maintain Voice**: Keep the author's intended meaning and personal voice
4. **ESL-Friendly**: Focus on common ESL improvement areas:
   - Grammar and sentence structure
   - Word choice and vocabulary
   - Flow and coherence
   - Cultural appropriateness
   - Professional tone when needed

**OUTPUT FORMAT:**
Provide your response in this exact structure:

**REWRITTEN TEXT:**
[The improved version here]

**EXPLANATION:**
[Brief explanation of the key changes you made and why they improve the text]

**KEY IMPROVEMENTS:**
- [Specific improvement 1]
- [Specific improvement 2]
- [etc.]

Be encouraging and constructive in your explanations, helping the user understand \
why the changes make the text better."""


def build_rewrite_prompt(request: RewriteRequest) -> str:
    context = request.context
    return (
        "Please rewrite the following text using these guidelines:\n\n"
        f'**ORIGINAL TEXT:**\n"{request.original_text}"\n\n'
        f"**WRITING INSTRUCTIONS:**\n{request.instructions}\n\n"
        "**CONTEXT:**\n"
        f"- Text Type: {context.text_type}\n"
        f"- Tone: {context.tone or _NOT_SPECIFIED}\n"
        f"- Purpose: {context.purpose or _NOT_SPECIFIED}\n"
        f"- Target Audience: {context.audience or _NOT_SPECIFIED}\n\n"
        "Please apply the writing instructions to improve this text while keeping "
        "it natural and appropriate for the context."
    )


# ============================================================================
# CHANGE ANALYSIS
# ============================================================================

CHANGE_ANALYSIS_SYSTEM_PROMPT = """You are an expert writing analyst that compares \
original and rewritten texts to identify and explain changes.

**YOUR TASK:**
Compare the original text with the rewritten version and identify all meaningful \
changes. For each change, explain why it improves the text.

**ANALYSIS CATEGORIES:**
- **grammar**: Grammar fixes, punctuation, verb tenses
- **tone**: Professional vs casual, formality adjustments
- **structure**: Sentence reorganization, flow improvements
- **clarity**: Making ideas clearer and easier to understand
- **conciseness**: Removing redundancy, making text more concise
- **impact**: More engaging, persuasive, or compelling language

**OUTPUT FORMAT:**
Provide your analysis in this exact JSON structure:

{
  "changes": [
    {
      "type": "grammar|tone|structure|clarity|conciseness|impact",
      "originalPhrase": "exact phrase from original",
      "rewrittenPhrase": "exact phrase from rewritten",
      "explanation": "clear explanation of why this change improves the text",
      "importance": "high|medium|low"
    }
  ],
  "summary": "Brief summary of overall improvements made",
  "overallImprovements": [
    "Key improvement 1",
    "Key improvement 2",
    "Key improvement 3"
  ]
}

**GUIDELINES:**
- Focus on meaningful changes, not minor word variations
- Explain the writing principle behind each change
- Be specific about how each change improves the text
- Prioritize changes by importance (high/medium/low)"""


def build_change_analysis_prompt(request: ChangeAnalysisRequest) -> str:
    context = request.context
    text_type = context.text_type if context else None
    tone = context.tone if context else None
    purpose = context.purpose if context else None
    audience = context.audience if context else None
    return (
        "Please analyze the changes between these two texts:\n\n"
        f'**ORIGINAL TEXT:**\n"{request.original_text}"\n\n'
        f'**REWRITTEN TEXT:**\n"{request.rewritten_text}"\n\n'
        "**CONTEXT:**\n"
        f"- Text Type: {text_type or _NOT_SPECIFIED}\n"
        f"- Intended Tone: {tone or _NOT_SPECIFIED}\n"
        f"- Purpose: {purpose or _NOT_SPECIFIED}\n"
        f"- Target Audience: {audience or _NOT_SPECIFIED}\n\n"
        "Provide a detailed analysis of all meaningful changes and explain how each "
        "improvement enhances the text quality."
    )


# ============================================================================
# AGENT CONSTRUCTION
# ============================================================================


def _create_model() -> Model:
    """Create the configured model behind a retrying HTTP client."""
    return get_chat_model(http_client=create_resilient_http_client())


@lru_cache
def get_analysis_agent() -> Agent[AnalysisAgentDeps, str]:
    """Create and cache the text analysis agent.

    The agent streams prose for the user and finishes with the analysis data
    block; search_documents results are collected on the deps object.
    """
    agent: Agent[AnalysisAgentDeps, str] = Agent(
        _create_model(),
        instructions=ANALYSIS_SYSTEM_PROMPT,
        deps_type=AnalysisAgentDeps,
        output_type=str,
        name="Text Analysis Agent",
    )
    agent.tool(name="search_documents", retries=_TOOL_CALL_RETRIES)(
        tool_search_documents
    )
    return agent


@lru_cache
def get_rewrite_agent() -> Agent[RewriteAgentDeps, str]:
    """Create and cache the rewriting agent (no tools)."""
    agent: Agent[RewriteAgentDeps, str] = Agent(
        _create_model(),
        instructions=REWRITE_SYSTEM_PROMPT,
        deps_type=RewriteAgentDeps,
        output_type=str,
        name="Text Rewriting Specialist",
    )

    # Agent uses `instructions=...`, so per-request context goes through
    # @agent.instructions rather than @agent.system_prompt.
    @agent.instructions
    def add_rewrite_context(ctx: RunContext[RewriteAgentDeps]) -> str:
        context = ctx.deps.context
        return (
            "\n\nCONTEXT FOR THIS TEXT:\n"
            f"Text type: {context.text_type}, "
            f"tone: {context.tone or 'not specified'}, "
            f"purpose: {context.purpose or 'not specified'}, "
            f"audience: {context.audience or 'not specified'}."
        )

    return agent


@lru_cache
def get_change_analysis_agent() -> Agent[ChangeAgentDeps, str]:
    """Create and cache the change-analysis agent."""
    agent: Agent[ChangeAgentDeps, str] = Agent(
        _create_model(),
        instructions=CHANGE_ANALYSIS_SYSTEM_PROMPT,
        deps_type=ChangeAgentDeps,
        output_type=str,
        name="Text Change Analyzer",
    )

    @agent.instructions
    def add_change_context(ctx: RunContext[ChangeAgentDeps]) -> str:
        context = ctx.deps.context
        text_type = context.text_type if context else None
        audience = context.audience if context else None
        return (
            f"\n\nConsider the context: {text_type or 'general text'} "
            f"for {audience or 'general audience'}."
        )

    return agent
