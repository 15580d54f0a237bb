"""Centralized model factory for the analysis, rewrite and change agents.

Usage:
    from services.ai.model_factory import get_chat_model

    model = get_chat_model()  # pydantic-ai Model for LLM_PROVIDER
"""

from __future__ import annotations

import logging
from typing import Any

from httpx import AsyncClient, HTTPStatusError
from pydantic_ai.models import Model
from pydantic_ai.models.google import GoogleModel
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.google import GoogleProvider
from pydantic_ai.providers.openai import OpenAIProvider
from pydantic_ai.retries import AsyncTenacityTransport, RetryConfig, wait_retry_after
from tenacity import retry_if_exception_type, stop_after_attempt, wait_exponential

from core.config import get_settings


logger = logging.getLogger(__name__)

# OpenAI reasoning models that support the reasoning_effort parameter
REASONING_MODELS = {
    "gpt-5",
    "gpt-5-mini",
    "gpt-5-nano",
    "o1",
    "o3",
    "o3-mini",
    "o4-mini",
}

RETRYABLE_STATUS_CODES = (429, 502, 503, 504)


def create_resilient_http_client() -> AsyncClient:
    """Create an HTTP client with exponential backoff for transient provider errors.

    Retries overload (503), rate limits (429) and gateway errors, honouring
    Retry-After when the provider sends one.
    """

    def should_retry_status(response: Any) -> None:
        if response.status_code in RETRYABLE_STATUS_CODES:
            response.raise_for_status()

    transport = AsyncTenacityTransport(
        config=RetryConfig(
            retry=retry_if_exception_type(HTTPStatusError),
            wait=wait_retry_after(
                fallback_strategy=wait_exponential(multiplier=2, min=1, max=30),
                max_wait=60,
            ),
            stop=stop_after_attempt(5),
            reraise=True,
        ),
        validate_response=should_retry_status,
    )
    return AsyncClient(transport=transport, timeout=120)


def _normalize_azure_endpoint(endpoint: str) -> str:
    """Strip trailing slashes; Azure returns 404 for ``//openai/...`` paths."""
    return endpoint.rstrip("/")


def _openai_chat_model(model_name: str, provider: OpenAIProvider) -> Model:
    if model_name in REASONING_MODELS:
        logger.info("Applying low reasoning effort for reasoning model: %s", model_name)
        return OpenAIChatModel(
            model_name,
            provider=provider,
            settings={"openai_reasoning_effort": "low"},
        )
    return OpenAIChatModel(model_name, provider=provider)


def _create_openai_model(model_name: str, http_client: AsyncClient | None) -> Model:
    settings = get_settings()
    if not settings.OPENAI_API_KEY:
        raise ValueError("LLM_PROVIDER=openai requires OPENAI_API_KEY")
    provider = OpenAIProvider(api_key=settings.OPENAI_API_KEY, http_client=http_client)
    return _openai_chat_model(model_name, provider)


def _create_azure_model(model_name: str, http_client: AsyncClient | None) -> Model:
    settings = get_settings()
    if (
        not settings.AZURE_OPENAI_ENDPOINT
        or not settings.AZURE_OPENAI_API_KEY
        or not settings.AZURE_OPENAI_API_VERSION
    ):
        raise ValueError(
            "LLM_PROVIDER=azure_openai requires AZURE_OPENAI_ENDPOINT, "
            "AZURE_OPENAI_API_KEY and AZURE_OPENAI_API_VERSION"
        )

    from openai import AsyncAzureOpenAI

    azure_client = AsyncAzureOpenAI(
        azure_endpoint=_normalize_azure_endpoint(settings.AZURE_OPENAI_ENDPOINT),
        api_key=settings.AZURE_OPENAI_API_KEY,
        api_version=settings.AZURE_OPENAI_API_VERSION,
        http_client=http_client,
    )
    return _openai_chat_model(model_name, OpenAIProvider(openai_client=azure_client))


def _create_gemini_model(model_name: str, http_client: AsyncClient | None) -> Model:
    settings = get_settings()
    if not settings.GEMINI_API_KEY:
        raise ValueError("LLM_PROVIDER=gemini requires GEMINI_API_KEY")
    provider = GoogleProvider(api_key=settings.GEMINI_API_KEY, http_client=http_client)
    return GoogleModel(model_name, provider=provider)


def get_chat_model(http_client: AsyncClient | None = None) -> Model:
    """Get the completion model for the configured provider.

    Args:
        http_client: Optional HTTP client, normally from
            create_resilient_http_client().

    Raises:
        ValueError: the selected provider is missing credentials.
    """
    settings = get_settings()
    provider = settings.LLM_PROVIDER
    logger.info("Using %s chat model: %s", provider, settings.CHAT_MODEL)

    if provider == "azure_openai":
        return _create_azure_model(settings.CHAT_MODEL, http_client)
    if provider == "gemini":
        return _create_gemini_model(settings.CHAT_MODEL, http_client)
    return _create_openai_model(settings.CHAT_MODEL, http_client)
