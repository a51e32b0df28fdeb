"""Build LLM clients from settings."""
from __future__ import annotations

import structlog

from ..config import Settings
from .anthropic_client import AnthropicClient
from .base import LLMClient
from .openai_client import OpenAIClient

logger = structlog.get_logger(__name__)


def create_llm_client(settings: Settings, model: str) -> LLMClient:
    """Create a client for *model* on the configured provider.

    Credentials and endpoints come only from *settings*.
    """
    if settings.llm_provider == "anthropic":
        logger.info("llm_init", provider="anthropic", model=model)
        return AnthropicClient(
            api_key=settings.anthropic_api_key.get_secret_value(),
            model=model,
            timeout=settings.llm_timeout,
            base_url=settings.anthropic_base_url or None,
        )

    logger.info(
        "llm_init",
        provider="azure_openai" if settings.azure_openai_endpoint else "openai",
        model=model,
    )
    return OpenAIClient(
        api_key=settings.openai_api_key.get_secret_value(),
        model=model,
        azure_endpoint=settings.azure_openai_endpoint,
        base_url=settings.openai_base_url,
        timeout=settings.llm_timeout,
    )
