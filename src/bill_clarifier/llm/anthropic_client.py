"""Anthropic Claude LLM client."""
from __future__ import annotations

import time

import anthropic
import structlog

from ..errors import LLMTransportError
from .base import ChatMessage, LLMClient, LLMResponse

logger = structlog.get_logger(__name__)

# Exceptions surfaced as transport failures
TRANSPORT_EXCEPTIONS = (
    anthropic.APIConnectionError,
    anthropic.APITimeoutError,
    anthropic.APIStatusError,
)

JSON_SUFFIX = "Respond with valid JSON only."


class AnthropicClient(LLMClient):
    """LLM client for Claude models.

    When ``base_url`` is provided, the client connects to an
    Anthropic-compatible Messages endpoint (e.g. a serverless deployment)
    instead of the Anthropic API directly.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-5-20250929",
        timeout: int = 120,
        base_url: str | None = None,
    ):
        self._model = model
        self._timeout = timeout

        if base_url:
            self._client = anthropic.AsyncAnthropic(
                api_key=api_key,
                base_url=base_url.rstrip("/"),
                timeout=float(timeout),
                max_retries=0,
            )
            self._provider = "anthropic_compatible"
        else:
            self._client = anthropic.AsyncAnthropic(
                api_key=api_key,
                timeout=float(timeout),
                max_retries=0,
            )
            self._provider = "anthropic"

    async def complete_text(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: float = 0.0,
        max_tokens: int = 4096,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Text-only completion using the Anthropic Messages API."""
        messages = [{"role": "user", "content": user_prompt}]

        if json_mode:
            system_prompt = _with_json_suffix(system_prompt)

        return await self._call(
            system_prompt=system_prompt,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    async def complete_vision(
        self,
        system_prompt: str,
        user_prompt: str,
        images: list[str],
        *,
        mime_type: str = "image/png",
        temperature: float = 0.0,
        max_tokens: int = 8192,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Vision completion with base64-encoded images."""
        content: list[dict] = []

        # Add image blocks first
        for base64_str in images:
            content.append({
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": mime_type,
                    "data": base64_str,
                },
            })

        content.append({"type": "text", "text": user_prompt})

        messages = [{"role": "user", "content": content}]

        if json_mode:
            system_prompt = _with_json_suffix(system_prompt)

        return await self._call(
            system_prompt=system_prompt,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    async def complete_chat(
        self,
        system_prompt: str,
        messages: list[ChatMessage],
        *,
        temperature: float = 0.7,
        max_tokens: int = 2048,
    ) -> LLMResponse:
        """Multi-turn chat completion."""
        return await self._call(
            system_prompt=system_prompt,
            messages=[{"role": m.role, "content": m.content} for m in messages],
            temperature=temperature,
            max_tokens=max_tokens,
        )

    def get_model_name(self) -> str:
        """Return the model name being used."""
        return f"{self._model} ({self._provider})"

    async def _call(
        self,
        system_prompt: str,
        messages: list[dict],
        temperature: float,
        max_tokens: int,
    ) -> LLMResponse:
        """Issue a single Messages API request."""
        start = time.monotonic()
        try:
            response = await self._client.messages.create(
                model=self._model,
                system=system_prompt,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except TRANSPORT_EXCEPTIONS as exc:
            status_code = getattr(exc, "status_code", None)
            logger.error(
                "anthropic_api_failed",
                error=str(exc),
                status_code=status_code,
                model=self._model,
                provider=self._provider,
            )
            raise LLMTransportError(
                f"{self._provider} request failed: {exc}",
                status_code=status_code,
                provider=self._provider,
            ) from exc
        elapsed_ms = int((time.monotonic() - start) * 1000)

        content_text = ""
        for block in response.content:
            if block.type == "text":
                content_text += block.text

        logger.info(
            "anthropic_api_complete",
            model=self._model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            latency_ms=elapsed_ms,
        )

        return LLMResponse(
            content=content_text,
            model=response.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            finish_reason=response.stop_reason or "",
            latency_ms=elapsed_ms,
        )


def _with_json_suffix(system_prompt: str) -> str:
    if system_prompt.rstrip().endswith(JSON_SUFFIX):
        return system_prompt
    return system_prompt.rstrip() + "\n\n" + JSON_SUFFIX
