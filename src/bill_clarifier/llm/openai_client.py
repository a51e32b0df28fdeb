"""OpenAI LLM client for the OpenAI API or Azure OpenAI deployments."""
from __future__ import annotations

import time

import openai
import structlog

from ..errors import LLMTransportError
from .base import ChatMessage, LLMClient, LLMResponse

logger = structlog.get_logger(__name__)

# Exceptions surfaced as transport failures
TRANSPORT_EXCEPTIONS = (
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.APIStatusError,
)


class OpenAIClient(LLMClient):
    """LLM client for GPT models.

    With ``azure_endpoint`` set the client talks to an Azure OpenAI resource
    and ``model`` is the deployment name; otherwise it uses the OpenAI API
    (or a compatible gateway at ``base_url``).
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        azure_endpoint: str = "",
        base_url: str = "",
        timeout: int = 120,
    ):
        self._model = model
        self._timeout = timeout

        if azure_endpoint:
            self._client = openai.AsyncAzureOpenAI(
                api_key=api_key,
                azure_endpoint=azure_endpoint,
                api_version="2024-06-01",
                timeout=float(timeout),
                max_retries=0,
            )
            self._provider = "azure_openai"
        else:
            self._client = openai.AsyncOpenAI(
                api_key=api_key,
                base_url=base_url or None,
                timeout=float(timeout),
                max_retries=0,
            )
            self._provider = "openai"

    async def complete_text(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: float = 0.0,
        max_tokens: int = 4096,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Text-only completion using the Chat Completions API."""
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]

        kwargs: dict = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        return await self._call(
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            **kwargs,
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
        user_content: list[dict] = []

        for base64_str in images:
            user_content.append({
                "type": "image_url",
                "image_url": {
                    "url": f"data:{mime_type};base64,{base64_str}",
                    "detail": "high",
                },
            })

        user_content.append({"type": "text", "text": user_prompt})

        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_content},
        ]

        kwargs: dict = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        return await self._call(
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            **kwargs,
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
        payload = [{"role": "system", "content": system_prompt}]
        payload.extend({"role": m.role, "content": m.content} for m in messages)
        return await self._call(
            messages=payload,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    def get_model_name(self) -> str:
        """Return the model name being used."""
        return f"{self._model} ({self._provider})"

    async def _call(
        self,
        messages: list[dict],
        temperature: float,
        max_tokens: int,
        **kwargs,
    ) -> LLMResponse:
        """Issue a single Chat Completions request."""
        start = time.monotonic()
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                **kwargs,
            )
        except TRANSPORT_EXCEPTIONS as exc:
            status_code = getattr(exc, "status_code", None)
            logger.error(
                "openai_api_failed",
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

        choice = response.choices[0]
        content_text = choice.message.content or ""

        input_tokens = 0
        output_tokens = 0
        if response.usage is not None:
            input_tokens = response.usage.prompt_tokens
            output_tokens = response.usage.completion_tokens

        logger.info(
            "openai_api_complete",
            model=self._model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            latency_ms=elapsed_ms,
        )

        return LLMResponse(
            content=content_text,
            model=response.model or self._model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            finish_reason=choice.finish_reason or "",
            latency_ms=elapsed_ms,
        )
