"""LLM client abstract base class."""
from __future__ import annotations
from abc import ABC, abstractmethod
from pydantic import BaseModel


class LLMResponse(BaseModel):
    """Response from an LLM call."""
    content: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    finish_reason: str = ""
    latency_ms: int = 0


class ChatMessage(BaseModel):
    """One turn of a chat conversation."""
    role: str  # "user" or "assistant"
    content: str


class LLMClient(ABC):
    """Abstract base class for LLM clients.

    Implementations make exactly one request per call and raise
    ``LLMTransportError`` when the endpoint fails; callers decide whether
    a failure is terminal.
    """

    @abstractmethod
    async def complete_text(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: float = 0.0,
        max_tokens: int = 4096,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Text-only completion."""
        ...

    @abstractmethod
    async def complete_vision(
        self,
        system_prompt: str,
        user_prompt: str,
        images: list[str],  # base64-encoded images
        *,
        mime_type: str = "image/png",
        temperature: float = 0.0,
        max_tokens: int = 8192,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Vision completion with images."""
        ...

    @abstractmethod
    async def complete_chat(
        self,
        system_prompt: str,
        messages: list[ChatMessage],
        *,
        temperature: float = 0.7,
        max_tokens: int = 2048,
    ) -> LLMResponse:
        """Multi-turn chat completion."""
        ...

    @abstractmethod
    def get_model_name(self) -> str:
        """Return the model name being used."""
        ...
