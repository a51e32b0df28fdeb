"""Test provider clients and the factory without network access."""
import httpx
import anthropic
import openai
import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from bill_clarifier.config import Settings
from bill_clarifier.errors import LLMTransportError
from bill_clarifier.llm.anthropic_client import JSON_SUFFIX, AnthropicClient
from bill_clarifier.llm.base import ChatMessage
from bill_clarifier.llm.factory import create_llm_client
from bill_clarifier.llm.openai_client import OpenAIClient

_REQUEST = httpx.Request("POST", "https://api.example.test/v1")


def _openai_completion(content: str):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content), finish_reason="stop")],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5),
        model="gpt-4o",
    )


@pytest.fixture
def openai_client():
    client = OpenAIClient(api_key="test-key", model="gpt-4o")
    client._client = MagicMock()
    client._client.chat.completions.create = AsyncMock(return_value=_openai_completion('{"ok": true}'))
    return client


@pytest.fixture
def anthropic_client():
    client = AnthropicClient(api_key="test-key", model="claude-test")
    client._client = MagicMock()
    client._client.messages.create = AsyncMock(return_value=SimpleNamespace(
        content=[SimpleNamespace(type="text", text="olá")],
        usage=SimpleNamespace(input_tokens=7, output_tokens=3),
        model="claude-test",
        stop_reason="end_turn",
    ))
    return client


class TestOpenAIClient:
    @pytest.mark.asyncio
    async def test_vision_sends_data_url_with_mime_type(self, openai_client):
        response = await openai_client.complete_vision("sys", "user", ["QUJD"], mime_type="image/jpeg")
        assert response.content == '{"ok": true}'
        kwargs = openai_client._client.chat.completions.create.call_args.kwargs
        image_part = kwargs["messages"][1]["content"][0]
        assert image_part["image_url"]["url"].startswith("data:image/jpeg;base64,QUJD")

    @pytest.mark.asyncio
    async def test_json_mode_sets_response_format(self, openai_client):
        await openai_client.complete_text("sys", "user", json_mode=True)
        kwargs = openai_client._client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_chat_keeps_history_order(self, openai_client):
        history = [ChatMessage(role="user", content="oi"), ChatMessage(role="assistant", content="olá")]
        await openai_client.complete_chat("sys", history)
        messages = openai_client._client.chat.completions.create.call_args.kwargs["messages"]
        assert [m["role"] for m in messages] == ["system", "user", "assistant"]

    @pytest.mark.asyncio
    async def test_status_error_becomes_transport_error(self, openai_client):
        openai_client._client.chat.completions.create.side_effect = openai.APIStatusError(
            "rate limited", response=httpx.Response(429, request=_REQUEST), body=None,
        )
        with pytest.raises(LLMTransportError) as exc_info:
            await openai_client.complete_text("sys", "user")
        assert exc_info.value.status_code == 429
        assert exc_info.value.is_rate_limited

    @pytest.mark.asyncio
    async def test_connection_error_becomes_transport_error(self, openai_client):
        openai_client._client.chat.completions.create.side_effect = openai.APIConnectionError(request=_REQUEST)
        with pytest.raises(LLMTransportError) as exc_info:
            await openai_client.complete_text("sys", "user")
        assert exc_info.value.status_code is None

    def test_single_attempt(self):
        client = OpenAIClient(api_key="test-key")
        assert client._client.max_retries == 0

    def test_azure_endpoint(self):
        client = OpenAIClient(api_key="test-key", model="bills-gpt4o", azure_endpoint="https://test.openai.azure.com")
        assert isinstance(client._client, openai.AsyncAzureOpenAI)
        assert client.get_model_name() == "bills-gpt4o (azure_openai)"


class TestAnthropicClient:
    @pytest.mark.asyncio
    async def test_json_mode_appends_instruction(self, anthropic_client):
        await anthropic_client.complete_text("sys", "user", json_mode=True)
        kwargs = anthropic_client._client.messages.create.call_args.kwargs
        assert kwargs["system"].endswith(JSON_SUFFIX)

    @pytest.mark.asyncio
    async def test_collects_text_blocks(self, anthropic_client):
        response = await anthropic_client.complete_chat("sys", [ChatMessage(role="user", content="oi")])
        assert response.content == "olá"
        assert response.input_tokens == 7

    @pytest.mark.asyncio
    async def test_quota_error(self, anthropic_client):
        anthropic_client._client.messages.create.side_effect = anthropic.APIStatusError(
            "payment required", response=httpx.Response(402, request=_REQUEST), body=None,
        )
        with pytest.raises(LLMTransportError) as exc_info:
            await anthropic_client.complete_text("sys", "user")
        assert exc_info.value.is_quota_exhausted


class TestFactory:
    def test_openai_default(self):
        client = create_llm_client(Settings(openai_api_key="k"), "gpt-4o-mini")
        assert isinstance(client, OpenAIClient)
        assert client.get_model_name().startswith("gpt-4o-mini")

    def test_anthropic_provider(self):
        settings = Settings(llm_provider="anthropic", anthropic_api_key="k")
        client = create_llm_client(settings, "claude-test")
        assert isinstance(client, AnthropicClient)
