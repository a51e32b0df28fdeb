"""Shared test fixtures."""
import pytest
from unittest.mock import AsyncMock
from bill_clarifier.llm.base import LLMClient, LLMResponse
from bill_clarifier.config import Settings
from bill_clarifier.prompts.registry import PromptRegistry
from bill_clarifier.storage.store import AnalysisStore


@pytest.fixture
def mock_settings():
    """Create test settings with dummy values."""
    return Settings(
        openai_api_key="test-openai-key",
        anthropic_api_key="test-anthropic-key",
        database_url="sqlite+aiosqlite:///:memory:",
        extraction_timeout=5.0,
    )


@pytest.fixture
def mock_llm_client():
    """Create a mock LLM client."""
    client = AsyncMock(spec=LLMClient)
    client.get_model_name.return_value = "mock-model"
    client.complete_text.return_value = LLMResponse(
        content='{"test": "response"}',
        model="mock-model",
        input_tokens=100,
        output_tokens=50,
    )
    client.complete_vision.return_value = LLMResponse(
        content='{"test": "response"}',
        model="mock-model",
        input_tokens=200,
        output_tokens=100,
    )
    client.complete_chat.return_value = LLMResponse(
        content="Resposta de teste.",
        model="mock-model",
        input_tokens=300,
        output_tokens=40,
    )
    return client


@pytest.fixture
def prompt_registry():
    return PromptRegistry()


@pytest.fixture
def mock_store():
    """AnalysisStore double that records the terminal writes."""
    return AsyncMock(spec=AnalysisStore)
