"""Request-scoped accessors for objects held on ``app.state``."""
from __future__ import annotations

from fastapi import Request

from ..config import Settings
from ..llm.base import LLMClient
from ..llm.factory import create_llm_client
from ..pipeline import BillAnalysisPipeline
from ..prompts.registry import PromptRegistry
from ..storage.store import AnalysisStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> AnalysisStore:
    return request.app.state.store


def get_prompt_registry(request: Request) -> PromptRegistry:
    return request.app.state.prompt_registry


def get_pipeline(request: Request) -> BillAnalysisPipeline:
    """Pipeline shared by every request, built on first use."""
    state = request.app.state
    if state.pipeline is None:
        state.pipeline = BillAnalysisPipeline(
            state.settings,
            store=state.store,
            prompt_registry=state.prompt_registry,
        )
    return state.pipeline


def get_chat_client(request: Request) -> LLMClient:
    state = request.app.state
    if state.chat_client is None:
        state.chat_client = create_llm_client(state.settings, state.settings.chat_model)
    return state.chat_client
