"""Follow-up chat grounded in a stored analysis."""
from __future__ import annotations

import json

import structlog

from ..errors import AnalysisInputError
from ..llm.base import ChatMessage, LLMClient
from ..models.bill import RawBillRecord
from ..prompts.registry import PromptRegistry
from ..models.metrics import ExpansionSizing
from .derived_metrics import DEFAULT_SIZING, derive_metrics

logger = structlog.get_logger(__name__)

TEMPLATE_NAME = "chat"
NOT_AVAILABLE = "N/D"
MAX_HISTORY_MESSAGES = 20


def _money(value) -> str:
    if value is None:
        return NOT_AVAILABLE
    return f"{float(value):.2f}"


def _kwh(value) -> str:
    if value is None:
        return NOT_AVAILABLE
    return f"{float(value):.1f}"


def _text(value) -> str:
    return str(value) if value not in (None, "") else NOT_AVAILABLE


def _bill_figures(analysis: dict, raw_json: dict | None, sizing: ExpansionSizing) -> dict:
    """Headline figures, recomputed from the stored extraction when present."""
    if raw_json:
        record = RawBillRecord.model_validate(raw_json)
        metrics = derive_metrics(
            record,
            analysis.get("monitored_generation_kwh") or 0.0,
            analysis.get("expected_generation_kwh"),
            sizing=sizing,
        )
        return {
            "total_paid": metrics.total_paid,
            "minimum_possible": metrics.minimum_possible,
            "uncompensated_cost": metrics.uncompensated_cost,
            "compensated": metrics.compensated,
            "billed_consumption": metrics.billed_consumption,
            "credits_balance": metrics.credits_balance,
            "system_status": metrics.system_status.value,
        }
    return {
        "total_paid": analysis.get("total_amount"),
        "minimum_possible": analysis.get("minimum_possible"),
        "uncompensated_cost": analysis.get("uncompensated_cost"),
        "compensated": analysis.get("compensated_energy_kwh"),
        "billed_consumption": analysis.get("billed_consumption_kwh"),
        "credits_balance": analysis.get("current_credits_kwh"),
        "system_status": analysis.get("system_status"),
    }


def build_chat_context(
    analysis: dict,
    raw_json: dict | None,
    prompt_registry: PromptRegistry,
    sizing: ExpansionSizing = DEFAULT_SIZING,
) -> str:
    """Render the system prompt for a chat about one analysis row."""
    month, year = analysis.get("reference_month"), analysis.get("reference_year")
    period = f"{month:02d}/{year}" if month and year else NOT_AVAILABLE

    figures = _bill_figures(analysis, raw_json, sizing)
    raw_extraction = ""
    if raw_json:
        raw_extraction = "DADOS COMPLETOS EXTRAÍDOS DA CONTA:\n" + json.dumps(
            raw_json, ensure_ascii=False, indent=2, default=str,
        )

    return prompt_registry.render(TEMPLATE_NAME, variables={
        "distributor": _text(analysis.get("distributor")),
        "reference_period": period,
        "account_holder": _text(analysis.get("account_holder")),
        "account_number": _text(analysis.get("account_number")),
        "total_paid": _money(figures["total_paid"]),
        "minimum_possible": _money(figures["minimum_possible"]),
        "uncompensated_cost": _money(figures["uncompensated_cost"]),
        "availability_cost": _money(analysis.get("availability_cost")),
        "public_lighting_cost": _money(analysis.get("public_lighting_cost")),
        "energy_cost": _money(analysis.get("energy_cost")),
        "icms_cost": _money(analysis.get("icms_cost")),
        "pis_cofins_cost": _money(analysis.get("pis_cofins_cost")),
        "tariff_flag": _text(analysis.get("tariff_flag")),
        "monitored_generation": _kwh(analysis.get("monitored_generation_kwh")),
        "injected": _kwh(analysis.get("injected_energy_kwh")),
        "compensated": _kwh(figures["compensated"]),
        "billed_consumption": _kwh(figures["billed_consumption"]),
        "credits_balance": _kwh(figures["credits_balance"]),
        "system_status": _text(figures["system_status"]),
        "raw_extraction": raw_extraction,
    })


async def answer_question(
    question: str,
    history: list[ChatMessage],
    analysis: dict,
    raw_json: dict | None,
    llm_client: LLMClient,
    prompt_registry: PromptRegistry,
    temperature: float = 0.7,
    sizing: ExpansionSizing = DEFAULT_SIZING,
) -> str:
    """Answer one user question about a completed analysis.

    Only the most recent turns of ``history`` are sent along.
    """
    question = (question or "").strip()
    if not question:
        raise AnalysisInputError("A question is required")

    system_prompt = build_chat_context(analysis, raw_json, prompt_registry, sizing)
    messages = list(history[-MAX_HISTORY_MESSAGES:])
    messages.append(ChatMessage(role="user", content=question))

    response = await llm_client.complete_chat(
        system_prompt,
        messages,
        temperature=temperature,
    )
    logger.info(
        "chat_answered",
        analysis_id=analysis.get("analysis_id"),
        history_turns=len(messages) - 1,
        model=response.model,
        latency_ms=response.latency_ms,
    )
    return response.content.strip()
