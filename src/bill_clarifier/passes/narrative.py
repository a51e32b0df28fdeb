"""Specialist narrative stage (full mode): explanations, alerts, score."""
from __future__ import annotations

import json

import structlog
from pydantic import ValidationError

from ..international.number_parsing import to_non_empty_string, to_number, to_string_list
from ..llm.base import LLMClient
from ..llm.response_parser import extract_json_from_response
from ..models.bill import RawBillRecord
from ..models.metrics import ClarifierResult
from ..models.narrative import (
    Alert,
    BillScore,
    NarrativeMetrics,
    NarrativeResult,
    Recommendation,
)
from ..prompts.registry import PromptRegistry

logger = structlog.get_logger(__name__)

TEMPLATE_NAME = "narrative"
USER_PROMPT = "Analise estes dados e gere o relatório completo:"


def _fmt(value: float) -> str:
    return f"{value:.1f}"


def build_narrative_prompt(
    record: RawBillRecord,
    metrics: ClarifierResult,
    monitored_generation: float,
    expected_generation: float,
    prompt_registry: PromptRegistry,
) -> str:
    bill_json = json.dumps(
        record.model_dump(mode="json", exclude_none=True),
        ensure_ascii=False,
        indent=2,
    )
    return prompt_registry.render(TEMPLATE_NAME, variables={
        "bill_json": bill_json,
        "monitored_generation": _fmt(monitored_generation),
        "expected_generation": _fmt(expected_generation),
        "generation_efficiency": _fmt(metrics.generation_efficiency),
        "self_consumption_rate": _fmt(metrics.self_consumption_rate),
        "real_consumption": _fmt(metrics.real_consumption_kwh),
        "minimum_possible": f"{metrics.minimum_possible:.2f}",
        "uncompensated_cost": f"{metrics.uncompensated_cost:.2f}",
        "system_status": metrics.system_status.value,
        "extra_generation_needed": _fmt(metrics.extra_generation_needed),
    })


def _as_list(value: object) -> list:
    return value if isinstance(value, list) else []


def parse_narrative(data: dict) -> NarrativeResult:
    """Build a NarrativeResult, dropping individual malformed entries."""
    alerts: list[Alert] = []
    for i, raw in enumerate(_as_list(data.get("alerts"))):
        try:
            alerts.append(Alert.model_validate(raw))
        except ValidationError as e:
            logger.warning("alert_mapping_failed", index=i, error=str(e))

    recommendations: list[Recommendation] = []
    for i, raw in enumerate(_as_list(data.get("recommendations"))):
        try:
            recommendations.append(Recommendation.model_validate(raw))
        except ValidationError as e:
            logger.warning("recommendation_mapping_failed", index=i, error=str(e))

    raw_metrics = data.get("metrics") if isinstance(data.get("metrics"), dict) else {}
    metrics = NarrativeMetrics(**{
        name: to_number(raw_metrics.get(name)) for name in NarrativeMetrics.model_fields
    })

    raw_score = data.get("bill_score") if isinstance(data.get("bill_score"), dict) else {}
    score = BillScore(
        value=raw_score.get("value"),
        label=to_non_empty_string(raw_score.get("label")) or "",
        factors=to_string_list(raw_score.get("factors")),
    )

    explanations = data.get("explanations")
    return NarrativeResult(
        executive_summary=to_non_empty_string(data.get("executive_summary")) or "",
        explanations=explanations if isinstance(explanations, dict) else {},
        alerts=alerts,
        metrics=metrics,
        recommendations=recommendations,
        bill_score=score,
    )


async def run_narrative(
    record: RawBillRecord,
    metrics: ClarifierResult,
    monitored_generation: float,
    expected_generation: float,
    llm_client: LLMClient,
    prompt_registry: PromptRegistry,
    temperature: float = 0.7,
    savings_rate_per_kwh: float = 0.75,
) -> NarrativeResult:
    """Generate the specialist narrative for one bill.

    Transport failures propagate. Unparseable output degrades to
    :meth:`NarrativeResult.fallback`.
    """
    prompt = build_narrative_prompt(
        record, metrics, monitored_generation, expected_generation, prompt_registry,
    )

    response = await llm_client.complete_text(
        system_prompt=prompt,
        user_prompt=USER_PROMPT,
        temperature=temperature,
        max_tokens=4000,
        json_mode=True,
    )

    try:
        data = extract_json_from_response(response.content)
    except ValueError as e:
        logger.warning("narrative_fallback", error=str(e), response_preview=response.content[:200])
        return NarrativeResult.fallback(
            solar_efficiency=metrics.generation_efficiency,
            self_consumption_rate=metrics.self_consumption_rate,
            savings_this_month=metrics.compensated * savings_rate_per_kwh,
        )

    narrative = parse_narrative(data)
    logger.info(
        "narrative_complete",
        model=response.model,
        score=narrative.bill_score.value,
        alert_count=len(narrative.alerts),
        recommendation_count=len(narrative.recommendations),
    )
    return narrative
