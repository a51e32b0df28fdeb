"""Extraction stage: one vision call that reads a bill into a RawBillRecord."""
from __future__ import annotations

import structlog

from ..international.date_parsing import parse_reference_period
from ..international.number_parsing import (
    to_int,
    to_non_empty_string,
    to_number,
    to_string_list,
)
from ..international.tariff_flags import parse_tariff_flag
from ..llm.base import LLMClient
from ..llm.response_parser import extract_json_from_response
from ..models.bill import BillingLineItem, RawBillRecord
from ..models.internal import IngestedImage
from ..prompts.registry import PromptRegistry

logger = structlog.get_logger(__name__)

TEMPLATE_NAME = "extraction"
SYSTEM_PROMPT = (
    "You are a high-precision OCR engine for Brazilian electricity bills. "
    "Extract data only; never analyse or recommend."
)
USER_PROMPT_PREFIX = "Extraia TODOS os dados desta conta de energia:"

STRING_FIELDS = (
    "account_holder", "account_number", "tax_id", "distributor",
    "consumer_class", "subclass", "tariff_modality", "meter_number",
    "reading_date_previous", "reading_date_current", "due_date",
    "credit_expiry_date",
)

INT_FIELDS = ("reference_month", "reference_year", "billing_days")

NUMBER_FIELDS = (
    "meter_reading_previous", "meter_reading_current",
    "measured_consumption_kwh", "billed_consumption_kwh",
    "injected_energy_kwh", "compensated_energy_kwh",
    "previous_credits_kwh", "current_credits_kwh",
    "tariff_te_kwh", "tariff_tusd_kwh", "tariff_flag_value_kwh",
    "energy_cost_te", "energy_cost_tusd", "energy_cost", "energy_cost_gross",
    "availability_cost", "public_lighting_cost",
    "icms_base", "icms_rate", "icms_cost", "icms_cost_gross",
    "pis_base", "pis_rate", "pis_cost", "pis_cost_gross",
    "cofins_base", "cofins_rate", "cofins_cost", "cofins_cost_gross",
    "sectoral_charges", "fines_amount", "interest_amount",
    "other_charges", "other_credits",
    "demand_contracted_kw", "demand_measured_kw", "demand_billed_kw",
    "demand_excess_cost",
    "subtotal_before_taxes", "subtotal_gross", "credit_discount", "total_amount",
)

# Alternative keys models have been seen to emit
FIELD_ALIASES = {
    "cpf_cnpj": "tax_id",
    "consumption_by_type": "billing_items",
}


def _apply_aliases(data: dict) -> dict:
    resolved = dict(data)
    for alias, canonical in FIELD_ALIASES.items():
        if alias in resolved and resolved.get(canonical) is None:
            resolved[canonical] = resolved.pop(alias)
    return resolved


def _reference_period(data: dict) -> tuple[int, int] | None:
    """Month and year from a printed period such as ``"MAR/2024"`` or ``"03/2024"``."""
    for key in ("reference_period", "reference_month"):
        raw = data.get(key)
        if isinstance(raw, str):
            period = parse_reference_period(raw)
            if period is not None:
                return period
    return None


def _normalize_billing_items(raw_items: object) -> list[BillingLineItem]:
    if not isinstance(raw_items, list):
        return []
    items: list[BillingLineItem] = []
    for i, raw in enumerate(raw_items):
        try:
            if not isinstance(raw, dict):
                raise TypeError(f"expected object, got {type(raw).__name__}")
            name = to_non_empty_string(raw.get("item"))
            if name is None:
                raise ValueError("item name missing")
            items.append(BillingLineItem(
                item=name,
                quantity_kwh=to_number(raw.get("quantity_kwh")),
                unit_price=to_number(raw.get("unit_price")),
                total_value=to_number(raw.get("total_value")),
                icms=to_number(raw.get("icms")),
            ))
        except (TypeError, ValueError) as e:
            logger.warning("billing_item_mapping_failed", index=i, error=str(e))
    return items


def normalize_extraction(data: dict) -> RawBillRecord:
    """Map a parsed model document onto a :class:`RawBillRecord`.

    Every value goes through the numeric normalizer; unknown keys are
    ignored and unreadable values become ``None``.
    """
    data = _apply_aliases(data)
    fields: dict = {}

    for name in STRING_FIELDS:
        fields[name] = to_non_empty_string(data.get(name))
    for name in INT_FIELDS:
        fields[name] = to_int(data.get(name))
    period = _reference_period(data)
    if period is not None:
        fields["reference_month"], fields["reference_year"] = period
    for name in NUMBER_FIELDS:
        fields[name] = to_number(data.get(name))

    flag_text = to_non_empty_string(data.get("tariff_flag"))
    fields["tariff_flag_text"] = flag_text
    fields["tariff_flag"] = parse_tariff_flag(flag_text)

    fields["billing_items"] = _normalize_billing_items(data.get("billing_items"))
    fields["legal_notices"] = to_string_list(data.get("legal_notices"))
    fields["tariff_notes"] = to_string_list(data.get("tariff_notes"))
    fields["extraction_confidence"] = to_number(data.get("extraction_confidence"))
    fields["fields_not_found"] = to_string_list(data.get("fields_not_found"))

    return RawBillRecord(**fields)


def parse_extraction_response(content: str) -> RawBillRecord:
    """Parse raw model text; unparseable output yields an unreadable record."""
    try:
        data = extract_json_from_response(content)
    except ValueError as e:
        logger.warning(
            "extraction_unparseable",
            error=str(e),
            response_preview=content[:200],
        )
        return RawBillRecord.unreadable()
    return normalize_extraction(data)


async def run_extraction(
    image: IngestedImage,
    llm_client: LLMClient,
    prompt_registry: PromptRegistry,
    temperature: float = 0.0,
) -> RawBillRecord:
    """Read the bill image into a normalized record.

    Transport failures from *llm_client* propagate; malformed output does not.
    """
    system_prompt = f"{SYSTEM_PROMPT}\n\n{prompt_registry.render(TEMPLATE_NAME)}"

    response = await llm_client.complete_vision(
        system_prompt=system_prompt,
        user_prompt=USER_PROMPT_PREFIX,
        images=[image.image_base64],
        mime_type=image.mime_type,
        temperature=temperature,
        max_tokens=4096,
    )

    record = parse_extraction_response(response.content)
    logger.info(
        "extraction_complete",
        model=response.model,
        prompt_version=prompt_registry.get_version(TEMPLATE_NAME),
        fields_extracted=len(record.present_fields()),
        confidence=record.extraction_confidence,
        latency_ms=response.latency_ms,
    )
    return record
