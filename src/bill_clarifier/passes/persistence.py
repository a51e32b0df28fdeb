"""Map pipeline results onto the persisted analysis row -- pure code."""
from __future__ import annotations

from ..international.tariff_flags import is_red_flag
from ..models.bill import RawBillRecord
from ..models.internal import ValidationIssue
from ..models.metrics import ClarifierResult
from ..models.narrative import NarrativeResult

STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_ERROR = "error"

# Record fields copied onto the analysis row under the same name
COPIED_RECORD_FIELDS = (
    "account_holder", "account_number", "distributor", "consumer_class",
    "tariff_modality", "billing_days", "due_date",
    "meter_reading_current", "meter_reading_previous", "measured_consumption_kwh",
    "injected_energy_kwh", "compensated_energy_kwh",
    "previous_credits_kwh", "current_credits_kwh",
    "total_amount", "energy_cost", "availability_cost", "public_lighting_cost",
    "icms_cost", "pis_cost", "cofins_cost", "sectoral_charges", "interest_amount",
    "demand_contracted_kw", "demand_measured_kw", "extraction_confidence",
)


def estimated_savings(
    metrics: ClarifierResult,
    narrative: NarrativeResult | None,
    savings_rate_per_kwh: float,
) -> float:
    """Narrative savings when available, else compensated kWh at the flat rate."""
    if narrative is not None and narrative.metrics.savings_this_month is not None:
        return narrative.metrics.savings_this_month
    return metrics.compensated * savings_rate_per_kwh


def billed_consumption_column(record: RawBillRecord) -> float | None:
    """Billed kWh as printed, else measured kWh; None when neither was read."""
    if record.billed_consumption_kwh is not None:
        return record.billed_consumption_kwh
    return record.measured_consumption_kwh


def pis_cofins_cost(record: RawBillRecord) -> float | None:
    if record.pis_cost is None and record.cofins_cost is None:
        return None
    return (record.pis_cost or 0.0) + (record.cofins_cost or 0.0)


def tariff_flag_cost(record: RawBillRecord) -> float | None:
    if not record.tariff_flag_value_kwh:
        return None
    return record.tariff_flag_value_kwh * (record.measured_consumption_kwh or 0.0)


def build_quick_alerts(
    record: RawBillRecord,
    metrics: ClarifierResult,
    expected_generation: float | None,
    validation_issues: list[ValidationIssue] | None = None,
    low_efficiency_threshold: float = 80.0,
) -> list[str]:
    """Rule-based alerts produced without the narrative stage."""
    alerts: list[str] = []
    if expected_generation and expected_generation > 0 and metrics.generation_efficiency < low_efficiency_threshold:
        alerts.append(f"Geração abaixo do esperado: {metrics.generation_efficiency:.1f}%")
    if (record.fines_amount or 0) > 0:
        alerts.append(f"Multa detectada: R$ {record.fines_amount:.2f}")
    if is_red_flag(record.tariff_flag):
        label = record.tariff_flag_text or record.tariff_flag.value
        alerts.append(f"Bandeira {label} - custo extra aplicado")
    for issue in validation_issues or []:
        if issue.severity == "warning":
            alerts.append(f"Verificar {issue.field}: {issue.message}")
    return alerts


def build_alerts(
    record: RawBillRecord,
    metrics: ClarifierResult,
    expected_generation: float | None,
    narrative: NarrativeResult | None,
    validation_issues: list[ValidationIssue] | None = None,
    low_efficiency_threshold: float = 80.0,
) -> list[str]:
    """Narrative alerts in full mode; rule-based alerts otherwise.

    A fallback narrative carries no alerts, so the rule-based list is used.
    """
    if narrative is not None and narrative.alerts:
        return [alert.as_text() for alert in narrative.alerts]
    return build_quick_alerts(
        record, metrics, expected_generation, validation_issues, low_efficiency_threshold,
    )


def build_completion_update(
    record: RawBillRecord,
    metrics: ClarifierResult,
    monitored_generation: float,
    expected_generation: float | None,
    alerts: list[str],
    narrative: NarrativeResult | None = None,
    savings_rate_per_kwh: float = 0.75,
) -> dict:
    """Column values written to the analysis row on completion."""
    update: dict = {name: getattr(record, name) for name in COPIED_RECORD_FIELDS}
    update.update({
        "status": STATUS_COMPLETED,
        "error_message": None,
        "billed_consumption_kwh": billed_consumption_column(record),
        "pis_cofins_cost": pis_cofins_cost(record),
        "fine_amount": record.fines_amount,
        "tariff_flag": record.tariff_flag.value if record.tariff_flag else None,
        "tariff_flag_cost": tariff_flag_cost(record),
        "tariff_te_value": record.tariff_te_kwh,
        "tariff_tusd_value": record.tariff_tusd_kwh,
        "real_consumption_kwh": metrics.real_consumption_kwh,
        "generation_efficiency": metrics.generation_efficiency,
        "minimum_possible": metrics.minimum_possible,
        "uncompensated_cost": metrics.uncompensated_cost,
        "system_status": metrics.system_status.value,
        "estimated_savings": estimated_savings(metrics, narrative, savings_rate_per_kwh),
        "alerts": alerts,
        "monitored_generation_kwh": monitored_generation,
        "expected_generation_kwh": expected_generation,
    })
    if narrative is not None:
        update.update({
            "ai_analysis": narrative.executive_summary,
            "ai_explanations": narrative.explanations,
            "ai_recommendations": [r.model_dump(mode="json") for r in narrative.recommendations],
            "bill_score": narrative.bill_score.value,
        })
    return update


def build_failure_update(message: str) -> dict:
    """Column values written to the analysis row when a run fails."""
    return {"status": STATUS_ERROR, "error_message": message}
