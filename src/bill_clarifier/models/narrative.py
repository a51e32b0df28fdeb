"""Specialist narrative models (full-analysis mode)."""

from __future__ import annotations

import math
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator

FALLBACK_SUMMARY = (
    "Não foi possível gerar a análise completa. Por favor, tente novamente."
)
FALLBACK_SCORE_LABEL = "Indisponível"
NEUTRAL_SCORE = 50.0


class AlertType(StrEnum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    SUCCESS = "success"


class Priority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


_PRIORITY_ALIASES = {
    "alta": Priority.HIGH,
    "high": Priority.HIGH,
    "media": Priority.MEDIUM,
    "média": Priority.MEDIUM,
    "medium": Priority.MEDIUM,
    "baixa": Priority.LOW,
    "low": Priority.LOW,
}


class Alert(BaseModel):
    type: AlertType = AlertType.INFO
    icon: str | None = None
    title: str
    description: str = ""
    action: str | None = None

    @field_validator("type", mode="before")
    @classmethod
    def _unknown_type_is_info(cls, value):
        if isinstance(value, str) and value.strip().lower() in {t.value for t in AlertType}:
            return value.strip().lower()
        return AlertType.INFO

    def as_text(self) -> str:
        """Single-line form stored on the analysis row."""
        prefix = f"{self.icon} " if self.icon else ""
        return f"{prefix}{self.title}: {self.description}".strip()


class Recommendation(BaseModel):
    priority: Priority = Priority.MEDIUM
    title: str
    description: str = ""
    estimated_savings: str | None = None

    @field_validator("priority", mode="before")
    @classmethod
    def _normalize_priority(cls, value):
        if isinstance(value, str):
            return _PRIORITY_ALIASES.get(value.strip().lower(), Priority.MEDIUM)
        return value

    @field_validator("estimated_savings", mode="before")
    @classmethod
    def _savings_as_text(cls, value):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return f"{value:.2f}"
        return value


class BillScore(BaseModel):
    value: float = NEUTRAL_SCORE
    label: str = ""
    factors: list[str] = Field(default_factory=list)

    @field_validator("value", mode="before")
    @classmethod
    def _clamp(cls, value):
        try:
            number = float(value)
        except (TypeError, ValueError):
            return NEUTRAL_SCORE
        if math.isnan(number):
            return NEUTRAL_SCORE
        return min(100.0, max(0.0, number))


class NarrativeMetrics(BaseModel):
    cost_per_kwh_real: float | None = None
    cost_per_kwh_without_solar: float | None = None
    savings_this_month: float | None = None
    savings_percentage: float | None = None
    solar_efficiency: float | None = None
    self_consumption_rate: float | None = None


class NarrativeResult(BaseModel):
    """Free-text explanations, alerts, recommendations and a 0-100 score."""

    executive_summary: str = ""
    explanations: dict = Field(default_factory=dict)
    alerts: list[Alert] = Field(default_factory=list)
    metrics: NarrativeMetrics = Field(default_factory=NarrativeMetrics)
    recommendations: list[Recommendation] = Field(default_factory=list)
    bill_score: BillScore = Field(default_factory=BillScore)
    is_fallback: bool = False

    @classmethod
    def fallback(
        cls,
        *,
        solar_efficiency: float | None = None,
        self_consumption_rate: float | None = None,
        savings_this_month: float | None = None,
    ) -> NarrativeResult:
        """Minimal narrative used when the model output cannot be parsed."""
        return cls(
            executive_summary=FALLBACK_SUMMARY,
            metrics=NarrativeMetrics(
                solar_efficiency=solar_efficiency,
                self_consumption_rate=self_consumption_rate,
                savings_this_month=savings_this_month,
            ),
            bill_score=BillScore(
                value=NEUTRAL_SCORE,
                label=FALLBACK_SCORE_LABEL,
                factors=["Análise não pôde ser concluída"],
            ),
            is_fallback=True,
        )
