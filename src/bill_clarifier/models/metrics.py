"""Derived metrics computed from a bill record and generation inputs."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class SystemStatus(StrEnum):
    ADEQUATE = "adequate"
    SLIGHTLY_BELOW = "slightly_below"
    BELOW_NEEDED = "below_needed"


class ExpansionSizing(BaseModel):
    """Regional and hardware assumptions used to size a system expansion."""

    model_config = ConfigDict(frozen=True)

    generation_yield_kwh_per_kwp: float = Field(default=150.0, gt=0.0)
    module_power_kwp: float = Field(default=0.4, gt=0.0)
    slightly_below_ratio: float = Field(default=0.8, ge=0.0, le=1.0)


class ClarifierResult(BaseModel):
    """Immutable derived view over one bill.

    Monetary values are in BRL, energy values in kWh. All figures are
    clamped at zero; ``expansion_kwp``/``expansion_modules`` are ``None``
    when no additional generation is needed.
    """

    model_config = ConfigDict(frozen=True)

    total_paid: float
    minimum_possible: float
    uncompensated_cost: float

    generated: float
    injected: float
    compensated: float
    credits_balance: float

    expected_generation: float
    actual_generation: float
    generation_gap: float

    billed_consumption: float
    energy_still_needed: float
    system_status: SystemStatus
    extra_generation_needed: float
    expansion_kwp: float | None = None
    expansion_modules: int | None = None

    real_consumption_kwh: float = 0.0
    generation_efficiency: float = 0.0
    self_consumption_rate: float = 0.0
