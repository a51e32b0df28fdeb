"""Normalized bill record produced by the extraction stage.

Every data field is optional: ``None`` means the extractor could not read
the value from the bill, which is different from the bill printing ``0``.
Numeric fields are always finite floats once a record has been built.
"""

from __future__ import annotations

import math
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator


class TariffFlag(StrEnum):
    GREEN = "green"
    YELLOW = "yellow"
    RED_1 = "red_1"
    RED_2 = "red_2"


class BillingLineItem(BaseModel):
    """One row of the itemized billing table ("DESCRIÇÃO DO FATURAMENTO")."""

    item: str
    quantity_kwh: float | None = None
    unit_price: float | None = None
    total_value: float | None = None
    icms: float | None = None


# Fields that are metadata about the extraction rather than bill content.
METADATA_FIELDS = frozenset({"extraction_confidence", "fields_not_found"})


class RawBillRecord(BaseModel):
    """Flat, exhaustively enumerated record of what a bill states."""

    # ── Identification ───────────────────────────────────────────────────
    account_holder: str | None = None
    account_number: str | None = None
    tax_id: str | None = None
    distributor: str | None = None
    consumer_class: str | None = None
    subclass: str | None = None
    tariff_modality: str | None = None
    meter_number: str | None = None

    # ── Period ───────────────────────────────────────────────────────────
    reference_month: int | None = None
    reference_year: int | None = None
    billing_days: int | None = None
    reading_date_previous: str | None = None
    reading_date_current: str | None = None
    due_date: str | None = None

    # ── Metering ─────────────────────────────────────────────────────────
    meter_reading_previous: float | None = None
    meter_reading_current: float | None = None
    measured_consumption_kwh: float | None = None
    billed_consumption_kwh: float | None = None

    # ── Solar ────────────────────────────────────────────────────────────
    injected_energy_kwh: float | None = None
    compensated_energy_kwh: float | None = None
    previous_credits_kwh: float | None = None
    current_credits_kwh: float | None = None
    credit_expiry_date: str | None = None

    # ── Tariff ───────────────────────────────────────────────────────────
    tariff_te_kwh: float | None = None
    tariff_tusd_kwh: float | None = None
    tariff_flag: TariffFlag | None = None
    tariff_flag_text: str | None = None
    tariff_flag_value_kwh: float | None = None

    # ── Energy & fixed costs ─────────────────────────────────────────────
    energy_cost_te: float | None = None
    energy_cost_tusd: float | None = None
    energy_cost: float | None = None
    energy_cost_gross: float | None = None
    availability_cost: float | None = None
    public_lighting_cost: float | None = None

    # ── Taxes ────────────────────────────────────────────────────────────
    icms_base: float | None = None
    icms_rate: float | None = None
    icms_cost: float | None = None
    icms_cost_gross: float | None = None
    pis_base: float | None = None
    pis_rate: float | None = None
    pis_cost: float | None = None
    pis_cost_gross: float | None = None
    cofins_base: float | None = None
    cofins_rate: float | None = None
    cofins_cost: float | None = None
    cofins_cost_gross: float | None = None

    # ── Other charges & credits ──────────────────────────────────────────
    sectoral_charges: float | None = None
    fines_amount: float | None = None
    interest_amount: float | None = None
    other_charges: float | None = None
    other_credits: float | None = None

    # ── Demand (commercial tier) ─────────────────────────────────────────
    demand_contracted_kw: float | None = None
    demand_measured_kw: float | None = None
    demand_billed_kw: float | None = None
    demand_excess_cost: float | None = None

    # ── Totals ───────────────────────────────────────────────────────────
    subtotal_before_taxes: float | None = None
    subtotal_gross: float | None = None
    credit_discount: float | None = None
    total_amount: float | None = None

    # ── Itemized table & notes ───────────────────────────────────────────
    billing_items: list[BillingLineItem] = Field(default_factory=list)
    legal_notices: list[str] = Field(default_factory=list)
    tariff_notes: list[str] = Field(default_factory=list)

    # ── Metadata ─────────────────────────────────────────────────────────
    extraction_confidence: float | None = None
    fields_not_found: list[str] = Field(default_factory=list)

    @field_validator("*", mode="after")
    @classmethod
    def _drop_non_finite(cls, value):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return value

    @field_validator("reference_month")
    @classmethod
    def _month_in_range(cls, value: int | None) -> int | None:
        if value is not None and not 1 <= value <= 12:
            return None
        return value

    @field_validator("extraction_confidence")
    @classmethod
    def _clamp_confidence(cls, value: float | None) -> float | None:
        if value is None or not math.isfinite(value):
            return None
        return min(100.0, max(0.0, value))

    @classmethod
    def data_field_names(cls) -> list[str]:
        """Names of every field that carries bill content."""
        return [name for name in cls.model_fields if name not in METADATA_FIELDS]

    @classmethod
    def unreadable(cls) -> RawBillRecord:
        """Record for a bill the extractor could not read at all."""
        return cls(extraction_confidence=0.0, fields_not_found=cls.data_field_names())

    @property
    def effective_confidence(self) -> float:
        return self.extraction_confidence or 0.0

    def present_fields(self) -> list[str]:
        """Data fields holding a value (non-empty for lists)."""
        present = []
        for name in self.data_field_names():
            value = getattr(self, name)
            if value is None or value == []:
                continue
            present.append(name)
        return present

    def is_empty(self) -> bool:
        return not self.present_fields()
