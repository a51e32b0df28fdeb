"""Derived metrics stage -- pure code, no LLM.

The one implementation of the bill figures shown to users: the pipeline,
the persisted-record mapping, the API and the chat context all call
:func:`derive_metrics`.
"""
from __future__ import annotations

import math

from ..models.bill import RawBillRecord
from ..models.metrics import ClarifierResult, ExpansionSizing, SystemStatus

DEFAULT_SIZING = ExpansionSizing()


def _or_zero(value: float | None) -> float:
    return value if value is not None else 0.0


def minimum_possible_charge(record: RawBillRecord) -> float:
    """Floor charge that remains with full solar offset (availability + CIP)."""
    return _or_zero(record.availability_cost) + _or_zero(record.public_lighting_cost)


def billed_consumption(record: RawBillRecord) -> float:
    """Billed kWh, falling back to measured kWh, then 0."""
    if record.billed_consumption_kwh is not None:
        return record.billed_consumption_kwh
    if record.measured_consumption_kwh is not None:
        return record.measured_consumption_kwh
    return 0.0


def classify_status(
    generated: float,
    energy_still_needed: float,
    slightly_below_ratio: float = DEFAULT_SIZING.slightly_below_ratio,
) -> SystemStatus:
    """Classify generation against need; checks run from best to worst."""
    if generated >= energy_still_needed:
        return SystemStatus.ADEQUATE
    if generated >= slightly_below_ratio * energy_still_needed:
        return SystemStatus.SLIGHTLY_BELOW
    return SystemStatus.BELOW_NEEDED


def generation_efficiency(monitored: float, expected: float | None) -> float:
    """Monitored over expected generation in percent; 0 without a baseline."""
    if expected is None or expected <= 0:
        return 0.0
    return max(0.0, monitored / expected * 100)


def self_consumption_rate(monitored: float, injected: float | None) -> float:
    """Share of generation consumed on site, in percent."""
    if monitored <= 0 or injected is None:
        return 0.0
    return max(0.0, (monitored - injected) / monitored * 100)


def derive_metrics(
    record: RawBillRecord,
    monitored_generation: float,
    expected_generation: float | None = None,
    *,
    sizing: ExpansionSizing = DEFAULT_SIZING,
) -> ClarifierResult:
    """Compute the derived figures for one bill.

    *monitored_generation* is the owner's inverter reading and is the only
    source for ``generated``. *expected_generation* falls back to the
    monitored value when absent or zero.
    """
    minimum_possible = minimum_possible_charge(record)
    total_paid = _or_zero(record.total_amount)
    uncompensated_cost = max(0.0, total_paid - minimum_possible)

    generated = max(0.0, monitored_generation)
    injected = _or_zero(record.injected_energy_kwh)
    compensated = _or_zero(record.compensated_energy_kwh)
    credits_balance = _or_zero(record.current_credits_kwh)

    expected = expected_generation if expected_generation else generated
    generation_gap = max(0.0, expected - generated)

    billed = billed_consumption(record)
    energy_still_needed = max(0.0, billed - compensated)

    status = classify_status(generated, energy_still_needed, sizing.slightly_below_ratio)
    extra_generation_needed = max(0.0, energy_still_needed - generated)

    expansion_kwp: float | None = None
    expansion_modules: int | None = None
    if extra_generation_needed > 0:
        expansion_kwp = extra_generation_needed / sizing.generation_yield_kwh_per_kwp
        expansion_modules = math.ceil(expansion_kwp / sizing.module_power_kwp)

    real_consumption = max(
        0.0,
        _or_zero(record.measured_consumption_kwh) + compensated,
    )

    return ClarifierResult(
        total_paid=max(0.0, total_paid),
        minimum_possible=max(0.0, minimum_possible),
        uncompensated_cost=uncompensated_cost,
        generated=generated,
        injected=max(0.0, injected),
        compensated=max(0.0, compensated),
        credits_balance=max(0.0, credits_balance),
        expected_generation=max(0.0, expected),
        actual_generation=generated,
        generation_gap=generation_gap,
        billed_consumption=max(0.0, billed),
        energy_still_needed=energy_still_needed,
        system_status=status,
        extra_generation_needed=extra_generation_needed,
        expansion_kwp=expansion_kwp,
        expansion_modules=expansion_modules,
        real_consumption_kwh=real_consumption,
        generation_efficiency=generation_efficiency(generated, expected_generation),
        self_consumption_rate=self_consumption_rate(generated, record.injected_energy_kwh),
    )
