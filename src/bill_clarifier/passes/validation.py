"""Record validation -- pure code consistency checks on an extracted bill.

Issues are advisory: they become alerts and flags, never stage failures.
"""
from __future__ import annotations
import structlog
from ..international.date_parsing import try_parse_bill_date, validate_billing_period
from ..models.bill import RawBillRecord
from ..models.internal import ValidationIssue

logger = structlog.get_logger(__name__)

KWH_TOLERANCE = 1.0
MONEY_TOLERANCE = 0.05
TAX_RATE_RANGES = {
    "icms_rate": (0.0, 40.0),
    "pis_rate": (0.0, 3.0),
    "cofins_rate": (0.0, 12.0),
}


def validate_meter_readings(record: RawBillRecord) -> list[ValidationIssue]:
    """Current minus previous reading should match measured consumption."""
    issues: list[ValidationIssue] = []
    prev, curr = record.meter_reading_previous, record.meter_reading_current
    if prev is None or curr is None:
        return issues

    if curr < prev:
        issues.append(ValidationIssue(
            field="meter_reading_current",
            severity="info",
            message=f"Current reading {curr} is below previous {prev} (meter rollover or replacement?)",
            expected=f">= {prev}",
            actual=str(curr),
        ))
        return issues

    measured = record.measured_consumption_kwh
    if measured is None:
        return issues
    delta = curr - prev
    if abs(delta - measured) <= KWH_TOLERANCE or _is_meter_multiple(measured, delta):
        return issues
    issues.append(ValidationIssue(
        field="measured_consumption_kwh",
        severity="warning",
        message=f"Read difference {delta:.0f} kWh does not match measured consumption {measured:.0f} kWh",
        expected=str(round(delta, 2)),
        actual=str(measured),
    ))
    return issues


def _is_meter_multiple(measured: float, delta: float) -> bool:
    """Meters with a multiplying constant bill ``delta * k`` for integer k > 1."""
    if delta <= 0 or measured <= delta:
        return False
    ratio = measured / delta
    return abs(ratio - round(ratio)) <= 0.01


def validate_billing_dates(record: RawBillRecord) -> list[ValidationIssue]:
    """Reading dates should form a sane period matching the stated day count."""
    issues: list[ValidationIssue] = []
    start = try_parse_bill_date(record.reading_date_previous)
    end = try_parse_bill_date(record.reading_date_current)
    if start is None or end is None:
        return issues

    valid, message = validate_billing_period(start, end)
    if message:
        issues.append(ValidationIssue(
            field="reading_date_current",
            severity="info" if valid else "warning",
            message=message,
        ))

    days = (end - start).days
    if valid and record.billing_days is not None and abs(days - record.billing_days) > 1:
        issues.append(ValidationIssue(
            field="billing_days",
            severity="info",
            message=f"Stated {record.billing_days} billing days but readings span {days} days",
            expected=str(days),
            actual=str(record.billing_days),
        ))
    return issues


def validate_credit_balance(record: RawBillRecord) -> list[ValidationIssue]:
    """previous + injected - compensated should land near the current balance.

    Credits may also expire or be transferred to other units, so a mismatch
    is informational.
    """
    prev = record.previous_credits_kwh
    curr = record.current_credits_kwh
    injected = record.injected_energy_kwh
    compensated = record.compensated_energy_kwh
    if None in (prev, curr, injected, compensated):
        return []

    expected = prev + injected - compensated
    if abs(expected - curr) <= KWH_TOLERANCE:
        return []
    return [ValidationIssue(
        field="current_credits_kwh",
        severity="info",
        message=f"Credit balance {curr:.0f} kWh differs from previous + injected - compensated ({expected:.0f} kWh)",
        expected=str(round(expected, 2)),
        actual=str(curr),
    )]


def validate_tax_rates(record: RawBillRecord) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for field, (low, high) in TAX_RATE_RANGES.items():
        rate = getattr(record, field)
        if rate is not None and not low <= rate <= high:
            issues.append(ValidationIssue(
                field=field,
                severity="warning",
                message=f"{field.split('_')[0].upper()} rate {rate}% outside expected range {low}-{high}%",
                expected=f"{low}-{high}",
                actual=str(rate),
            ))
    return issues


def validate_totals(record: RawBillRecord) -> list[ValidationIssue]:
    """Total due should not be below the minimum possible charge."""
    total = record.total_amount
    availability = record.availability_cost
    lighting = record.public_lighting_cost
    if total is None or (availability is None and lighting is None):
        return []
    minimum = (availability or 0.0) + (lighting or 0.0)
    if total + MONEY_TOLERANCE >= minimum:
        return []
    return [ValidationIssue(
        field="total_amount",
        severity="info",
        message=f"Total R$ {total:.2f} is below the minimum charge R$ {minimum:.2f}",
        expected=f">= {minimum:.2f}",
        actual=f"{total:.2f}",
    )]


def run_validation(record: RawBillRecord) -> list[ValidationIssue]:
    """Run every consistency check and return the combined issue list."""
    issues: list[ValidationIssue] = []
    issues.extend(validate_meter_readings(record))
    issues.extend(validate_billing_dates(record))
    issues.extend(validate_credit_balance(record))
    issues.extend(validate_tax_rates(record))
    issues.extend(validate_totals(record))

    logger.info(
        "validation_complete",
        issue_count=len(issues),
        warnings=sum(1 for i in issues if i.severity == "warning"),
    )
    return issues
