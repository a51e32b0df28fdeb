"""Test record consistency checks."""
from bill_clarifier.passes.validation import (
    run_validation, validate_billing_dates, validate_credit_balance,
    validate_meter_readings, validate_tax_rates, validate_totals,
)
from tests.factories import make_record


class TestMeterReadings:
    def test_matching_delta(self):
        assert validate_meter_readings(make_record()) == []

    def test_mismatch(self):
        issues = validate_meter_readings(make_record(measured_consumption_kwh=300))
        assert len(issues) == 1
        assert issues[0].severity == "warning"
        assert issues[0].field == "measured_consumption_kwh"

    def test_meter_constant_multiple(self):
        record = make_record(meter_reading_previous=1000, meter_reading_current=1250,
                             measured_consumption_kwh=500)
        assert validate_meter_readings(record) == []

    def test_rollover_is_informational(self):
        record = make_record(meter_reading_previous=99950, meter_reading_current=450)
        issues = validate_meter_readings(record)
        assert issues[0].severity == "info"

    def test_missing_readings(self):
        assert validate_meter_readings(make_record(meter_reading_previous=None)) == []


class TestBillingDates:
    def test_consistent(self):
        assert validate_billing_dates(make_record()) == []

    def test_day_count_mismatch(self):
        issues = validate_billing_dates(make_record(billing_days=40))
        assert [i.field for i in issues] == ["billing_days"]

    def test_negative_period(self):
        record = make_record(reading_date_previous="02/03/2024", reading_date_current="01/02/2024")
        issues = validate_billing_dates(record)
        assert issues[0].severity == "warning"

    def test_unparseable_dates_skipped(self):
        assert validate_billing_dates(make_record(reading_date_current="??")) == []


class TestCreditBalance:
    def test_balanced(self):
        assert validate_credit_balance(make_record()) == []

    def test_unbalanced(self):
        issues = validate_credit_balance(make_record(current_credits_kwh=10))
        assert len(issues) == 1
        assert issues[0].severity == "info"


class TestTaxRates:
    def test_in_range(self):
        assert validate_tax_rates(make_record(icms_rate=18, pis_rate=1.65, cofins_rate=7.6)) == []

    def test_out_of_range(self):
        issues = validate_tax_rates(make_record(icms_rate=180))
        assert issues[0].field == "icms_rate"


class TestTotals:
    def test_total_below_minimum(self):
        issues = validate_totals(make_record(total_amount=20.0))
        assert issues[0].field == "total_amount"

    def test_total_above_minimum(self):
        assert validate_totals(make_record()) == []


class TestRunValidation:
    def test_clean_record(self):
        assert run_validation(make_record()) == []

    def test_combines_checks(self):
        record = make_record(measured_consumption_kwh=300, icms_rate=99)
        fields = {i.field for i in run_validation(record)}
        assert {"measured_consumption_kwh", "icms_rate"} <= fields
