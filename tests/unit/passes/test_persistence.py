"""Test the mapping from pipeline results to the persisted row."""
import pytest
from bill_clarifier.models.bill import RawBillRecord, TariffFlag
from bill_clarifier.models.internal import ValidationIssue
from bill_clarifier.passes.derived_metrics import derive_metrics
from bill_clarifier.passes.narrative import parse_narrative
from bill_clarifier.passes.persistence import (
    STATUS_COMPLETED, STATUS_ERROR,
    build_alerts, build_completion_update, build_failure_update, build_quick_alerts,
    estimated_savings, tariff_flag_cost,
)
from bill_clarifier.storage.models import BillAnalysis
from tests.factories import make_narrative_dict, make_record


class TestQuickAlerts:
    def test_low_efficiency(self):
        record = make_record()
        metrics = derive_metrics(record, 60, 100)
        alerts = build_quick_alerts(record, metrics, 100)
        assert alerts == ["Geração abaixo do esperado: 60.0%"]

    def test_no_efficiency_alert_without_baseline(self):
        record = make_record()
        metrics = derive_metrics(record, 60)
        assert build_quick_alerts(record, metrics, None) == []

    def test_fine_and_red_flag(self):
        record = make_record(fines_amount=12.5, tariff_flag=TariffFlag.RED_2,
                             tariff_flag_text="Vermelha P2")
        alerts = build_quick_alerts(record, derive_metrics(record, 60), None)
        assert "Multa detectada: R$ 12.50" in alerts
        assert "Bandeira Vermelha P2 - custo extra aplicado" in alerts

    def test_validation_warnings_only(self):
        record = make_record()
        issues = [
            ValidationIssue(field="icms_rate", severity="warning", message="fora da faixa"),
            ValidationIssue(field="billing_days", severity="info", message="ignorado"),
        ]
        alerts = build_quick_alerts(record, derive_metrics(record, 60), None, issues)
        assert alerts == ["Verificar icms_rate: fora da faixa"]


class TestBuildAlerts:
    def test_narrative_alerts_preferred(self):
        record = make_record(fines_amount=5)
        narrative = parse_narrative(make_narrative_dict())
        alerts = build_alerts(record, derive_metrics(record, 60), None, narrative)
        assert alerts == ["⚠️ Geração baixa: Gere mais 20 kWh."]

    def test_narrative_without_alerts_uses_rules(self):
        record = make_record(fines_amount=5)
        narrative = parse_narrative(make_narrative_dict(alerts=[]))
        alerts = build_alerts(record, derive_metrics(record, 60), None, narrative)
        assert alerts == ["Multa detectada: R$ 5.00"]


class TestCompletionUpdate:
    def test_quick_mode(self):
        record = make_record(tariff_flag_value_kwh=0.04)
        metrics = derive_metrics(record, 60, 80)
        update = build_completion_update(record, metrics, 60, 80, ["a"])

        assert update["status"] == STATUS_COMPLETED
        assert update["error_message"] is None
        assert update["minimum_possible"] == pytest.approx(57.50)
        assert update["pis_cofins_cost"] == pytest.approx(4.50)
        assert update["tariff_flag"] == "green"
        assert update["tariff_flag_cost"] == pytest.approx(20.0)
        assert update["estimated_savings"] == pytest.approx(315.0)
        assert update["system_status"] == "below_needed"
        assert "ai_analysis" not in update

    def test_full_mode(self):
        record = make_record()
        narrative = parse_narrative(make_narrative_dict(metrics={"savings_this_month": 280}))
        update = build_completion_update(record, derive_metrics(record, 60), 60, None, [], narrative)
        assert update["ai_analysis"].startswith("Sua conta")
        assert update["bill_score"] == 72
        assert update["ai_recommendations"][0]["priority"] == "high"
        assert update["estimated_savings"] == 280

    def test_unreadable_bill_keeps_absent_values_null(self):
        record = RawBillRecord.unreadable()
        update = build_completion_update(record, derive_metrics(record, 300.0), 300.0, None, [])
        assert update["billed_consumption_kwh"] is None
        assert update["pis_cofins_cost"] is None
        assert update["total_amount"] is None

    def test_billed_consumption_falls_back_to_measured(self):
        record = make_record(billed_consumption_kwh=None, measured_consumption_kwh=480.0)
        update = build_completion_update(record, derive_metrics(record, 60), 60, None, [])
        assert update["billed_consumption_kwh"] == 480.0

    def test_keys_are_columns(self):
        record = make_record()
        narrative = parse_narrative(make_narrative_dict())
        update = build_completion_update(record, derive_metrics(record, 60), 60, 80, [], narrative)
        columns = set(BillAnalysis.__table__.columns.keys())
        assert set(update) <= columns


class TestHelpers:
    def test_failure_update(self):
        assert build_failure_update("falhou") == {"status": STATUS_ERROR, "error_message": "falhou"}

    def test_tariff_flag_cost_absent(self):
        assert tariff_flag_cost(make_record()) is None

    def test_estimated_savings_fallback(self):
        record = make_record()
        assert estimated_savings(derive_metrics(record, 60), None, 0.5) == pytest.approx(210.0)
