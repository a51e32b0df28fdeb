"""Test lenient narrative models."""
import pytest
from bill_clarifier.models.narrative import (
    FALLBACK_SCORE_LABEL, FALLBACK_SUMMARY, NEUTRAL_SCORE,
    Alert, AlertType, BillScore, NarrativeResult, Priority, Recommendation,
)


class TestAlert:
    def test_unknown_type_becomes_info(self):
        assert Alert(type="critical", title="x").type == AlertType.INFO

    def test_type_case_insensitive(self):
        assert Alert(type="WARNING", title="x").type == AlertType.WARNING

    def test_as_text(self):
        alert = Alert(type="warning", icon="⚠️", title="Multa", description="R$ 5,00")
        assert alert.as_text() == "⚠️ Multa: R$ 5,00"


class TestRecommendation:
    @pytest.mark.parametrize("raw,expected", [
        ("alta", Priority.HIGH), ("Média", Priority.MEDIUM), ("baixa", Priority.LOW),
        ("urgent", Priority.MEDIUM),
    ])
    def test_priority_aliases(self, raw, expected):
        assert Recommendation(priority=raw, title="x").priority == expected

    def test_numeric_savings_as_text(self):
        assert Recommendation(title="x", estimated_savings=15).estimated_savings == "15.00"


class TestBillScore:
    @pytest.mark.parametrize("raw,expected", [
        (72, 72.0), ("85", 85.0), (140, 100.0), (-3, 0.0),
        (None, NEUTRAL_SCORE), ("bom", NEUTRAL_SCORE), (float("nan"), NEUTRAL_SCORE),
    ])
    def test_value_clamped(self, raw, expected):
        assert BillScore(value=raw).value == expected


class TestNarrativeResult:
    def test_fallback(self):
        result = NarrativeResult.fallback(solar_efficiency=90.0, savings_this_month=315.0)
        assert result.is_fallback
        assert result.executive_summary == FALLBACK_SUMMARY
        assert result.bill_score.value == NEUTRAL_SCORE
        assert result.bill_score.label == FALLBACK_SCORE_LABEL
        assert result.metrics.savings_this_month == 315.0
        assert result.alerts == []
