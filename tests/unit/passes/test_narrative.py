"""Test the specialist narrative stage."""
import pytest
from bill_clarifier.errors import LLMTransportError
from bill_clarifier.models.narrative import FALLBACK_SUMMARY, Priority
from bill_clarifier.passes.derived_metrics import derive_metrics
from bill_clarifier.passes.narrative import build_narrative_prompt, parse_narrative, run_narrative
from tests.factories import make_llm_response, make_narrative_dict, make_record


@pytest.fixture
def record():
    return make_record()


@pytest.fixture
def metrics(record):
    return derive_metrics(record, monitored_generation=60, expected_generation=80)


class TestBuildPrompt:
    def test_placeholders_filled(self, record, metrics, prompt_registry):
        prompt = build_narrative_prompt(record, metrics, 60, 80, prompt_registry)
        assert "{bill_json}" not in prompt
        assert "{generation_efficiency}" not in prompt
        assert "CEMIG" in prompt
        assert "75.0" in prompt
        assert metrics.system_status.value in prompt


class TestParseNarrative:
    def test_full_document(self):
        result = parse_narrative(make_narrative_dict())
        assert result.executive_summary.startswith("Sua conta")
        assert result.alerts[0].title == "Geração baixa"
        assert result.recommendations[0].priority == Priority.HIGH
        assert result.recommendations[0].estimated_savings == "15.00"
        assert result.metrics.cost_per_kwh_real == pytest.approx(0.20)
        assert result.bill_score.value == 72
        assert not result.is_fallback

    def test_malformed_entries_dropped(self):
        result = parse_narrative(make_narrative_dict(
            alerts=[{"title": "ok"}, {"description": "sem título"}, "texto"],
            recommendations="não é lista",
        ))
        assert [a.title for a in result.alerts] == ["ok"]
        assert result.recommendations == []

    def test_missing_sections_default(self):
        result = parse_narrative({})
        assert result.executive_summary == ""
        assert result.explanations == {}
        assert result.bill_score.value == 50.0


class TestRunNarrative:
    @pytest.mark.asyncio
    async def test_json_mode_text_call(self, record, metrics, mock_llm_client, prompt_registry):
        mock_llm_client.complete_text.return_value = make_llm_response(make_narrative_dict())
        result = await run_narrative(record, metrics, 60, 80, mock_llm_client, prompt_registry)

        assert result.bill_score.label == "Bom"
        kwargs = mock_llm_client.complete_text.call_args.kwargs
        assert kwargs["json_mode"] is True
        assert kwargs["temperature"] == 0.7

    @pytest.mark.asyncio
    async def test_unparseable_output_falls_back(self, record, metrics, mock_llm_client, prompt_registry):
        mock_llm_client.complete_text.return_value = make_llm_response("Não sei responder.")
        result = await run_narrative(record, metrics, 60, 80, mock_llm_client, prompt_registry)

        assert result.is_fallback
        assert result.executive_summary == FALLBACK_SUMMARY
        assert result.metrics.savings_this_month == pytest.approx(420 * 0.75)
        assert result.metrics.solar_efficiency == pytest.approx(metrics.generation_efficiency)

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self, record, metrics, mock_llm_client, prompt_registry):
        mock_llm_client.complete_text.side_effect = LLMTransportError("rate", status_code=429)
        with pytest.raises(LLMTransportError):
            await run_narrative(record, metrics, 60, 80, mock_llm_client, prompt_registry)
