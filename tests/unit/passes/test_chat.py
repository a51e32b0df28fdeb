"""Test the follow-up chat over a stored analysis."""
import pytest
from bill_clarifier.errors import AnalysisInputError
from bill_clarifier.llm.base import ChatMessage
from bill_clarifier.models.metrics import ExpansionSizing
from bill_clarifier.passes.chat import MAX_HISTORY_MESSAGES, answer_question, build_chat_context
from tests.factories import make_record


@pytest.fixture
def analysis_row():
    return {
        "analysis_id": "a1",
        "reference_month": 3,
        "reference_year": 2024,
        "distributor": "CEMIG",
        "account_holder": "MARIA DA SILVA",
        "total_amount": 98.5,
        "minimum_possible": 57.5,
        "uncompensated_cost": 41.0,
        "availability_cost": 45.2,
        "public_lighting_cost": 12.3,
        "tariff_flag": "green",
        "monitored_generation_kwh": 60.0,
        "expected_generation_kwh": None,
        "system_status": "below_needed",
    }


class TestBuildChatContext:
    def test_row_values(self, analysis_row, prompt_registry):
        prompt = build_chat_context(analysis_row, None, prompt_registry)
        assert "03/2024" in prompt
        assert "R$ 98.50" in prompt
        assert "R$ 57.50" in prompt
        assert "Número UC: N/D" in prompt
        assert "{" + "distributor}" not in prompt

    def test_recomputes_from_raw_extraction(self, analysis_row, prompt_registry):
        analysis_row["minimum_possible"] = 999.0
        raw = make_record().model_dump(mode="json")
        prompt = build_chat_context(analysis_row, raw, prompt_registry)
        assert "R$ 57.50" in prompt
        assert "R$ 999.00" not in prompt
        assert "DADOS COMPLETOS EXTRAÍDOS" in prompt


    def test_uses_configured_sizing(self, analysis_row, prompt_registry):
        raw = make_record().model_dump(mode="json")
        assert "below_needed" in build_chat_context(analysis_row, raw, prompt_registry)

        lenient = ExpansionSizing(slightly_below_ratio=0.7)
        prompt = build_chat_context(analysis_row, raw, prompt_registry, lenient)
        assert "slightly_below" in prompt
        assert "below_needed" not in prompt

class TestAnswerQuestion:
    @pytest.mark.asyncio
    async def test_sends_history_and_question(self, analysis_row, mock_llm_client, prompt_registry):
        history = [ChatMessage(role="user", content="oi"), ChatMessage(role="assistant", content="olá")]
        answer = await answer_question(
            "O que é CIP?", history, analysis_row, None, mock_llm_client, prompt_registry,
        )
        assert answer == "Resposta de teste."
        messages = mock_llm_client.complete_chat.call_args.args[1]
        assert [m.role for m in messages] == ["user", "assistant", "user"]
        assert messages[-1].content == "O que é CIP?"

    @pytest.mark.asyncio
    async def test_history_truncated(self, analysis_row, mock_llm_client, prompt_registry):
        history = [ChatMessage(role="user", content=str(i)) for i in range(50)]
        await answer_question("e agora?", history, analysis_row, None, mock_llm_client, prompt_registry)
        messages = mock_llm_client.complete_chat.call_args.args[1]
        assert len(messages) == MAX_HISTORY_MESSAGES + 1

    @pytest.mark.asyncio
    async def test_blank_question(self, analysis_row, mock_llm_client, prompt_registry):
        with pytest.raises(AnalysisInputError):
            await answer_question("  ", [], analysis_row, None, mock_llm_client, prompt_registry)
        mock_llm_client.complete_chat.assert_not_called()
