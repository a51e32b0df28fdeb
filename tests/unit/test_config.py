"""Test settings defaults and cross-field checks."""
import pytest
from pydantic import ValidationError
from bill_clarifier.config import Settings


class TestTimeouts:
    def test_default_sdk_timeout_outlasts_soft_timeout(self):
        settings = Settings()
        assert settings.llm_timeout > settings.extraction_timeout

    def test_equal_timeouts_rejected(self):
        with pytest.raises(ValidationError, match="llm_timeout"):
            Settings(llm_timeout=120, extraction_timeout=120.0)

    def test_shorter_sdk_timeout_rejected(self):
        with pytest.raises(ValidationError):
            Settings(llm_timeout=60, extraction_timeout=90.0)

    def test_longer_sdk_timeout_accepted(self):
        settings = Settings(llm_timeout=200, extraction_timeout=30.0)
        assert settings.extraction_timeout == 30.0


class TestExpansionSizing:
    def test_built_from_settings(self):
        sizing = Settings(
            generation_yield_kwh_per_kwp=120.0, module_power_kwp=0.55, slightly_below_ratio=0.7,
        ).expansion_sizing()
        assert sizing.generation_yield_kwh_per_kwp == 120.0
        assert sizing.module_power_kwp == 0.55
        assert sizing.slightly_below_ratio == 0.7
