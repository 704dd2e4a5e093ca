"""Tests for el_ledger.domain.pricing."""

from decimal import Decimal

import pytest

from src.el_common.enums import AIModel
from src.el_common.errors import ConfigurationError
from src.el_ledger.domain.pricing import (
    PRICING_TABLE,
    calculate_cost,
    get_pricing,
    is_supported_model,
    validate_pricing_table,
)


class TestCalculateCost:
    def test_mini_1000_prompt_500_completion(self) -> None:
        assert calculate_cost("gpt_4o_mini", 1000, 500) == Decimal("0.00045")

    def test_gpt_4o(self) -> None:
        # 2.5 * 1000/1e6 + 10 * 500/1e6
        assert calculate_cost("gpt_4o", 1000, 500) == Decimal("0.0075")

    def test_zero_tokens_cost_nothing(self) -> None:
        assert calculate_cost("gpt_4o", 0, 0) == Decimal("0")

    def test_unknown_model_is_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError):
            calculate_cost("gpt_5_turbo", 10, 10)

    def test_negative_tokens_rejected(self) -> None:
        with pytest.raises(ValueError):
            calculate_cost("gpt_4o", -1, 0)


class TestTable:
    def test_every_model_priced(self) -> None:
        for model in AIModel:
            assert is_supported_model(model.value)
            assert get_pricing(model.value).provider_model

    def test_provider_names(self) -> None:
        assert get_pricing("gpt_4o").provider_model == "gpt-4o"
        assert get_pricing("gpt_4o_mini").provider_model == "gpt-4o-mini"

    def test_validate_accepts_known_default(self) -> None:
        validate_pricing_table("gpt_4o_mini")

    def test_validate_rejects_unknown_default(self) -> None:
        with pytest.raises(ConfigurationError):
            validate_pricing_table("claude")

    def test_validate_rejects_missing_model(self, monkeypatch: pytest.MonkeyPatch) -> None:
        table = dict(PRICING_TABLE)
        del table["gpt_4o"]
        monkeypatch.setattr("src.el_ledger.domain.pricing.PRICING_TABLE", table)
        with pytest.raises(ConfigurationError, match="gpt_4o"):
            validate_pricing_table("gpt_4o_mini")
