"""
Tests for the cost calculator and pricing snapshot.
"""

from __future__ import annotations

import pytest

from switchboard.llm.cost import PRICING, calculate_cost, get_model_rate, get_pricing_data
from switchboard.llm.types import CostResult


class TestCalculateCost:
    """Per-call cost from token counts."""

    def test_sonnet_breakdown(self):
        cost = calculate_cost("anthropic", "claude-sonnet-4-20250514", 1000, 500)
        assert cost.breakdown.input == pytest.approx(0.003)
        assert cost.breakdown.output == pytest.approx(0.0075)
        assert cost.cost_usd == pytest.approx(0.0105)

    @pytest.mark.parametrize("provider,model,input_rate,output_rate", [
        ("anthropic", "claude-opus-4-20250514", 0.015, 0.075),
        ("anthropic", "claude-3-haiku", 0.00025, 0.00125),
        ("openai", "gpt-4", 0.03, 0.06),
        ("openai", "gpt-4o-mini", 0.00015, 0.0006),
        ("openai", "gpt-3.5-turbo", 0.0005, 0.0015),
        ("google", "gemini-1.5-pro", 0.00125, 0.005),
        ("google", "gemini-1.5-flash", 0.000075, 0.0003),
    ])
    def test_reference_rates(self, provider, model, input_rate, output_rate):
        cost = calculate_cost(provider, model, 1000, 1000)
        assert cost.breakdown.input == pytest.approx(input_rate)
        assert cost.breakdown.output == pytest.approx(output_rate)

    def test_zero_tokens_cost_nothing(self):
        cost = calculate_cost("openai", "gpt-4o", 0, 0)
        assert cost.cost_usd == 0.0
        assert cost.breakdown.input == 0.0
        assert cost.breakdown.output == 0.0

    def test_total_is_sum_of_breakdown(self):
        cost = calculate_cost("openai", "gpt-4-turbo", 1234, 5678)
        assert cost.cost_usd == pytest.approx(cost.breakdown.input + cost.breakdown.output)

    def test_unknown_provider_is_free(self):
        assert calculate_cost("mystery", "gpt-4o", 1000, 1000) == CostResult.zero()

    def test_unknown_model_is_free(self):
        assert calculate_cost("anthropic", "claude-99", 1000, 1000).cost_usd == 0.0

    def test_model_match_is_exact(self):
        assert calculate_cost("openai", "GPT-4O", 1000, 1000).cost_usd == 0.0

    def test_local_provider_is_always_free(self):
        assert calculate_cost("ollama", "llama3.2", 10_000_000, 10_000_000).cost_usd == 0.0
        assert calculate_cost("ollama", "some-custom-finetune", 500, 500).cost_usd == 0.0

    def test_negative_tokens_treated_as_zero(self):
        cost = calculate_cost("openai", "gpt-4", -100, 1000)
        assert cost.breakdown.input == 0.0
        assert cost.breakdown.output == pytest.approx(0.06)

    def test_large_token_counts(self):
        cost = calculate_cost("openai", "gpt-4", 5_000_000, 2_000_000)
        assert cost.breakdown.input == pytest.approx(150.0)
        assert cost.breakdown.output == pytest.approx(120.0)

    def test_aggregator_prices_under_real_provider(self):
        direct = calculate_cost("anthropic", "claude-sonnet-4-20250514", 2000, 700)
        routed = calculate_cost("openrouter", "anthropic/claude-sonnet-4-20250514", 2000, 700)
        assert routed == direct

    def test_aggregator_without_prefix_is_free(self):
        assert calculate_cost("openrouter", "claude-sonnet-4-20250514", 1000, 1000).cost_usd == 0.0

    def test_aggregator_unknown_upstream_is_free(self):
        assert calculate_cost("openrouter", "mistralai/mistral-large", 1000, 1000).cost_usd == 0.0

    def test_to_dict_uses_wire_keys(self):
        data = calculate_cost("openai", "gpt-4", 1000, 0).to_dict()
        assert data["costUSD"] == pytest.approx(0.03)
        assert data["breakdown"] == {"input": pytest.approx(0.03), "output": 0.0}


class TestGetModelRate:

    def test_known_model(self):
        rate = get_model_rate("google", "gemini-pro")
        assert rate.cost_per_1k_input == 0.00025
        assert rate.cost_per_1k_output == 0.0005

    def test_unknown_returns_none(self):
        assert get_model_rate("anthropic", "nope") is None
        assert get_model_rate("nope", "gpt-4") is None


class TestPricingData:
    """Read-only, provider-grouped snapshot."""

    def test_covers_every_provider(self):
        data = get_pricing_data()
        assert set(data) == {"anthropic", "openai", "google", "ollama", "openrouter"}

    def test_models_and_rates(self):
        data = get_pricing_data()
        sonnet = data["anthropic"]["models"]["claude-sonnet-4-20250514"]
        assert sonnet["input"] == 0.003
        assert sonnet["output"] == 0.015

    def test_local_flag(self):
        data = get_pricing_data()
        assert data["ollama"]["local"] is True
        assert data["openai"]["local"] is False

    def test_aggregator_expanded_with_prefixed_ids(self):
        models = get_pricing_data()["openrouter"]["models"]
        assert "anthropic/claude-sonnet-4-20250514" in models
        assert "openai/gpt-4o" in models
        assert not any(name.startswith("ollama/") for name in models)

    def test_snapshot_is_read_only(self):
        data = get_pricing_data()
        with pytest.raises(TypeError):
            data["anthropic"] = {}
        with pytest.raises(TypeError):
            data["openai"]["models"]["gpt-4"]["input"] = 0.0

    def test_rate_table_is_read_only(self):
        with pytest.raises(TypeError):
            PRICING["openai"].models["gpt-4"] = None
