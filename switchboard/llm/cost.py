"""
Cost Calculator — per-call dollar cost from token counts.

Looks up a static rate table keyed by provider, then model (exact match),
with rates expressed in USD per 1K tokens:

    input  = input_tokens  / 1000 * rate.cost_per_1k_input
    output = output_tokens / 1000 * rate.cost_per_1k_output
    cost   = input + output

Aggregator identifiers ("anthropic/claude-sonnet-4-20250514" under
OpenRouter) are split and priced under the real provider. Local providers
are always free. Unknown providers and models cost nothing; the calculator
never raises, since cost accounting must not break the completion path.

Usage:
    from switchboard.llm.cost import calculate_cost

    cost = calculate_cost("anthropic", "claude-sonnet-4-20250514", 1000, 500)
    print(f"${cost.cost_usd:.4f}")  # $0.0105
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from switchboard.llm.types import CostBreakdown, CostResult

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Rate Table
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModelRate:
    """USD per 1K tokens for one model."""

    cost_per_1k_input: float
    cost_per_1k_output: float


@dataclass(frozen=True)
class ProviderPricing:
    """All priced models of one provider."""

    models: Mapping[str, ModelRate] = field(default_factory=dict)
    local: bool = False         # Self-hosted: every call is free
    aggregator: bool = False    # Model ids are "<provider>/<model>"


_ANTHROPIC = {
    "claude-opus-4-20250514": ModelRate(0.015, 0.075),
    "claude-sonnet-4-20250514": ModelRate(0.003, 0.015),
    "claude-haiku-4-20250514": ModelRate(0.0008, 0.004),
    "claude-3-5-sonnet-20241022": ModelRate(0.003, 0.015),
    "claude-3-5-haiku-20241022": ModelRate(0.0008, 0.004),
    "claude-3.5-sonnet": ModelRate(0.003, 0.015),
    "claude-3-opus-20240229": ModelRate(0.015, 0.075),
    "claude-3-opus": ModelRate(0.015, 0.075),
    "claude-3-haiku-20240307": ModelRate(0.00025, 0.00125),
    "claude-3-haiku": ModelRate(0.00025, 0.00125),
}

_OPENAI = {
    "gpt-4o": ModelRate(0.005, 0.015),
    "gpt-4o-2024-11-20": ModelRate(0.0025, 0.01),
    "gpt-4o-mini": ModelRate(0.00015, 0.0006),
    "gpt-4o-mini-2024-07-18": ModelRate(0.00015, 0.0006),
    "gpt-4-turbo": ModelRate(0.01, 0.03),
    "gpt-4-turbo-2024-04-09": ModelRate(0.01, 0.03),
    "gpt-4": ModelRate(0.03, 0.06),
    "gpt-3.5-turbo": ModelRate(0.0005, 0.0015),
}

_GOOGLE = {
    "gemini-2.0-flash": ModelRate(0.0001, 0.0004),
    "gemini-1.5-pro": ModelRate(0.00125, 0.005),
    "gemini-1.5-flash": ModelRate(0.000075, 0.0003),
    "gemini-pro": ModelRate(0.00025, 0.0005),
}

_OLLAMA = {
    name: ModelRate(0.0, 0.0)
    for name in ("llama3.2", "llama3.2:70b", "codellama", "mistral", "mixtral", "phi")
}

PRICING: Mapping[str, ProviderPricing] = MappingProxyType({
    "anthropic": ProviderPricing(models=MappingProxyType(_ANTHROPIC)),
    "openai": ProviderPricing(models=MappingProxyType(_OPENAI)),
    "google": ProviderPricing(models=MappingProxyType(_GOOGLE)),
    "ollama": ProviderPricing(models=MappingProxyType(_OLLAMA), local=True),
    "openrouter": ProviderPricing(aggregator=True),
})


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------

def _split_aggregated(model: str) -> tuple[str, str] | None:
    """Split "<provider>/<model>" into its parts."""
    real_provider, sep, real_model = model.partition("/")
    if not sep or not real_provider or not real_model:
        return None
    return real_provider, real_model


def get_model_rate(provider: str, model: str) -> ModelRate | None:
    """Resolve the rate for a provider/model pair, or None when unpriced."""
    pricing = PRICING.get(provider)
    if pricing is None:
        return None

    if pricing.local:
        return ModelRate(0.0, 0.0)

    if pricing.aggregator:
        parts = _split_aggregated(model)
        if parts is None:
            return None
        real_provider, real_model = parts
        upstream = PRICING.get(real_provider)
        if upstream is None or upstream.aggregator:
            return None
        if upstream.local:
            return ModelRate(0.0, 0.0)
        return upstream.models.get(real_model)

    return pricing.models.get(model)


def calculate_cost(
    provider: str,
    model: str,
    input_tokens: int,
    output_tokens: int,
) -> CostResult:
    """
    Calculate the dollar cost of one completion.

    Args:
        provider: Provider name the call was served by (e.g. "anthropic")
        model: Model identifier the call was made with
        input_tokens: Prompt tokens
        output_tokens: Completion tokens

    Returns:
        CostResult with total and input/output breakdown. Zero for unknown
        providers/models and for local providers.
    """
    rate = get_model_rate(provider, model or "")
    if rate is None:
        logger.debug(
            "cost_rate_unknown",
            extra={"provider": provider, "model": model},
        )
        return CostResult.zero()

    input_cost = max(input_tokens, 0) / 1000 * rate.cost_per_1k_input
    output_cost = max(output_tokens, 0) / 1000 * rate.cost_per_1k_output

    return CostResult(
        cost_usd=input_cost + output_cost,
        breakdown=CostBreakdown(input=input_cost, output=output_cost),
    )


def get_pricing_data() -> Mapping[str, Mapping[str, Any]]:
    """
    Return a read-only, provider-grouped snapshot of the rate table.

    Aggregator entries are expanded to "<provider>/<model>" keys so every
    model reachable through the aggregator is listed.

    Shape:
        {"anthropic": {"local": False, "models": {"claude-...": {"input": .., "output": ..}}}, ...}
    """
    snapshot: dict[str, Mapping[str, Any]] = {}

    for provider, pricing in PRICING.items():
        if pricing.aggregator:
            models = {
                f"{upstream}/{model}": rate
                for upstream, upstream_pricing in PRICING.items()
                if not upstream_pricing.aggregator and not upstream_pricing.local
                for model, rate in upstream_pricing.models.items()
            }
        else:
            models = dict(pricing.models)

        snapshot[provider] = MappingProxyType({
            "local": pricing.local,
            "models": MappingProxyType({
                model: MappingProxyType({
                    "input": rate.cost_per_1k_input,
                    "output": rate.cost_per_1k_output,
                })
                for model, rate in models.items()
            }),
        })

    return MappingProxyType(snapshot)
