"""
Pydantic configuration schema for the Switchboard router.

A RouterConfig is built once at startup (defaults, then environment
overrides, then an explicit YAML file / dict) and is immutable afterwards.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_PROVIDERS = ("anthropic", "openai", "openrouter", "google")

DEFAULT_CHEAP_TASKS = frozenset({
    "simple_queries",
    "summarization",
    "classification",
    "explanations",
})

DEFAULT_EXPENSIVE_TASKS = frozenset({
    "code_generation",
    "complex_reasoning",
    "planning",
})


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# Sub-models
# ---------------------------------------------------------------------------

class CostOptimizationConfig(_FrozenModel):
    """Task-type based model substitution."""
    enabled: bool = False
    cheap_model_for: frozenset[str] = Field(default=DEFAULT_CHEAP_TASKS)
    expensive_model_for: frozenset[str] = Field(default=DEFAULT_EXPENSIVE_TASKS)
    cheap_model: str = "claude-haiku-4-20250514"
    expensive_model: str = "claude-opus-4-20250514"

    @model_validator(mode="after")
    def warn_on_tier_overlap(self) -> CostOptimizationConfig:
        overlap = self.cheap_model_for & self.expensive_model_for
        if overlap:
            logger.warning(
                "cost_tier_overlap",
                extra={
                    "task_types": sorted(overlap),
                    "resolution": "cheap_model_wins",
                },
            )
        return self


class FallbackConfig(_FrozenModel):
    """Ordered provider fallback chain."""
    enabled: bool = True
    providers: tuple[str, ...] = DEFAULT_FALLBACK_PROVIDERS

    @field_validator("providers")
    @classmethod
    def validate_provider_names(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        cleaned = tuple(name.strip() for name in v)
        if any(not name for name in cleaned):
            raise ValueError("fallback provider names must be non-empty")
        return cleaned


class RetryConfig(_FrozenModel):
    """Backoff for rate-limited / 5xx provider calls, per provider attempt."""
    max_retries: int = Field(3, ge=0, le=10)
    backoff_base_s: float = Field(1.0, ge=0)
    backoff_max_s: float = Field(8.0, ge=0)
    jitter_s: float = Field(0.5, ge=0)


class CircuitBreakerConfig(_FrozenModel):
    """Skip providers after repeated consecutive failures."""
    enabled: bool = True
    failure_threshold: int = Field(5, ge=1)
    cooldown_s: float = Field(60.0, gt=0)


class TokenBudgetConfig(_FrozenModel):
    """Upper bound on max_tokens for a single request."""
    max_tokens_per_request: Optional[int] = Field(None, ge=1)


class TelemetryConfig(_FrozenModel):
    """Usage reporting to the state service."""
    enabled: bool = True
    state_service_url: str = "http://localhost:3011"
    timeout_s: float = Field(5.0, gt=0)


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------

class RouterConfig(_FrozenModel):
    """Complete router configuration."""
    default_provider: str = "anthropic"
    default_model: str = "claude-sonnet-4-20250514"
    cost_optimization: CostOptimizationConfig = Field(default_factory=CostOptimizationConfig)
    fallback: FallbackConfig = Field(default_factory=FallbackConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    circuit_breaker: CircuitBreakerConfig = Field(default_factory=CircuitBreakerConfig)
    token_budget: TokenBudgetConfig = Field(default_factory=TokenBudgetConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)

    @field_validator("default_provider")
    @classmethod
    def validate_default_provider(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("default_provider must be non-empty")
        return v.strip()
