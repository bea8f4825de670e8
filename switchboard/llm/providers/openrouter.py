"""
OpenRouter adapter — the OpenAI-compatible aggregator.

Model ids are "<provider>/<model>" (e.g. "anthropic/claude-sonnet-4-20250514").
OpenRouter has no token counting endpoint, so counting always uses the
character approximation.
"""

from __future__ import annotations

from typing import Any, Optional

from switchboard.llm.providers.openai import OpenAIProvider

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class OpenRouterProvider(OpenAIProvider):
    """Any upstream model, reached through OpenRouter's Chat Completions API."""

    name = "openrouter"
    default_model = "anthropic/claude-sonnet-4-20250514"
    max_output_tokens = {
        "anthropic/claude-sonnet-4-20250514": 8192,
        "anthropic/claude-opus-4-20250514": 8192,
        "openai/gpt-4o": 16384,
        "openai/gpt-4o-mini": 16384,
        "google/gemini-1.5-pro": 8192,
    }

    def __init__(
        self,
        client: Any = None,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        default_model: Optional[str] = None,
    ):
        super().__init__(
            client,
            api_key=api_key,
            base_url=base_url or OPENROUTER_BASE_URL,
            default_model=default_model,
        )

    async def _count_tokens_native(self, text: str) -> int:
        raise NotImplementedError("openrouter has no token counting endpoint")
