"""
Model identifiers — short aliases and provider detection.

Callers may write "sonnet" or "gpt4o" instead of full model ids; the router
resolves aliases before dispatch and, when the caller named a model
explicitly, uses the model's family to pick a registered provider.
"""

from __future__ import annotations

from typing import Optional

MODEL_ALIASES: dict[str, str] = {
    "opus": "claude-opus-4-20250514",
    "sonnet": "claude-sonnet-4-20250514",
    "haiku": "claude-haiku-4-20250514",
    "claude": "claude-sonnet-4-20250514",
    "gpt4o": "gpt-4o",
    "gpt4o-mini": "gpt-4o-mini",
    "gpt4": "gpt-4",
    "gemini": "gemini-1.5-pro",
    "gemini-flash": "gemini-1.5-flash",
    "llama": "llama3.2",
}

# Model-id prefix -> provider name. Checked in order.
_PREFIXES: tuple[tuple[str, str], ...] = (
    ("claude", "anthropic"),
    ("gpt", "openai"),
    ("o1", "openai"),
    ("o3", "openai"),
    ("gemini", "google"),
    ("llama", "ollama"),
    ("codellama", "ollama"),
    ("mistral", "ollama"),
    ("mixtral", "ollama"),
    ("phi", "ollama"),
    ("qwen", "ollama"),
)


def resolve_model_alias(model: str) -> str:
    """Expand a short alias to its full model id; other ids pass through."""
    return MODEL_ALIASES.get(model.strip().lower(), model)


def detect_provider(model: str) -> Optional[str]:
    """
    Guess the provider that serves a model id.

    "<provider>/<model>" ids belong to the aggregator (openrouter).
    Returns None when the family is not recognised.
    """
    if not model:
        return None
    if "/" in model:
        return "openrouter"
    lowered = model.lower()
    for prefix, provider in _PREFIXES:
        if lowered.startswith(prefix):
            return provider
    return None
