"""
Tests for model alias resolution and provider detection.
"""

from __future__ import annotations

import pytest

from switchboard.llm.models import detect_provider, resolve_model_alias


class TestResolveModelAlias:

    @pytest.mark.parametrize("alias,model", [
        ("sonnet", "claude-sonnet-4-20250514"),
        ("Opus", "claude-opus-4-20250514"),
        ("haiku", "claude-haiku-4-20250514"),
        ("gpt4o", "gpt-4o"),
        ("gpt4o-mini", "gpt-4o-mini"),
        ("gemini", "gemini-1.5-pro"),
        ("llama", "llama3.2"),
    ])
    def test_aliases(self, alias, model):
        assert resolve_model_alias(alias) == model

    def test_full_ids_pass_through(self):
        assert resolve_model_alias("gpt-4-turbo") == "gpt-4-turbo"
        assert resolve_model_alias("anthropic/claude-sonnet-4-20250514") == (
            "anthropic/claude-sonnet-4-20250514"
        )


class TestDetectProvider:

    @pytest.mark.parametrize("model,provider", [
        ("claude-sonnet-4-20250514", "anthropic"),
        ("gpt-4o", "openai"),
        ("o1-preview", "openai"),
        ("gemini-1.5-flash", "google"),
        ("llama3.2:70b", "ollama"),
        ("mixtral", "ollama"),
        ("openai/gpt-4o", "openrouter"),
    ])
    def test_families(self, model, provider):
        assert detect_provider(model) == provider

    def test_unknown_family(self):
        assert detect_provider("command-r-plus") is None

    def test_empty(self):
        assert detect_provider("") is None
