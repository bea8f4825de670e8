"""
Tests for building a router from environment credentials.
"""

from __future__ import annotations

import pytest

from switchboard.config.schema import RouterConfig
from switchboard.llm.factory import create_router, providers_from_env
from switchboard.llm.providers import (
    AnthropicProvider,
    GoogleProvider,
    OllamaProvider,
    OpenAIProvider,
    OpenRouterProvider,
)

OFFLINE = RouterConfig(telemetry={"enabled": False})


class TestProvidersFromEnv:

    def test_empty_environment(self):
        assert providers_from_env({}) == []

    def test_every_backend(self):
        providers = providers_from_env({
            "ANTHROPIC_API_KEY": "sk-ant-test",
            "OPENAI_API_KEY": "sk-test",
            "GOOGLE_API_KEY": "google-test",
            "OPENROUTER_API_KEY": "sk-or-test",
            "OLLAMA_BASE_URL": "http://ollama.local:11434",
        })

        assert [type(p) for p in providers] == [
            AnthropicProvider,
            OpenAIProvider,
            GoogleProvider,
            OpenRouterProvider,
            OllamaProvider,
        ]
        assert [p.name for p in providers] == [
            "anthropic", "openai", "google", "openrouter", "ollama",
        ]

    def test_blank_keys_ignored(self):
        assert providers_from_env({"OPENAI_API_KEY": ""}) == []


class TestCreateRouter:

    @pytest.mark.asyncio
    async def test_registers_configured_providers(self):
        router = create_router(OFFLINE, environ={"ANTHROPIC_API_KEY": "sk-ant-test"})
        assert router.get_available_providers() == ["anthropic"]
        await router.aclose()

    def test_no_providers_warns(self, caplog):
        with caplog.at_level("WARNING", logger="switchboard.llm.factory"):
            router = create_router(OFFLINE, environ={})

        assert router.get_available_providers() == []
        assert any(r.getMessage() == "llm_no_providers_configured" for r in caplog.records)

    def test_config_loaded_from_environ(self):
        router = create_router(environ={
            "DEFAULT_PROVIDER": "openai",
            "LLM_TELEMETRY_ENABLED": "false",
        })
        assert router.config.default_provider == "openai"
        assert router.config.telemetry.enabled is False
