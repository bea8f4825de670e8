"""
Router factory — wires up adapters for every backend configured in the
environment.

    ANTHROPIC_API_KEY   -> AnthropicProvider
    OPENAI_API_KEY      -> OpenAIProvider
    GOOGLE_API_KEY      -> GoogleProvider
    OPENROUTER_API_KEY  -> OpenRouterProvider
    OLLAMA_BASE_URL     -> OllamaProvider
"""

from __future__ import annotations

import logging
import os
from typing import Mapping, Optional

from switchboard.config.loader import load_router_config
from switchboard.config.schema import RouterConfig
from switchboard.llm.providers import (
    AnthropicProvider,
    GoogleProvider,
    OllamaProvider,
    OpenAIProvider,
    OpenRouterProvider,
)
from switchboard.llm.providers.base import BaseProvider
from switchboard.llm.router import LLMRouter
from switchboard.llm.telemetry import UsageTelemetry

logger = logging.getLogger(__name__)


def providers_from_env(environ: Optional[Mapping[str, str]] = None) -> list[BaseProvider]:
    """Instantiate one adapter per backend with credentials in the environment."""
    env = os.environ if environ is None else environ
    providers: list[BaseProvider] = []

    if env.get("ANTHROPIC_API_KEY"):
        providers.append(AnthropicProvider(api_key=env["ANTHROPIC_API_KEY"]))
    if env.get("OPENAI_API_KEY"):
        providers.append(OpenAIProvider(api_key=env["OPENAI_API_KEY"]))
    if env.get("GOOGLE_API_KEY"):
        providers.append(GoogleProvider(api_key=env["GOOGLE_API_KEY"]))
    if env.get("OPENROUTER_API_KEY"):
        providers.append(OpenRouterProvider(api_key=env["OPENROUTER_API_KEY"]))
    if env.get("OLLAMA_BASE_URL"):
        providers.append(OllamaProvider(base_url=env["OLLAMA_BASE_URL"]))

    return providers


def create_router(
    config: Optional[RouterConfig] = None,
    *,
    telemetry: Optional[UsageTelemetry] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> LLMRouter:
    """
    Build a router with every backend configured in the environment.

    A router with no providers is still returned; its first request raises
    NoProviderAvailableError.
    """
    config = config or load_router_config(environ=environ)
    router = LLMRouter(config=config, telemetry=telemetry)

    for provider in providers_from_env(environ):
        router.register_provider(provider)

    if not router.get_available_providers():
        logger.warning(
            "llm_no_providers_configured",
            extra={"hint": "set ANTHROPIC_API_KEY, OPENAI_API_KEY, GOOGLE_API_KEY, "
                           "OPENROUTER_API_KEY or OLLAMA_BASE_URL"},
        )
    return router
