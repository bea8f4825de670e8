"""
Provider adapters — one per LLM backend, all implementing LLMProvider.
"""

from switchboard.llm.providers.anthropic import AnthropicProvider
from switchboard.llm.providers.base import BaseProvider, LLMProvider
from switchboard.llm.providers.google import GoogleProvider
from switchboard.llm.providers.ollama import OllamaProvider
from switchboard.llm.providers.openai import OpenAIProvider
from switchboard.llm.providers.openrouter import OpenRouterProvider

__all__ = [
    "AnthropicProvider",
    "BaseProvider",
    "GoogleProvider",
    "LLMProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "OpenRouterProvider",
]
