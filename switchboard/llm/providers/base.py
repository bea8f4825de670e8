"""
Provider adapter contract.

Every backend (Anthropic, OpenAI, Google, Ollama, OpenRouter) implements the
same capability set so the router can dispatch, fall back and stream without
knowing anything about the backend's wire protocol.

Token counting is a two-step strategy owned by the adapter: try the
provider's native counter, and on any failure (network, auth, rate limit,
missing endpoint) return the character-based approximation. A broken
counting endpoint therefore never blocks a routing decision, and no
provider-specific error type ever reaches the router.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional, Protocol, runtime_checkable

import httpx

from switchboard.exceptions import ProviderError
from switchboard.llm.types import (
    CompletionRequest,
    LLMResponse,
    StreamChunk,
    ToolCompletionRequest,
    estimate_tokens,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class LLMProvider(Protocol):
    """Capability set the router requires from a provider adapter."""

    name: str

    async def complete(self, request: CompletionRequest) -> LLMResponse: ...

    def stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]: ...

    async def complete_with_tools(self, request: ToolCompletionRequest) -> LLMResponse: ...

    async def count_tokens(self, text: str) -> int: ...

    def get_max_tokens(self, model: Optional[str] = None) -> int: ...

    async def list_models(self) -> list[str]: ...


class BaseProvider(ABC):
    """
    Shared behaviour for concrete adapters.

    Subclasses implement complete/stream/complete_with_tools and may
    override `_count_tokens_native` when the backend offers a counter.
    """

    name: str = ""
    default_model: str = ""
    max_output_tokens: dict[str, int] = {}
    default_max_tokens: int = 4096

    @abstractmethod
    async def complete(self, request: CompletionRequest) -> LLMResponse:
        """Run a non-streaming completion."""

    @abstractmethod
    def stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        """Stream a completion; the last chunk has done=True."""

    @abstractmethod
    async def complete_with_tools(self, request: ToolCompletionRequest) -> LLMResponse:
        """Run a completion with tool declarations."""

    async def count_tokens(self, text: str) -> int:
        """Count tokens natively, falling back to ceil(len/4) on any failure."""
        if not text:
            return 0
        try:
            count = await self._count_tokens_native(text)
        except Exception as e:
            logger.debug(
                "token_count_approximated",
                extra={"provider": self.name, "error": str(e)[:200]},
            )
            return estimate_tokens(text)
        return max(int(count), 0)

    async def _count_tokens_native(self, text: str) -> int:
        raise NotImplementedError(f"{self.name} has no native token counter")

    def get_max_tokens(self, model: Optional[str] = None) -> int:
        """Maximum output tokens for a model (or the adapter default)."""
        return self.max_output_tokens.get(model or self.default_model, self.default_max_tokens)

    async def list_models(self) -> list[str]:
        return list(self.max_output_tokens)

    def resolve_model(self, request: CompletionRequest) -> str:
        return request.model or self.default_model

    def resolve_max_tokens(self, request: CompletionRequest) -> int:
        if request.max_tokens is not None:
            return request.max_tokens
        return self.get_max_tokens(request.model)

    async def aclose(self) -> None:
        """Close the underlying SDK client, if it holds one."""
        client = getattr(self, "_client", None)
        if client is not None and hasattr(client, "close"):
            await client.close()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}', default_model='{self.default_model}')"


async def raise_for_provider_status(provider: str, response: httpx.Response) -> None:
    """Raise ProviderError for a non-2xx response, keeping a body excerpt."""
    if response.is_success:
        return
    body = (await response.aread()).decode("utf-8", errors="replace")
    raise ProviderError(
        f"{provider} returned HTTP {response.status_code}: {body[:200]}",
        provider=provider,
        status_code=response.status_code,
    )
