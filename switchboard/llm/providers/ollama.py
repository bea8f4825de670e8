"""
Ollama adapter — local models over the Ollama REST API.

Calls `/api/chat` through httpx. Local inference is free, and Ollama has
no tokenizer endpoint, so `count_tokens` always uses the approximation.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, AsyncIterator, Optional

import httpx

from switchboard.llm.providers.base import BaseProvider, raise_for_provider_status
from switchboard.llm.types import (
    CompletionRequest,
    LLMResponse,
    Message,
    StreamChunk,
    TokenUsage,
    ToolCall,
    ToolCompletionRequest,
)

logger = logging.getLogger(__name__)

DEFAULT_OLLAMA_URL = "http://localhost:11434"


class OllamaProvider(BaseProvider):
    """Self-hosted models served by a local Ollama runtime."""

    name = "ollama"
    default_model = "llama3.2"
    default_max_tokens = 2048

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        default_model: Optional[str] = None,
        timeout: float = 120.0,
    ):
        self.base_url = (base_url or DEFAULT_OLLAMA_URL).rstrip("/")
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)
        if default_model:
            self.default_model = default_model

    def _build_payload(self, request: CompletionRequest, *, stream: bool) -> dict[str, Any]:
        messages: list[dict[str, Any]] = []
        if request.system:
            messages.append({"role": "system", "content": request.system})
        messages.extend(self._convert_message(m) for m in request.messages)

        options: dict[str, Any] = {"num_predict": self.resolve_max_tokens(request)}
        if request.temperature is not None:
            options["temperature"] = request.temperature
        if request.stop_sequences:
            options["stop"] = request.stop_sequences

        return {
            "model": self.resolve_model(request),
            "messages": messages,
            "stream": stream,
            "options": options,
        }

    @staticmethod
    def _convert_message(message: Message) -> dict[str, Any]:
        converted: dict[str, Any] = {"role": message.role, "content": message.text}
        if message.tool_calls:
            converted["tool_calls"] = [
                {"function": {"name": call.name, "arguments": call.arguments}}
                for call in message.tool_calls
            ]
        return converted

    def _to_response(self, data: dict[str, Any], model: str, started: float) -> LLMResponse:
        message = data.get("message", {})
        tool_calls = [
            ToolCall(
                id=f"call_{i}",
                name=raw.get("function", {}).get("name", ""),
                arguments=raw.get("function", {}).get("arguments") or {},
            )
            for i, raw in enumerate(message.get("tool_calls") or [])
        ]
        return LLMResponse(
            content=message.get("content", ""),
            usage=TokenUsage(
                prompt_tokens=data.get("prompt_eval_count", 0),
                completion_tokens=data.get("eval_count", 0),
            ),
            model=model,
            finish_reason=data.get("done_reason", "stop"),
            provider=self.name,
            tool_calls=tool_calls,
            latency_ms=(time.monotonic() - started) * 1000,
            raw_response=data,
        )

    async def _post_chat(self, payload: dict[str, Any]) -> dict[str, Any]:
        response = await self._client.post("/api/chat", json=payload)
        await raise_for_provider_status(self.name, response)
        return response.json()

    async def complete(self, request: CompletionRequest) -> LLMResponse:
        started = time.monotonic()
        payload = self._build_payload(request, stream=False)
        data = await self._post_chat(payload)
        return self._to_response(data, payload["model"], started)

    async def stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        payload = self._build_payload(request, stream=True)
        usage = None

        async with self._client.stream("POST", "/api/chat", json=payload) as response:
            await raise_for_provider_status(self.name, response)

            async for line in response.aiter_lines():
                if not line.strip():
                    continue
                data = json.loads(line)

                if data.get("done", False):
                    # Final message carries the eval counts
                    if "prompt_eval_count" in data or "eval_count" in data:
                        usage = TokenUsage(
                            prompt_tokens=data.get("prompt_eval_count", 0),
                            completion_tokens=data.get("eval_count", 0),
                        )
                    break

                text = data.get("message", {}).get("content", "")
                if text:
                    yield StreamChunk(content=text)

        yield StreamChunk(done=True, usage=usage)

    async def complete_with_tools(self, request: ToolCompletionRequest) -> LLMResponse:
        started = time.monotonic()
        payload = self._build_payload(request, stream=False)
        if request.tool_choice != "none":
            payload["tools"] = [tool.to_openai() for tool in request.tools]
        data = await self._post_chat(payload)
        return self._to_response(data, payload["model"], started)

    async def list_models(self) -> list[str]:
        response = await self._client.get("/api/tags")
        await raise_for_provider_status(self.name, response)
        return [model["name"] for model in response.json().get("models", [])]

    async def aclose(self) -> None:
        await self._client.aclose()
