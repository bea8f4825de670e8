"""
Anthropic (Claude) adapter built on the official async SDK.

Native token counting uses the Messages count_tokens endpoint.
"""

from __future__ import annotations

import logging
import time
from typing import Any, AsyncIterator, Optional

from anthropic import AsyncAnthropic

from switchboard.llm.providers.base import BaseProvider
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


class AnthropicProvider(BaseProvider):
    """Claude models via the Anthropic Messages API."""

    name = "anthropic"
    default_model = "claude-sonnet-4-20250514"
    max_output_tokens = {
        "claude-opus-4-20250514": 8192,
        "claude-sonnet-4-20250514": 8192,
        "claude-haiku-4-20250514": 8192,
        "claude-3-5-sonnet-20241022": 8192,
        "claude-3-5-haiku-20241022": 8192,
    }

    def __init__(
        self,
        client: Any = None,
        *,
        api_key: Optional[str] = None,
        default_model: Optional[str] = None,
    ):
        self._client = client or AsyncAnthropic(api_key=api_key)
        if default_model:
            self.default_model = default_model

    # --- Request building ---

    def _build_kwargs(self, request: CompletionRequest) -> dict[str, Any]:
        system_parts = [request.system] if request.system else []
        messages: list[dict[str, Any]] = []

        for message in request.messages:
            if message.role == "system":
                system_parts.append(message.text)
                continue
            messages.append(self._convert_message(message))

        kwargs: dict[str, Any] = {
            "model": self.resolve_model(request),
            "max_tokens": self.resolve_max_tokens(request),
            "messages": messages,
        }
        if system_parts:
            kwargs["system"] = "\n\n".join(system_parts)
        if request.temperature is not None:
            kwargs["temperature"] = request.temperature
        if request.stop_sequences:
            kwargs["stop_sequences"] = request.stop_sequences
        return kwargs

    @staticmethod
    def _convert_message(message: Message) -> dict[str, Any]:
        if message.role == "tool":
            return {
                "role": "user",
                "content": [{
                    "type": "tool_result",
                    "tool_use_id": message.tool_call_id,
                    "content": message.text,
                }],
            }

        if message.role == "assistant" and message.tool_calls:
            blocks: list[dict[str, Any]] = []
            if message.text:
                blocks.append({"type": "text", "text": message.text})
            for call in message.tool_calls:
                blocks.append({
                    "type": "tool_use",
                    "id": call.id,
                    "name": call.name,
                    "input": call.arguments,
                })
            return {"role": "assistant", "content": blocks}

        return {"role": message.role, "content": message.content}

    def _to_response(self, response: Any, model: str, started: float) -> LLMResponse:
        text_parts = []
        tool_calls = []
        for block in response.content or []:
            block_type = getattr(block, "type", "text")
            if block_type == "text":
                text_parts.append(block.text)
            elif block_type == "tool_use":
                tool_calls.append(ToolCall(
                    id=block.id,
                    name=block.name,
                    arguments=dict(block.input or {}),
                ))

        usage = response.usage
        return LLMResponse(
            content="".join(text_parts),
            usage=TokenUsage(
                prompt_tokens=getattr(usage, "input_tokens", 0) or 0,
                completion_tokens=getattr(usage, "output_tokens", 0) or 0,
            ),
            model=model,
            finish_reason=getattr(response, "stop_reason", "") or "",
            provider=self.name,
            tool_calls=tool_calls,
            latency_ms=(time.monotonic() - started) * 1000,
            raw_response=response,
        )

    # --- Capabilities ---

    async def complete(self, request: CompletionRequest) -> LLMResponse:
        started = time.monotonic()
        kwargs = self._build_kwargs(request)
        response = await self._client.messages.create(**kwargs)
        return self._to_response(response, kwargs["model"], started)

    async def stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        async with self._client.messages.stream(**self._build_kwargs(request)) as stream:
            async for text in stream.text_stream:
                if text:
                    yield StreamChunk(content=text)
            final_message = await stream.get_final_message()

        usage = None
        if final_message is not None and getattr(final_message, "usage", None) is not None:
            usage = TokenUsage(
                prompt_tokens=getattr(final_message.usage, "input_tokens", 0) or 0,
                completion_tokens=getattr(final_message.usage, "output_tokens", 0) or 0,
            )
        yield StreamChunk(done=True, usage=usage)

    async def complete_with_tools(self, request: ToolCompletionRequest) -> LLMResponse:
        started = time.monotonic()
        kwargs = self._build_kwargs(request)
        # "none": tools left out so the model can only answer in text
        if request.tool_choice != "none":
            kwargs["tools"] = [tool.to_anthropic() for tool in request.tools]
        if request.tool_choice in ("auto", "any"):
            kwargs["tool_choice"] = {"type": request.tool_choice}
        elif request.tool_choice and request.tool_choice != "none":
            kwargs["tool_choice"] = {"type": "tool", "name": request.tool_choice}
        response = await self._client.messages.create(**kwargs)
        return self._to_response(response, kwargs["model"], started)

    async def _count_tokens_native(self, text: str) -> int:
        result = await self._client.messages.count_tokens(
            model=self.default_model,
            messages=[{"role": "user", "content": text}],
        )
        return result.input_tokens
