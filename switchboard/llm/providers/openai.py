"""
OpenAI (GPT) adapter built on the official async SDK.

Token counting uses tiktoken locally; an unknown model falls back to the
cl100k_base encoding, and any tokenizer failure falls back to the
character approximation in BaseProvider.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, AsyncIterator, Optional

import tiktoken
from openai import AsyncOpenAI

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


class OpenAIProvider(BaseProvider):
    """GPT models via the Chat Completions API."""

    name = "openai"
    default_model = "gpt-4o"
    max_output_tokens = {
        "gpt-4o": 16384,
        "gpt-4o-2024-11-20": 16384,
        "gpt-4o-mini": 16384,
        "gpt-4o-mini-2024-07-18": 16384,
        "gpt-4-turbo": 4096,
        "gpt-4": 8192,
        "gpt-3.5-turbo": 4096,
    }

    def __init__(
        self,
        client: Any = None,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        default_model: Optional[str] = None,
    ):
        self._client = client or AsyncOpenAI(api_key=api_key, base_url=base_url)
        if default_model:
            self.default_model = default_model

    # --- Request building ---

    def _build_kwargs(self, request: CompletionRequest) -> dict[str, Any]:
        messages: list[dict[str, Any]] = []
        if request.system:
            messages.append({"role": "system", "content": request.system})
        messages.extend(self._convert_message(m) for m in request.messages)

        kwargs: dict[str, Any] = {
            "model": self.resolve_model(request),
            "messages": messages,
            "max_tokens": self.resolve_max_tokens(request),
        }
        if request.temperature is not None:
            kwargs["temperature"] = request.temperature
        if request.stop_sequences:
            kwargs["stop"] = request.stop_sequences
        return kwargs

    @staticmethod
    def _convert_message(message: Message) -> dict[str, Any]:
        if message.role == "tool":
            return {
                "role": "tool",
                "tool_call_id": message.tool_call_id,
                "content": message.text,
            }

        if message.role == "assistant" and message.tool_calls:
            return {
                "role": "assistant",
                "content": message.text or None,
                "tool_calls": [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {
                            "name": call.name,
                            "arguments": call.raw_arguments or json.dumps(call.arguments),
                        },
                    }
                    for call in message.tool_calls
                ],
            }

        return {"role": message.role, "content": message.content}

    @staticmethod
    def _parse_tool_calls(raw_calls: Any) -> list[ToolCall]:
        calls = []
        for raw in raw_calls or []:
            raw_arguments = raw.function.arguments or ""
            try:
                arguments = json.loads(raw_arguments) if raw_arguments else {}
            except json.JSONDecodeError:
                arguments = {}
            calls.append(ToolCall(
                id=raw.id,
                name=raw.function.name,
                arguments=arguments,
                raw_arguments=raw_arguments,
            ))
        return calls

    def _to_response(self, response: Any, model: str, started: float) -> LLMResponse:
        choice = response.choices[0] if response.choices else None
        message = choice.message if choice else None

        usage = response.usage
        return LLMResponse(
            content=(message.content if message else None) or "",
            usage=TokenUsage(
                prompt_tokens=usage.prompt_tokens if usage else 0,
                completion_tokens=usage.completion_tokens if usage else 0,
            ),
            model=model,
            finish_reason=(choice.finish_reason if choice else "") or "",
            provider=self.name,
            tool_calls=self._parse_tool_calls(getattr(message, "tool_calls", None)),
            latency_ms=(time.monotonic() - started) * 1000,
            raw_response=response,
        )

    # --- Capabilities ---

    async def complete(self, request: CompletionRequest) -> LLMResponse:
        started = time.monotonic()
        kwargs = self._build_kwargs(request)
        response = await self._client.chat.completions.create(**kwargs)
        return self._to_response(response, kwargs["model"], started)

    async def stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        response_stream = await self._client.chat.completions.create(
            **self._build_kwargs(request),
            stream=True,
            stream_options={"include_usage": True},
        )

        usage = None
        async for chunk in response_stream:
            # Usage arrives on the last chunk, which has no choices
            if chunk.usage is not None:
                usage = TokenUsage(
                    prompt_tokens=chunk.usage.prompt_tokens or 0,
                    completion_tokens=chunk.usage.completion_tokens or 0,
                )
            if chunk.choices and chunk.choices[0].delta.content:
                yield StreamChunk(content=chunk.choices[0].delta.content)

        yield StreamChunk(done=True, usage=usage)

    async def complete_with_tools(self, request: ToolCompletionRequest) -> LLMResponse:
        started = time.monotonic()
        kwargs = self._build_kwargs(request)
        kwargs["tools"] = [tool.to_openai() for tool in request.tools]
        if request.tool_choice in ("auto", "none"):
            kwargs["tool_choice"] = request.tool_choice
        elif request.tool_choice == "any":
            kwargs["tool_choice"] = "required"
        elif request.tool_choice:
            kwargs["tool_choice"] = {
                "type": "function",
                "function": {"name": request.tool_choice},
            }
        response = await self._client.chat.completions.create(**kwargs)
        return self._to_response(response, kwargs["model"], started)

    async def _count_tokens_native(self, text: str) -> int:
        try:
            encoding = tiktoken.encoding_for_model(self.default_model)
        except KeyError:
            encoding = tiktoken.get_encoding("cl100k_base")
        return len(encoding.encode(text))
