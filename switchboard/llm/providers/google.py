"""
Google Gemini adapter over the Generative Language REST API (v1beta).

Uses httpx directly: `:generateContent` for completions,
`:streamGenerateContent?alt=sse` for streaming and `:countTokens` for
native token counting.
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

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

_TOOL_MODES = {"auto": "AUTO", "any": "ANY", "none": "NONE"}


class GoogleProvider(BaseProvider):
    """Gemini models via the Generative Language API."""

    name = "google"
    default_model = "gemini-1.5-pro"
    max_output_tokens = {
        "gemini-2.0-flash": 8192,
        "gemini-1.5-pro": 8192,
        "gemini-1.5-flash": 8192,
        "gemini-pro": 2048,
    }

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        default_model: Optional[str] = None,
        timeout: float = 60.0,
    ):
        headers = {"x-goog-api-key": api_key} if api_key else {}
        self._client = client or httpx.AsyncClient(
            base_url=base_url or GEMINI_BASE_URL,
            headers=headers,
            timeout=timeout,
        )
        if default_model:
            self.default_model = default_model

    # --- Request building ---

    def _build_body(self, request: CompletionRequest) -> dict[str, Any]:
        system_parts = [request.system] if request.system else []
        contents = []
        for message in request.messages:
            if message.role == "system":
                system_parts.append(message.text)
                continue
            contents.append(self._convert_message(message))

        generation_config: dict[str, Any] = {
            "maxOutputTokens": self.resolve_max_tokens(request),
        }
        if request.temperature is not None:
            generation_config["temperature"] = request.temperature
        if request.stop_sequences:
            generation_config["stopSequences"] = request.stop_sequences

        body: dict[str, Any] = {
            "contents": contents,
            "generationConfig": generation_config,
        }
        if system_parts:
            body["systemInstruction"] = {"parts": [{"text": "\n\n".join(system_parts)}]}
        return body

    @staticmethod
    def _convert_message(message: Message) -> dict[str, Any]:
        # Gemini has no call ids; tool results are matched by function name
        if message.role == "tool":
            return {
                "role": "user",
                "parts": [{
                    "functionResponse": {
                        "name": message.tool_call_id,
                        "response": {"content": message.text},
                    },
                }],
            }

        role = "model" if message.role == "assistant" else "user"
        parts: list[dict[str, Any]] = []
        if message.text:
            parts.append({"text": message.text})
        for call in message.tool_calls:
            parts.append({"functionCall": {"name": call.name, "args": call.arguments}})
        return {"role": role, "parts": parts}

    @staticmethod
    def _usage(data: dict[str, Any]) -> Optional[TokenUsage]:
        metadata = data.get("usageMetadata")
        if not metadata:
            return None
        return TokenUsage(
            prompt_tokens=metadata.get("promptTokenCount", 0),
            completion_tokens=metadata.get("candidatesTokenCount", 0),
        )

    @staticmethod
    def _candidate_parts(data: dict[str, Any]) -> tuple[list[dict[str, Any]], str]:
        candidates = data.get("candidates") or []
        if not candidates:
            return [], ""
        candidate = candidates[0]
        return candidate.get("content", {}).get("parts", []), candidate.get("finishReason", "")

    def _to_response(self, data: dict[str, Any], model: str, started: float) -> LLMResponse:
        parts, finish_reason = self._candidate_parts(data)
        text_parts = []
        tool_calls = []
        for part in parts:
            if "text" in part:
                text_parts.append(part["text"])
            elif "functionCall" in part:
                call = part["functionCall"]
                tool_calls.append(ToolCall(
                    id=call.get("name", ""),
                    name=call.get("name", ""),
                    arguments=call.get("args") or {},
                ))

        return LLMResponse(
            content="".join(text_parts),
            usage=self._usage(data) or TokenUsage(),
            model=model,
            finish_reason=finish_reason,
            provider=self.name,
            tool_calls=tool_calls,
            latency_ms=(time.monotonic() - started) * 1000,
            raw_response=data,
        )

    async def _generate(self, model: str, body: dict[str, Any]) -> dict[str, Any]:
        response = await self._client.post(f"/models/{model}:generateContent", json=body)
        await raise_for_provider_status(self.name, response)
        return response.json()

    # --- Capabilities ---

    async def complete(self, request: CompletionRequest) -> LLMResponse:
        started = time.monotonic()
        model = self.resolve_model(request)
        data = await self._generate(model, self._build_body(request))
        return self._to_response(data, model, started)

    async def stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        model = self.resolve_model(request)
        usage = None

        async with self._client.stream(
            "POST",
            f"/models/{model}:streamGenerateContent",
            params={"alt": "sse"},
            json=self._build_body(request),
        ) as response:
            await raise_for_provider_status(self.name, response)

            async for line in response.aiter_lines():
                if not line.startswith("data:"):
                    continue
                payload = line[len("data:"):].strip()
                if not payload:
                    continue
                data = json.loads(payload)

                # Every event repeats the running usage; keep the latest
                usage = self._usage(data) or usage
                parts, _ = self._candidate_parts(data)
                text = "".join(part.get("text", "") for part in parts)
                if text:
                    yield StreamChunk(content=text)

        yield StreamChunk(done=True, usage=usage)

    async def complete_with_tools(self, request: ToolCompletionRequest) -> LLMResponse:
        started = time.monotonic()
        model = self.resolve_model(request)
        body = self._build_body(request)
        body["tools"] = [{"functionDeclarations": [tool.to_google() for tool in request.tools]}]

        if request.tool_choice in _TOOL_MODES:
            body["toolConfig"] = {"functionCallingConfig": {"mode": _TOOL_MODES[request.tool_choice]}}
        elif request.tool_choice:
            body["toolConfig"] = {
                "functionCallingConfig": {
                    "mode": "ANY",
                    "allowedFunctionNames": [request.tool_choice],
                },
            }

        data = await self._generate(model, body)
        return self._to_response(data, model, started)

    async def _count_tokens_native(self, text: str) -> int:
        response = await self._client.post(
            f"/models/{self.default_model}:countTokens",
            json={"contents": [{"role": "user", "parts": [{"text": text}]}]},
        )
        await raise_for_provider_status(self.name, response)
        return response.json()["totalTokens"]

    async def list_models(self) -> list[str]:
        response = await self._client.get("/models")
        await raise_for_provider_status(self.name, response)
        return [
            model["name"].removeprefix("models/")
            for model in response.json().get("models", [])
        ]

    async def aclose(self) -> None:
        await self._client.aclose()
