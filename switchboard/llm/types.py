"""
Shared LLM types — requests, responses, stream chunks, usage and cost.

Every provider adapter consumes and produces these types, so the router
never needs to know about provider-specific SDK objects.

Usage:
    from switchboard.llm.types import CompletionRequest, Message

    request = CompletionRequest(
        messages=[Message(role="user", content="Summarize this ticket.")],
        system="You are a support engineer.",
    )
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Optional, Union

# Character-per-token ratio used whenever a real tokenizer is unavailable.
CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Approximate token count: ceil(len(text) / 4), 0 for empty text."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------

@dataclass
class ToolDefinition:
    """
    Provider-agnostic tool/function definition.

    Translates to Anthropic's tool format, OpenAI's function_calling
    format and Gemini's function declarations.
    """

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict)
    required: list[str] = field(default_factory=list)

    def _properties(self) -> dict[str, Any]:
        properties = {}
        for param_name, param_spec in self.parameters.items():
            if isinstance(param_spec, dict):
                properties[param_name] = param_spec
            else:
                properties[param_name] = {"type": "string", "description": str(param_spec)}
        return properties

    def json_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": self._properties(),
            "required": self.required,
        }

    def to_anthropic(self) -> dict[str, Any]:
        """Convert to Anthropic Claude tool format."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.json_schema(),
        }

    def to_openai(self) -> dict[str, Any]:
        """Convert to OpenAI function_calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.json_schema(),
            },
        }

    def to_google(self) -> dict[str, Any]:
        """Convert to a Gemini function declaration."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.json_schema(),
        }


@dataclass
class ToolCall:
    """Represents a tool call requested by the LLM."""

    id: str                         # Provider's tool_call id
    name: str                       # Tool function name
    arguments: dict[str, Any]       # Parsed arguments
    raw_arguments: str = ""         # Raw JSON string from provider


# ---------------------------------------------------------------------------
# Messages & Requests
# ---------------------------------------------------------------------------

MessageContent = Union[str, list[dict[str, Any]]]


@dataclass
class Message:
    """One conversation turn. Content is plain text or a list of parts."""

    role: str                       # "system", "user", "assistant", "tool"
    content: MessageContent = ""
    tool_call_id: Optional[str] = None
    tool_calls: list[ToolCall] = field(default_factory=list)

    @property
    def text(self) -> str:
        """Flatten content to text, ignoring non-text parts."""
        if isinstance(self.content, str):
            return self.content
        parts = []
        for part in self.content:
            if part.get("type") == "text":
                parts.append(str(part.get("text", "")))
        return "".join(parts)


@dataclass
class CompletionRequest:
    """A provider-agnostic completion request."""

    messages: list[Message]
    model: Optional[str] = None
    provider: Optional[str] = None      # Per-request provider override
    system: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    stop_sequences: Optional[list[str]] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def input_text(self) -> str:
        """All prompt text sent to the model, for token estimation."""
        texts = [m.text for m in self.messages]
        if self.system:
            texts.insert(0, self.system)
        return "".join(texts)


@dataclass
class ToolCompletionRequest(CompletionRequest):
    """A completion request that declares callable tools."""

    tools: list[ToolDefinition] = field(default_factory=list)
    tool_choice: Optional[str] = None   # "auto", "any", "none" or a tool name


# ---------------------------------------------------------------------------
# Usage & Cost
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TokenUsage:
    """Token counts for one completion."""

    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


@dataclass(frozen=True)
class CostBreakdown:
    input: float = 0.0
    output: float = 0.0


@dataclass(frozen=True)
class CostResult:
    """Dollar cost of one completion."""

    cost_usd: float = 0.0
    breakdown: CostBreakdown = field(default_factory=CostBreakdown)

    @classmethod
    def zero(cls) -> CostResult:
        return cls()

    def to_dict(self) -> dict[str, Any]:
        return {
            "costUSD": self.cost_usd,
            "breakdown": {"input": self.breakdown.input, "output": self.breakdown.output},
        }


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

@dataclass
class LLMResponse:
    """Unified response from any LLM provider."""

    content: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    model: str = ""
    finish_reason: str = ""
    cost: Optional[CostResult] = None   # Attached by the router
    provider: str = ""                  # Provider that served the request
    tool_calls: list[ToolCall] = field(default_factory=list)
    is_fallback: bool = False           # True if primary failed and fallback was used
    latency_ms: float = 0.0
    raw_response: Any = None            # Provider-specific response object

    @property
    def has_tool_calls(self) -> bool:
        return len(self.tool_calls) > 0


@dataclass
class StreamChunk:
    """A single chunk of streamed output. Exactly one per stream has done=True."""

    content: Optional[str] = None
    done: bool = False
    usage: Optional[TokenUsage] = None  # Only on the terminal chunk, when reported
    tool_calls: list[ToolCall] = field(default_factory=list)
