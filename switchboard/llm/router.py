"""
LLM Router — provider resolution, cost-based model selection and fallback.

Routes completion requests to one of the registered provider adapters:
- Per-request provider override, else the provider implied by an explicit
  model id, else the configured default provider
- Cheap/expensive model substitution by task type when cost optimization
  is on and the caller did not pick a model
- Ordered fallback across providers, with bounded retry for rate limits
  and a per-provider circuit breaker that skips repeatedly failing ones
- Chunk-by-chunk stream proxying with usage accounting once drained

Every successful call gets a CostResult attached and a usage record
reported to the state service in the background. Telemetry can never
delay or fail the caller's request.

Usage:
    from switchboard.llm.router import LLMRouter
    from switchboard.llm.providers import AnthropicProvider, OpenAIProvider

    router = LLMRouter()
    router.register_provider(AnthropicProvider())
    router.register_provider(OpenAIProvider())

    response = await router.route(
        CompletionRequest(messages=[Message(role="user", content="Summarize...")]),
        task_type="summarization",
    )
    print(response.content)
    print(f"{response.provider}/{response.model} (${response.cost.cost_usd:.4f})")

    async for chunk in router.route_stream(request):
        print(chunk.content or "", end="")
"""

from __future__ import annotations

import asyncio
import dataclasses
import functools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from switchboard.config.loader import load_router_config
from switchboard.config.schema import RouterConfig
from switchboard.exceptions import NoProviderAvailableError
from switchboard.llm.circuit_breaker import ProviderCircuitBreaker
from switchboard.llm.cost import calculate_cost
from switchboard.llm.models import detect_provider, resolve_model_alias
from switchboard.llm.providers.base import BaseProvider, LLMProvider
from switchboard.llm.retry import call_with_retry
from switchboard.llm.telemetry import UsageRecord, UsageTelemetry
from switchboard.llm.types import (
    CompletionRequest,
    CostResult,
    LLMResponse,
    StreamChunk,
    TokenUsage,
    ToolCompletionRequest,
    estimate_tokens,
)

logger = logging.getLogger(__name__)


@dataclass
class ProviderInfo:
    """Registry entry as reported by `get_providers`."""

    name: str
    available: bool
    models: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------

class LLMRouter:
    """
    Dispatches completion requests across registered LLM providers.

    The provider registry belongs to this instance. Register adapters once
    at startup; the registry is only read while requests are in flight.
    """

    def __init__(
        self,
        config: Optional[RouterConfig] = None,
        telemetry: Optional[UsageTelemetry] = None,
    ):
        self._config = config or load_router_config()
        self._providers: dict[str, LLMProvider] = {}

        breaker = self._config.circuit_breaker
        self._circuit_breaker: Optional[ProviderCircuitBreaker] = (
            ProviderCircuitBreaker(breaker.failure_threshold, breaker.cooldown_s)
            if breaker.enabled else None
        )

        if telemetry is None and self._config.telemetry.enabled:
            telemetry = UsageTelemetry(
                self._config.telemetry.state_service_url,
                timeout_s=self._config.telemetry.timeout_s,
            )
        self._telemetry = telemetry
        self._pending_telemetry: set[asyncio.Task] = set()

        # Usage tracking
        self._call_count: int = 0
        self._stream_count: int = 0
        self._fallback_count: int = 0
        self._total_cost: float = 0.0
        self._total_input_tokens: int = 0
        self._total_output_tokens: int = 0
        self._cost_by_provider: dict[str, float] = {}

    @property
    def config(self) -> RouterConfig:
        return self._config

    # --- Registry ---

    def register_provider(self, provider: LLMProvider) -> None:
        """Register an adapter under its name, replacing any previous one."""
        replaced = provider.name in self._providers
        self._providers[provider.name] = provider
        logger.info(
            "llm_provider_registered",
            extra={"provider": provider.name, "replaced": replaced},
        )

    def get_available_providers(self) -> list[str]:
        return list(self._providers)

    async def get_available_models(self) -> dict[str, list[str]]:
        """Models per provider. Providers whose listing fails are omitted."""
        names = list(self._providers)
        results = await asyncio.gather(
            *(self._providers[name].list_models() for name in names),
            return_exceptions=True,
        )

        models: dict[str, list[str]] = {}
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                logger.warning(
                    "llm_list_models_failed",
                    extra={"provider": name, "error": str(result)[:200]},
                )
                continue
            models[name] = list(result)
        return models

    async def get_providers(self) -> list[ProviderInfo]:
        """Every registered provider with its availability and models."""
        models = await self.get_available_models()
        return [
            ProviderInfo(name=name, available=name in models, models=models.get(name, []))
            for name in self._providers
        ]

    async def count_tokens(self, text: str, provider: Optional[str] = None) -> int:
        """Count tokens with the named (or default) provider's counter."""
        adapter = self._providers.get(provider or self._config.default_provider)
        if adapter is None:
            return estimate_tokens(text)
        return await adapter.count_tokens(text)

    # --- Resolution ---

    def _resolve_provider_name(self, request: CompletionRequest) -> str:
        if request.provider:
            return request.provider

        if request.model:
            detected = detect_provider(resolve_model_alias(request.model))
            if detected and detected in self._providers:
                return detected

        return self._config.default_provider

    def _candidate_order(self, primary: str) -> list[str]:
        """
        Providers to attempt, in order: the resolved provider, then the
        fallback chain. Unregistered names and open circuits are skipped.
        """
        candidates = [primary] if primary in self._providers else []
        if self._config.fallback.enabled:
            for name in self._config.fallback.providers:
                if name not in candidates and name in self._providers:
                    candidates.append(name)

        order = []
        for name in candidates:
            if self._circuit_breaker is None or self._circuit_breaker.is_available(name):
                order.append(name)
            else:
                logger.info("llm_circuit_open_skipped", extra={"provider": name})

        if not order:
            message = f"No LLM provider available for '{primary}'"
            if candidates:
                message += " (all circuits open)"
            raise NoProviderAvailableError(
                message,
                requested_provider=primary,
                registered=list(self._providers),
                details={"open_circuits": self.get_open_circuits()},
            )
        return order

    def _select_model(self, task_type: Optional[str]) -> Optional[str]:
        """Cheap/expensive model for a task type, or None to keep the default."""
        cost = self._config.cost_optimization
        if not cost.enabled or not task_type:
            return None
        if task_type in cost.cheap_model_for:
            return cost.cheap_model
        if task_type in cost.expensive_model_for:
            return cost.expensive_model
        return None

    def _prepare(
        self,
        request: CompletionRequest,
        task_type: Optional[str] = None,
        *,
        inject_model: bool = True,
    ) -> CompletionRequest:
        """Return the request to dispatch. The caller's object is never mutated."""
        changes: dict[str, Any] = {}

        if request.model:
            resolved = resolve_model_alias(request.model)
            if resolved != request.model:
                changes["model"] = resolved
        elif inject_model:
            selected = self._select_model(task_type)
            if selected:
                changes["model"] = selected
                logger.debug(
                    "llm_model_selected",
                    extra={"task_type": task_type, "model": selected},
                )

        budget = self._config.token_budget.max_tokens_per_request
        if budget is not None and (request.max_tokens is None or request.max_tokens > budget):
            changes["max_tokens"] = budget

        if not changes:
            return request
        return dataclasses.replace(request, **changes)

    # --- Dispatch ---

    async def _execute_with_fallback(
        self,
        primary: str,
        order: list[str],
        call: Callable[[LLMProvider], Awaitable[LLMResponse]],
        operation: str,
    ) -> tuple[LLMResponse, str, bool]:
        """
        Attempt each provider in turn until one succeeds.

        Returns (response, serving provider name, is_fallback), where
        is_fallback means a provider other than `primary` served the call.
        The error of the last attempted provider propagates unchanged.
        """
        retry = self._config.retry
        first_error: Optional[Exception] = None

        for index, name in enumerate(order):
            provider = self._providers[name]
            try:
                response = await call_with_retry(
                    functools.partial(call, provider),
                    max_retries=retry.max_retries,
                    backoff_base_s=retry.backoff_base_s,
                    backoff_max_s=retry.backoff_max_s,
                    jitter_s=retry.jitter_s,
                    provider=name,
                )
            except Exception as e:
                self._record_outcome(name, failed=True)
                first_error = first_error or e
                remaining = order[index + 1:]
                logger.warning(
                    "llm_provider_failed",
                    extra={
                        "operation": operation,
                        "provider": name,
                        "error_type": type(e).__name__,
                        "error": str(e)[:200],
                        "next_provider": remaining[0] if remaining else None,
                    },
                )
                if not remaining:
                    raise
                continue

            self._record_outcome(name, failed=False)
            is_fallback = name != primary
            if is_fallback:
                self._fallback_count += 1
                logger.info(
                    "llm_fallback_used",
                    extra={
                        "operation": operation,
                        "provider": name,
                        "primary_provider": primary,
                        "primary_error": str(first_error)[:100] if first_error else None,
                    },
                )
            return response, name, is_fallback

        # _candidate_order never returns an empty list
        raise NoProviderAvailableError(registered=list(self._providers))

    def _finalize(
        self,
        response: LLMResponse,
        provider_name: str,
        is_fallback: bool,
        request: CompletionRequest,
        operation: str,
    ) -> LLMResponse:
        """Attach cost and routing metadata, track usage, report telemetry."""
        model = response.model or request.model or self._default_model_for(provider_name)
        cost = calculate_cost(
            provider_name,
            model,
            response.usage.prompt_tokens,
            response.usage.completion_tokens,
        )

        response.cost = cost
        response.provider = provider_name
        response.is_fallback = is_fallback
        if not response.model:
            response.model = model

        self._track_usage(provider_name, response.usage, cost)
        self._call_count += 1

        logger.info(
            "llm_routed",
            extra={
                "operation": operation,
                "provider": provider_name,
                "model": model,
                "tokens": response.usage.total_tokens,
                "cost": f"${cost.cost_usd:.4f}",
                "latency_ms": round(response.latency_ms, 1),
                "is_fallback": is_fallback,
            },
        )

        self.persist_usage(response.usage, model, provider_name, cost)
        return response

    def _record_outcome(self, provider_name: str, *, failed: bool) -> None:
        if self._circuit_breaker is None:
            return
        if failed:
            self._circuit_breaker.record_failure(provider_name)
        else:
            self._circuit_breaker.record_success(provider_name)

    def get_open_circuits(self) -> list[str]:
        """Providers currently skipped after repeated failures."""
        if self._circuit_breaker is None:
            return []
        return self._circuit_breaker.get_open_circuits()

    def _default_model_for(self, provider_name: str) -> str:
        provider = self._providers.get(provider_name)
        return getattr(provider, "default_model", "") or self._config.default_model

    # --- Main Routing API ---

    async def route(
        self,
        request: CompletionRequest,
        task_type: Optional[str] = None,
    ) -> LLMResponse:
        """
        Route a completion request.

        Args:
            request: The completion request. Not modified.
            task_type: Task category (e.g. "summarization", "code_generation")
                used for cost-based model selection when no model is set.

        Returns:
            LLMResponse with `cost`, `provider` and `is_fallback` populated.

        Raises:
            NoProviderAvailableError: If no registered provider can serve it.
            Exception: The last provider's error, unchanged, if all fail.
        """
        prepared = self._prepare(request, task_type)
        primary = self._resolve_provider_name(request)
        order = self._candidate_order(primary)

        response, name, is_fallback = await self._execute_with_fallback(
            primary, order, lambda provider: provider.complete(prepared), "complete",
        )
        return self._finalize(response, name, is_fallback, prepared, "complete")

    async def route_with_tools(self, request: ToolCompletionRequest) -> LLMResponse:
        """Route a tool-calling request. No task-type model substitution."""
        prepared = self._prepare(request, inject_model=False)
        primary = self._resolve_provider_name(request)
        order = self._candidate_order(primary)

        response, name, is_fallback = await self._execute_with_fallback(
            primary, order, lambda provider: provider.complete_with_tools(prepared), "complete_with_tools",
        )
        return self._finalize(response, name, is_fallback, prepared, "complete_with_tools")

    async def route_stream(
        self,
        request: CompletionRequest,
        task_type: Optional[str] = None,
    ) -> AsyncIterator[StreamChunk]:
        """
        Stream a completion, re-yielding the provider's chunks unchanged.

        The first provider in the attempt order serves the stream; there is
        no mid-stream fallback. Cost and usage are recorded only once the
        stream has been fully consumed and the done chunk was seen. Stopping
        early is allowed and skips usage reporting, as does a provider stream
        that ends without a done chunk.

        Raises:
            NoProviderAvailableError: On the first iteration step, before
                any chunk, if no registered provider can serve it.
        """
        prepared = self._prepare(request, task_type)
        name = self._candidate_order(self._resolve_provider_name(request))[0]
        provider = self._providers[name]

        started = time.monotonic()
        input_estimate = estimate_tokens(prepared.input_text())
        output_parts: list[str] = []
        reported_usage: Optional[TokenUsage] = None
        chunk_count = 0
        terminal_seen = False

        stream = provider.stream(prepared)
        try:
            async for chunk in stream:
                chunk_count += 1
                if chunk.content:
                    output_parts.append(chunk.content)
                if chunk.done:
                    terminal_seen = True
                    if chunk.usage is not None:
                        reported_usage = chunk.usage
                yield chunk
        except GeneratorExit:
            # Consumer stopped early: not an error, nothing is recorded
            logger.info(
                "stream_abandoned",
                extra={"provider": name, "chunks": chunk_count},
            )
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()
            raise
        except Exception:
            self._record_outcome(name, failed=True)
            raise

        if not terminal_seen:
            # Provider stream ended without a done chunk: nothing is recorded
            self._record_outcome(name, failed=True)
            logger.warning(
                "stream_incomplete",
                extra={"provider": name, "chunks": chunk_count},
            )
            return

        self._record_outcome(name, failed=False)

        usage = reported_usage or TokenUsage(
            prompt_tokens=input_estimate,
            completion_tokens=estimate_tokens("".join(output_parts)),
        )
        model = prepared.model or self._default_model_for(name)
        cost = calculate_cost(name, model, usage.prompt_tokens, usage.completion_tokens)

        self._track_usage(name, usage, cost)
        self._stream_count += 1

        logger.info(
            "stream_completed",
            extra={
                "provider": name,
                "model": model,
                "chunks": chunk_count,
                "tokens": usage.total_tokens,
                "usage_estimated": reported_usage is None,
                "cost": f"${cost.cost_usd:.4f}",
                "latency_ms": round((time.monotonic() - started) * 1000, 1),
            },
        )

        self.persist_usage(usage, model, name, cost)

    # --- Telemetry ---

    def persist_usage(
        self,
        usage: TokenUsage,
        model: str,
        provider: str,
        cost: CostResult,
    ) -> None:
        """
        Report a usage record in the background.

        Schedules the send as a task and returns immediately; the task is
        never awaited by the request path and its failures are swallowed.
        """
        if self._telemetry is None:
            return

        record = UsageRecord(
            provider=provider,
            model=model,
            input_tokens=usage.prompt_tokens,
            output_tokens=usage.completion_tokens,
            cost_usd=cost.cost_usd,
            breakdown=cost.breakdown,
        )

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(
                "usage_persist_skipped",
                extra={"provider": provider, "model": model, "reason": "no_event_loop"},
            )
            return

        task = loop.create_task(self._send_usage(record))
        self._pending_telemetry.add(task)
        task.add_done_callback(self._pending_telemetry.discard)

    async def _send_usage(self, record: UsageRecord) -> None:
        try:
            await self._telemetry.send(record)
        except Exception as e:
            logger.warning(
                "usage_persist_failed",
                extra={
                    "provider": record.provider,
                    "model": record.model,
                    "error": str(e)[:200],
                },
            )

    async def flush(self) -> None:
        """Wait for all outstanding telemetry sends to finish."""
        if self._pending_telemetry:
            await asyncio.gather(*list(self._pending_telemetry), return_exceptions=True)

    async def aclose(self) -> None:
        """Flush telemetry and close owned HTTP clients."""
        await self.flush()
        if self._telemetry is not None:
            await self._telemetry.aclose()
        for provider in self._providers.values():
            if isinstance(provider, BaseProvider):
                await provider.aclose()

    # --- Usage Tracking ---

    def _track_usage(self, provider: str, usage: TokenUsage, cost: CostResult) -> None:
        """Track cumulative usage stats."""
        self._total_cost += cost.cost_usd
        self._total_input_tokens += usage.prompt_tokens
        self._total_output_tokens += usage.completion_tokens
        self._cost_by_provider[provider] = self._cost_by_provider.get(provider, 0.0) + cost.cost_usd

    def get_usage_stats(self) -> dict[str, Any]:
        """Return cumulative usage statistics."""
        return {
            "total_calls": self._call_count,
            "total_streams": self._stream_count,
            "fallback_calls": self._fallback_count,
            "total_cost_usd": round(self._total_cost, 4),
            "total_input_tokens": self._total_input_tokens,
            "total_output_tokens": self._total_output_tokens,
            "total_tokens": self._total_input_tokens + self._total_output_tokens,
            "cost_by_provider": {
                name: round(cost, 4) for name, cost in self._cost_by_provider.items()
            },
        }

    def reset_usage(self) -> None:
        """Reset usage counters (e.g., start of a billing period)."""
        self._call_count = 0
        self._stream_count = 0
        self._fallback_count = 0
        self._total_cost = 0.0
        self._total_input_tokens = 0
        self._total_output_tokens = 0
        self._cost_by_provider = {}
