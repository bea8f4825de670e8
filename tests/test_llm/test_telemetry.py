"""
Tests for usage telemetry: record payload shape and failure swallowing.

The state service is simulated with httpx.MockTransport.
"""

from __future__ import annotations

import json
from datetime import datetime

import httpx
import pytest

from switchboard.llm.telemetry import UsageRecord, UsageTelemetry
from switchboard.llm.types import CostBreakdown


def _record(**overrides) -> UsageRecord:
    fields = dict(
        provider="anthropic",
        model="claude-sonnet-4-20250514",
        input_tokens=1000,
        output_tokens=500,
        cost_usd=0.0105,
        breakdown=CostBreakdown(input=0.003, output=0.0075),
    )
    fields.update(overrides)
    return UsageRecord(**fields)


def _telemetry(handler) -> UsageTelemetry:
    client = httpx.AsyncClient(
        base_url="http://state.test",
        transport=httpx.MockTransport(handler),
    )
    return UsageTelemetry("http://state.test", client=client)


class TestUsageRecord:

    def test_total_tokens_is_computed(self):
        assert _record(input_tokens=7, output_tokens=5).total_tokens == 12

    def test_payload_shape(self):
        payload = _record(timestamp="2025-01-01T00:00:00+00:00").to_payload()
        assert payload == {
            "type": "llm_usage",
            "command": "llm.completion",
            "provider": "anthropic",
            "model": "claude-sonnet-4-20250514",
            "inputTokens": 1000,
            "outputTokens": 500,
            "totalTokens": 1500,
            "costUSD": 0.0105,
            "breakdown": {"input": 0.003, "output": 0.0075},
            "timestamp": "2025-01-01T00:00:00+00:00",
        }

    def test_default_timestamp_is_iso8601(self):
        parsed = datetime.fromisoformat(_record().timestamp)
        assert parsed.tzinfo is not None


class TestUsageTelemetry:

    @pytest.mark.asyncio
    async def test_posts_to_history_endpoint(self):
        captured = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(201, json={"success": True})

        telemetry = _telemetry(handler)
        assert await telemetry.send(_record()) is True
        await telemetry.aclose()

        assert len(captured) == 1
        request = captured[0]
        assert request.method == "POST"
        assert request.url.path == "/api/state/history"
        body = json.loads(request.content)
        assert body["type"] == "llm_usage"
        assert body["totalTokens"] == 1500
        assert telemetry.sent_count == 1

    @pytest.mark.asyncio
    async def test_non_2xx_is_swallowed(self):
        telemetry = _telemetry(lambda request: httpx.Response(500, text="db down"))

        assert await telemetry.send(_record()) is False
        assert telemetry.failed_count == 1
        await telemetry.aclose()

    @pytest.mark.asyncio
    async def test_connection_error_is_swallowed(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        telemetry = _telemetry(handler)
        assert await telemetry.send(_record()) is False
        await telemetry.aclose()

    @pytest.mark.asyncio
    async def test_timeout_is_swallowed(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        telemetry = _telemetry(handler)
        assert await telemetry.send(_record()) is False
        await telemetry.aclose()

    def test_trailing_slash_trimmed(self):
        telemetry = UsageTelemetry("http://localhost:3011/")
        assert telemetry.state_service_url == "http://localhost:3011"
