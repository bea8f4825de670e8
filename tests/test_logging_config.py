"""
Tests for logging setup: event field extraction, both formatters,
request-id propagation and what the router's events look like on the wire.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from io import StringIO
from unittest.mock import AsyncMock, MagicMock

import pytest

from switchboard.config.schema import RouterConfig
from switchboard.llm.router import LLMRouter
from switchboard.llm.types import CompletionRequest, LLMResponse, Message, TokenUsage
from switchboard.observability.logging_config import (
    ContextFilter,
    DevFormatter,
    JSONFormatter,
    configure_logging,
    event_fields,
    get_request_id,
    reset_request_id,
    set_request_id,
)


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def _record(event="llm_routed", level=logging.INFO, **fields) -> logging.LogRecord:
    record = logging.LogRecord("switchboard.llm.router", level, "router.py", 1, event, (), None)
    for key, value in fields.items():
        setattr(record, key, value)
    return record


def _json_lines(stream: StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line]


# ─── event_fields ────────────────────────────────────────────────────


class TestEventFields:

    def test_only_extra_fields(self):
        assert event_fields(_record()) == {}
        assert event_fields(_record(provider="openai")) == {"provider": "openai"}

    def test_routing_fields_come_first(self):
        record = _record(attempt=2, cost="$0.0105", provider="anthropic", chunks=3)
        assert list(event_fields(record)) == ["provider", "cost", "attempt", "chunks"]

    def test_request_id_not_repeated(self):
        assert event_fields(_record(request_id="req-1", model="gpt-4o")) == {"model": "gpt-4o"}


# ─── Formatters ──────────────────────────────────────────────────────


class TestJSONFormatter:

    def test_event_line(self):
        entry = json.loads(JSONFormatter().format(_record(
            "llm_fallback_used",
            level=logging.INFO,
            provider="openai",
            primary_provider="anthropic",
            request_id="req-9",
        )))

        assert entry["event"] == "llm_fallback_used"
        assert entry["level"] == "INFO"
        assert entry["logger"] == "switchboard.llm.router"
        assert entry["request_id"] == "req-9"
        assert entry["provider"] == "openai"
        assert entry["primary_provider"] == "anthropic"
        assert entry["timestamp"].endswith("+00:00")

    def test_unserializable_field_stringified(self):
        entry = json.loads(JSONFormatter().format(_record(client=object())))
        assert entry["client"].startswith("<object object")

    def test_exception_included(self):
        try:
            raise RuntimeError("provider exploded")
        except RuntimeError:
            record = _record("llm_provider_failed", level=logging.ERROR)
            record.exc_info = sys.exc_info()

        entry = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: provider exploded" in entry["exception"]


class TestDevFormatter:

    def test_line_layout(self):
        line = DevFormatter().format(_record(
            "llm_provider_failed",
            level=logging.WARNING,
            error="timeout",
            provider="openai",
            request_id="req-42",
        ))

        assert "llm_provider_failed" in line
        assert "\033[33mWARNING" in line
        assert "provider=openai error=timeout" in line
        assert line.endswith("(req-42)")

    def test_no_fields(self):
        line = DevFormatter().format(_record("stream_completed"))
        assert line.endswith("stream_completed")


# ─── Request id ──────────────────────────────────────────────────────


class TestRequestId:

    def test_filter_stamps_bound_id(self):
        token = set_request_id("req-123")
        try:
            record = _record()
            assert ContextFilter().filter(record) is True
            assert record.request_id == "req-123"
        finally:
            reset_request_id(token)
        assert get_request_id() is None

    def test_filter_without_id(self):
        record = _record()
        ContextFilter().filter(record)
        assert not hasattr(record, "request_id")

    @pytest.mark.asyncio
    async def test_isolated_between_tasks(self):
        seen = {}

        async def handle(request_id: str):
            set_request_id(request_id)
            await asyncio.sleep(0)
            seen[request_id] = get_request_id()

        await asyncio.gather(handle("a"), handle("b"))

        assert seen == {"a": "a", "b": "b"}
        assert get_request_id() is None


# ─── configure_logging ───────────────────────────────────────────────


class TestConfigureLogging:

    @pytest.fixture(autouse=True)
    def _clean_env(self, monkeypatch):
        monkeypatch.delenv("SWITCHBOARD_ENV", raising=False)
        monkeypatch.delenv("SWITCHBOARD_LOG_LEVEL", raising=False)

    def test_production_is_json(self, monkeypatch):
        monkeypatch.setenv("SWITCHBOARD_ENV", "Production")
        handler = configure_logging()
        assert isinstance(handler.formatter, JSONFormatter)
        assert handler.stream is sys.stdout

    def test_default_is_dev(self):
        handler = configure_logging()
        assert isinstance(handler.formatter, DevFormatter)
        assert handler.stream is sys.stderr

    def test_replaces_existing_handlers(self):
        logging.getLogger().addHandler(logging.StreamHandler())
        handler = configure_logging(env="development")
        assert logging.getLogger().handlers == [handler]

    def test_level_env_override(self, monkeypatch):
        monkeypatch.setenv("SWITCHBOARD_LOG_LEVEL", "debug")
        configure_logging(level=logging.WARNING)
        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_level_env_ignored(self, monkeypatch):
        monkeypatch.setenv("SWITCHBOARD_LOG_LEVEL", "chatty")
        configure_logging(level=logging.WARNING)
        assert logging.getLogger().level == logging.WARNING

    def test_sdk_loggers_quieted(self):
        configure_logging()
        for name in ("httpx", "httpcore", "anthropic", "openai"):
            assert logging.getLogger(name).level == logging.WARNING

    @pytest.mark.asyncio
    async def test_router_events_as_json(self):
        stream = StringIO()
        configure_logging(env="production", stream=stream)

        provider = MagicMock()
        provider.name = "anthropic"
        provider.default_model = "claude-sonnet-4-20250514"
        provider.complete = AsyncMock(return_value=LLMResponse(
            content="hi",
            usage=TokenUsage(prompt_tokens=1000, completion_tokens=500),
            model="claude-sonnet-4-20250514",
        ))
        router = LLMRouter(config=RouterConfig(telemetry={"enabled": False}))
        router.register_provider(provider)

        token = set_request_id("req-789")
        try:
            await router.route(CompletionRequest(messages=[Message(role="user", content="hi")]))
        finally:
            reset_request_id(token)

        routed = [e for e in _json_lines(stream) if e["event"] == "llm_routed"]
        assert len(routed) == 1
        assert routed[0]["request_id"] == "req-789"
        assert routed[0]["provider"] == "anthropic"
        assert routed[0]["tokens"] == 1500
        assert routed[0]["cost"] == "$0.0105"
        assert routed[0]["is_fallback"] is False
