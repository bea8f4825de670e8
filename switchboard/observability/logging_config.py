"""
Logging setup for Switchboard.

The package only ever calls `logging.getLogger(__name__)` and logs an event
name with structured fields in `extra`:

    logger.info("llm_routed", extra={"provider": "anthropic", "tokens": 1532})

`configure_logging()` decides how those events are rendered:
- SWITCHBOARD_ENV=production: one JSON object per line on stdout
- anything else: a compact colored line on stderr, routing fields first

Every record emitted while a request id is bound (see `set_request_id`)
carries that id, including records from telemetry tasks spawned by the
request.
"""

from __future__ import annotations

import contextvars
import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import IO, Any, Optional

_request_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "switchboard_request_id", default=None,
)

# Attributes every LogRecord has; anything else came in through `extra`
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {"message", "asctime", "request_id"}

# Fields of the router's events, shown first and in this order
ROUTING_FIELDS = (
    "operation", "provider", "model", "tokens", "cost",
    "latency_ms", "is_fallback", "primary_provider", "error",
)


def set_request_id(request_id: str) -> contextvars.Token:
    """Bind a request id to the current context. Returns a reset token."""
    return _request_id.set(request_id)


def get_request_id() -> Optional[str]:
    return _request_id.get()


def reset_request_id(token: contextvars.Token) -> None:
    _request_id.reset(token)


def event_fields(record: logging.LogRecord) -> dict[str, Any]:
    """
    Structured fields attached to a record via `extra`, routing fields
    first, then the rest alphabetically.
    """
    fields = {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }
    ordered = {key: fields.pop(key) for key in ROUTING_FIELDS if key in fields}
    ordered.update(sorted(fields.items()))
    return ordered


class ContextFilter(logging.Filter):
    """Stamps the bound request id onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        request_id = get_request_id()
        if request_id:
            record.request_id = request_id  # type: ignore[attr-defined]
        return True


# ─── Formatters ──────────────────────────────────────────────────────


class JSONFormatter(logging.Formatter):
    """One JSON object per record: event, level, logger, request id, fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }
        request_id = getattr(record, "request_id", None)
        if request_id:
            entry["request_id"] = request_id
        entry.update(event_fields(record))

        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class DevFormatter(logging.Formatter):
    """
    Readable single line per event:

        12:00:01 WARNING  llm_provider_failed  provider=openai error=... (req-42)
    """

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[41m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, "")
        fields = " ".join(f"{key}={value}" for key, value in event_fields(record).items())

        line = (
            f"{self.formatTime(record, '%H:%M:%S')} "
            f"{color}{record.levelname:<8}{self.RESET} {record.getMessage()}"
        )
        if fields:
            line += f"  {fields}"
        request_id = getattr(record, "request_id", None)
        if request_id:
            line += f" ({request_id})"

        if record.exc_info and record.exc_info[1]:
            line += "\n" + self.formatException(record.exc_info)
        return line


# ─── Setup ───────────────────────────────────────────────────────────


def configure_logging(
    env: Optional[str] = None,
    level: int = logging.INFO,
    stream: Optional[IO[str]] = None,
) -> logging.Handler:
    """
    Install a single root handler for Switchboard's events.

    Args:
        env: "production" for JSON output; defaults to SWITCHBOARD_ENV.
        level: Root level. SWITCHBOARD_LOG_LEVEL (e.g. "DEBUG") overrides it.
        stream: Output stream; stdout for JSON, stderr otherwise.

    Returns:
        The installed handler.
    """
    env = (env or os.environ.get("SWITCHBOARD_ENV", "development")).strip().lower()
    override = logging.getLevelName(os.environ.get("SWITCHBOARD_LOG_LEVEL", "").strip().upper())
    if isinstance(override, int):
        level = override

    production = env == "production"
    handler = logging.StreamHandler(stream or (sys.stdout if production else sys.stderr))
    handler.setFormatter(JSONFormatter() if production else DevFormatter())
    handler.addFilter(ContextFilter())

    root = logging.getLogger()
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    # SDK request logs would drown the routing events
    for name in ("httpx", "httpcore", "anthropic", "openai"):
        logging.getLogger(name).setLevel(logging.WARNING)

    return handler
