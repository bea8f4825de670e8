"""
Usage Telemetry — best-effort reporting of per-call usage to the state service.

Each completed call produces one UsageRecord, POSTed as JSON to
`<state_service_url>/api/state/history`. Reporting is write-only and
lossy by contract: timeouts, connection failures and non-2xx responses
are logged and dropped, never raised to the caller.

Usage:
    telemetry = UsageTelemetry("http://localhost:3011")
    await telemetry.send(UsageRecord(
        provider="anthropic",
        model="claude-sonnet-4-20250514",
        input_tokens=1200,
        output_tokens=300,
        cost_usd=0.0081,
    ))
    await telemetry.aclose()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from switchboard.exceptions import TelemetryError
from switchboard.llm.types import CostBreakdown

logger = logging.getLogger(__name__)

HISTORY_PATH = "/api/state/history"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class UsageRecord:
    """Tokens consumed and dollar cost of one completion."""

    provider: str
    model: str
    input_tokens: int
    output_tokens: int
    cost_usd: float
    breakdown: CostBreakdown = field(default_factory=CostBreakdown)
    timestamp: str = field(default_factory=_utc_now_iso)

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def to_payload(self) -> dict[str, Any]:
        """JSON body expected by the state service."""
        return {
            "type": "llm_usage",
            "command": "llm.completion",
            "provider": self.provider,
            "model": self.model,
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "totalTokens": self.total_tokens,
            "costUSD": self.cost_usd,
            "breakdown": {
                "input": self.breakdown.input,
                "output": self.breakdown.output,
            },
            "timestamp": self.timestamp,
        }


class UsageTelemetry:
    """HTTP reporter for UsageRecords. `send` never raises."""

    def __init__(
        self,
        state_service_url: str = "http://localhost:3011",
        *,
        timeout_s: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.state_service_url = state_service_url.rstrip("/")
        self._client = client or httpx.AsyncClient(
            base_url=self.state_service_url,
            timeout=timeout_s,
        )
        self._sent = 0
        self._failed = 0

    @property
    def sent_count(self) -> int:
        return self._sent

    @property
    def failed_count(self) -> int:
        return self._failed

    async def _post(self, record: UsageRecord) -> None:
        response = await self._client.post(HISTORY_PATH, json=record.to_payload())
        if not response.is_success:
            raise TelemetryError(
                f"State service rejected usage record: HTTP {response.status_code}",
                status_code=response.status_code,
            )

    async def send(self, record: UsageRecord) -> bool:
        """
        Persist one record. Returns True on success, False on any failure.

        All errors (timeouts, connection errors, non-2xx) are swallowed.
        """
        try:
            await self._post(record)
        except Exception as e:
            self._failed += 1
            logger.warning(
                "usage_persist_failed",
                extra={
                    "provider": record.provider,
                    "model": record.model,
                    "error_type": type(e).__name__,
                    "error": str(e)[:200],
                },
            )
            return False

        self._sent += 1
        logger.debug(
            "usage_persisted",
            extra={
                "provider": record.provider,
                "model": record.model,
                "total_tokens": record.total_tokens,
                "cost_usd": round(record.cost_usd, 6),
            },
        )
        return True

    async def aclose(self) -> None:
        await self._client.aclose()
