"""
Per-provider circuit breaker.

A provider that fails `failure_threshold` times in a row is taken out of
rotation for `cooldown_s` seconds. After the cooldown one trial attempt is
let through (half-open): success closes the circuit, failure reopens it for
another full cooldown.

Failures are counted per provider attempt, after retries are exhausted.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass
class _Circuit:
    consecutive_failures: int = 0
    opened_at: Optional[float] = None
    half_open: bool = False


class ProviderCircuitBreaker:
    """Tracks consecutive failures per provider name."""

    def __init__(
        self,
        failure_threshold: int = 5,
        cooldown_s: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = max(1, failure_threshold)
        self.cooldown_s = cooldown_s
        self._clock = clock
        self._circuits: dict[str, _Circuit] = {}

    def _cooling_down(self, circuit: _Circuit) -> bool:
        return (
            circuit.opened_at is not None
            and self._clock() - circuit.opened_at < self.cooldown_s
        )

    def is_available(self, provider: str) -> bool:
        """
        True if calls may go to `provider`. An open circuit whose cooldown
        has elapsed moves to half-open and admits a trial call.
        """
        circuit = self._circuits.get(provider)
        if circuit is None or circuit.opened_at is None:
            return True
        if self._cooling_down(circuit):
            return False

        if not circuit.half_open:
            circuit.half_open = True
            logger.info("llm_circuit_half_open", extra={"provider": provider})
        return True

    def record_success(self, provider: str) -> None:
        circuit = self._circuits.pop(provider, None)
        if circuit is not None and circuit.opened_at is not None:
            logger.info("llm_circuit_closed", extra={"provider": provider})

    def record_failure(self, provider: str) -> None:
        circuit = self._circuits.setdefault(provider, _Circuit())
        circuit.consecutive_failures += 1

        if circuit.half_open or circuit.consecutive_failures >= self.failure_threshold:
            circuit.opened_at = self._clock()
            circuit.half_open = False
            logger.warning(
                "llm_circuit_opened",
                extra={
                    "provider": provider,
                    "consecutive_failures": circuit.consecutive_failures,
                    "cooldown_s": self.cooldown_s,
                },
            )

    def get_open_circuits(self) -> list[str]:
        """Providers currently skipped (open and still cooling down)."""
        return [name for name, circuit in self._circuits.items() if self._cooling_down(circuit)]

    def reset(self) -> None:
        self._circuits.clear()
