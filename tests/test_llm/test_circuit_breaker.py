"""
Tests for the per-provider circuit breaker, driven by a fake clock.
"""

from __future__ import annotations

import pytest

from switchboard.llm.circuit_breaker import ProviderCircuitBreaker


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def breaker(clock):
    return ProviderCircuitBreaker(failure_threshold=3, cooldown_s=30.0, clock=clock)


class TestProviderCircuitBreaker:

    def test_unknown_provider_available(self, breaker):
        assert breaker.is_available("anthropic") is True
        assert breaker.get_open_circuits() == []

    def test_opens_at_threshold(self, breaker):
        breaker.record_failure("anthropic")
        breaker.record_failure("anthropic")
        assert breaker.is_available("anthropic") is True

        breaker.record_failure("anthropic")
        assert breaker.is_available("anthropic") is False
        assert breaker.get_open_circuits() == ["anthropic"]

    def test_success_resets_count(self, breaker):
        breaker.record_failure("openai")
        breaker.record_failure("openai")
        breaker.record_success("openai")
        breaker.record_failure("openai")

        assert breaker.is_available("openai") is True

    def test_circuits_are_per_provider(self, breaker):
        for _ in range(3):
            breaker.record_failure("google")

        assert breaker.is_available("google") is False
        assert breaker.is_available("openai") is True

    def test_half_open_after_cooldown(self, breaker, clock):
        for _ in range(3):
            breaker.record_failure("google")

        clock.now += 29.9
        assert breaker.is_available("google") is False

        clock.now += 0.1
        assert breaker.is_available("google") is True
        assert breaker.get_open_circuits() == []

    def test_half_open_success_closes(self, breaker, clock):
        for _ in range(3):
            breaker.record_failure("google")
        clock.now += 30
        breaker.is_available("google")

        breaker.record_success("google")
        breaker.record_failure("google")

        assert breaker.is_available("google") is True

    def test_half_open_failure_reopens(self, breaker, clock):
        for _ in range(3):
            breaker.record_failure("google")
        clock.now += 30
        assert breaker.is_available("google") is True

        breaker.record_failure("google")

        assert breaker.is_available("google") is False
        clock.now += 30
        assert breaker.is_available("google") is True

    def test_threshold_floor(self, clock):
        breaker = ProviderCircuitBreaker(failure_threshold=0, cooldown_s=30.0, clock=clock)
        breaker.record_failure("ollama")
        assert breaker.is_available("ollama") is False

    def test_reset(self, breaker):
        for _ in range(3):
            breaker.record_failure("anthropic")
        breaker.reset()
        assert breaker.is_available("anthropic") is True
