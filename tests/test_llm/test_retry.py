"""
Tests for bounded retry with backoff.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from switchboard.exceptions import ProviderError
from switchboard.llm.retry import backoff_delay, call_with_retry, is_retryable_error


class _StatusError(Exception):
    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class TestIsRetryableError:

    @pytest.mark.parametrize("error", [
        _StatusError("slow down", 429),
        _StatusError("bad gateway", 502),
        ProviderError("boom", status_code=500),
        Exception("Rate limit exceeded"),
        Exception("rate_limit_error"),
        Exception("Too Many Requests"),
        Exception("Overloaded"),
        Exception("upstream returned 503"),
    ])
    def test_retryable(self, error):
        assert is_retryable_error(error)

    @pytest.mark.parametrize("error", [
        _StatusError("unauthorized", 401),
        ProviderError("not found", status_code=404),
        ValueError("invalid request"),
        Exception("API down"),
    ])
    def test_not_retryable(self, error):
        assert not is_retryable_error(error)


class TestBackoffDelay:

    def test_exponential_growth(self):
        assert backoff_delay(0, 1.0, 8.0, 0) == 1.0
        assert backoff_delay(1, 1.0, 8.0, 0) == 2.0
        assert backoff_delay(2, 1.0, 8.0, 0) == 4.0

    def test_capped(self):
        assert backoff_delay(10, 1.0, 8.0, 0) == 8.0

    def test_jitter_bounded(self):
        for _ in range(20):
            delay = backoff_delay(0, 1.0, 8.0, 0.5)
            assert 1.0 <= delay <= 1.5


class TestCallWithRetry:

    @pytest.mark.asyncio
    async def test_success_first_try(self):
        fn = AsyncMock(return_value="ok")
        assert await call_with_retry(fn, max_retries=3) == "ok"
        fn.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_retries_rate_limits_then_succeeds(self):
        fn = AsyncMock(side_effect=[Exception("429 Too Many Requests"), "ok"])
        with patch("switchboard.llm.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            result = await call_with_retry(fn, max_retries=3, jitter_s=0)

        assert result == "ok"
        assert fn.await_count == 2
        sleep.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio
    async def test_non_retryable_raised_immediately(self):
        error = ValueError("bad request")
        fn = AsyncMock(side_effect=error)

        with pytest.raises(ValueError) as exc_info:
            await call_with_retry(fn, max_retries=3)

        assert exc_info.value is error
        fn.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_gives_up_with_original_error(self):
        error = ProviderError("overloaded", status_code=529)
        fn = AsyncMock(side_effect=error)

        with patch("switchboard.llm.retry.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(ProviderError) as exc_info:
                await call_with_retry(fn, max_retries=2)

        assert exc_info.value is error
        assert fn.await_count == 3

    @pytest.mark.asyncio
    async def test_zero_retries(self):
        fn = AsyncMock(side_effect=Exception("rate limit"))
        with pytest.raises(Exception, match="rate limit"):
            await call_with_retry(fn, max_retries=0)
        fn.assert_awaited_once()
