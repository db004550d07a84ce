"""Tests for retry_with_policy(): fixed rate-limit waits and exponential backoff."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from relay_llm.errors import AuthenticationError, ProviderError, RateLimitError
from relay_llm.retry import RetryPolicy, retry_with_policy


def _failing(*errors: Exception, result: str = "ok"):
    """An async callable raising *errors* in order, then returning *result*."""
    remaining = list(errors)
    calls = {"count": 0}

    async def fn() -> str:
        calls["count"] += 1
        if remaining:
            raise remaining.pop(0)
        return result

    return fn, calls


class TestRetryPolicy:
    def test_defaults(self):
        policy = RetryPolicy()
        assert policy.max_attempts == 5
        assert policy.rate_limit_delay == 20.0
        assert policy.initial_delay == 2.0

    def test_compute_backoff(self):
        policy = RetryPolicy()
        assert [policy.compute_backoff(i) for i in range(4)] == [2.0, 4.0, 8.0, 16.0]


class TestRetryWithPolicy:
    @pytest.mark.asyncio
    async def test_succeeds_first_try(self):
        fn, calls = _failing()
        with patch("relay_llm.retry.anyio.sleep", new_callable=AsyncMock) as mock_sleep:
            assert await retry_with_policy(fn) == "ok"
        assert calls["count"] == 1
        mock_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rate_limit_waits_are_fixed(self):
        fn, calls = _failing(ProviderError("429"), ProviderError("429"), ProviderError("429"))
        with patch("relay_llm.retry.anyio.sleep", new_callable=AsyncMock) as mock_sleep:
            assert await retry_with_policy(fn) == "ok"
        assert calls["count"] == 4
        assert [c.args[0] for c in mock_sleep.await_args_list] == [20.0, 20.0, 20.0]

    @pytest.mark.asyncio
    async def test_backoff_grows_only_on_other_failures(self):
        fn, _ = _failing(
            RateLimitError("slow down"),
            ProviderError("server error"),
            ProviderError("server error"),
        )
        with patch("relay_llm.retry.anyio.sleep", new_callable=AsyncMock) as mock_sleep:
            await retry_with_policy(fn)
        assert [c.args[0] for c in mock_sleep.await_args_list] == [20.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_plain_exceptions_are_retried(self):
        fn, calls = _failing(ConnectionError("reset"))
        with patch("relay_llm.retry.anyio.sleep", new_callable=AsyncMock):
            assert await retry_with_policy(fn) == "ok"
        assert calls["count"] == 2

    @pytest.mark.asyncio
    async def test_exhaustion_reraises_last_error(self):
        errors = [ProviderError(f"fail {i}") for i in range(5)]
        fn, calls = _failing(*errors)
        with patch("relay_llm.retry.anyio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(ProviderError) as excinfo:
                await retry_with_policy(fn)
        assert excinfo.value is errors[-1]
        assert calls["count"] == 5
        assert mock_sleep.await_count == 4

    @pytest.mark.asyncio
    async def test_non_retryable_raised_immediately(self):
        fn, calls = _failing(AuthenticationError("bad key"))
        with patch("relay_llm.retry.anyio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(AuthenticationError):
                await retry_with_policy(fn)
        assert calls["count"] == 1
        mock_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_single_attempt_policy(self):
        fn, calls = _failing(ProviderError("x"))
        with pytest.raises(ProviderError):
            await retry_with_policy(fn, RetryPolicy(max_attempts=1))
        assert calls["count"] == 1

    @pytest.mark.asyncio
    async def test_invalid_policy(self):
        fn, _ = _failing()
        with pytest.raises(ValueError, match="max_attempts"):
            await retry_with_policy(fn, RetryPolicy(max_attempts=0))

    @pytest.mark.asyncio
    async def test_on_retry_callback(self):
        seen: list[tuple[int, str, float, bool]] = []

        def on_retry(attempt: int, error: Exception, delay: float, rate_limited: bool) -> None:
            seen.append((attempt, str(error), delay, rate_limited))

        fn, _ = _failing(ProviderError("Too Many Requests"), ProviderError("boom"))
        with patch("relay_llm.retry.anyio.sleep", new_callable=AsyncMock):
            await retry_with_policy(fn, on_retry=on_retry)

        assert seen == [(1, "Too Many Requests", 20.0, True), (2, "boom", 2.0, False)]

    @pytest.mark.asyncio
    async def test_async_on_retry_callback_is_awaited(self):
        on_retry = AsyncMock()
        fn, _ = _failing(ProviderError("boom"))
        with patch("relay_llm.retry.anyio.sleep", new_callable=AsyncMock):
            await retry_with_policy(fn, on_retry=on_retry)
        on_retry.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_retry_after_hint_does_not_change_wait(self):
        fn, _ = _failing(RateLimitError("slow down", retry_after=90.0))
        with patch("relay_llm.retry.anyio.sleep", new_callable=AsyncMock) as mock_sleep:
            await retry_with_policy(fn)
        assert [c.args[0] for c in mock_sleep.await_args_list] == [20.0]
