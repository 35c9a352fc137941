"""Tests for retry_with_backoff."""

from unittest.mock import AsyncMock, patch

import pytest

from cragsync.core.retry import RetryConfig, retry_with_backoff

pytestmark = pytest.mark.asyncio


class TransientError(Exception):
    pass


@pytest.fixture
def no_sleep():
    with patch("cragsync.core.retry.asyncio.sleep", new=AsyncMock()) as sleep:
        yield sleep


class TestRetryWithBackoff:
    async def test_returns_first_success(self, no_sleep):
        fn = AsyncMock(return_value="ok")

        assert await retry_with_backoff(fn) == "ok"
        assert fn.await_count == 1
        no_sleep.assert_not_awaited()

    async def test_retries_until_success(self, no_sleep):
        fn = AsyncMock(side_effect=[TransientError("1"), TransientError("2"), "ok"])
        config = RetryConfig(max_attempts=3, backoff_base=1.0, jitter=False)

        assert await retry_with_backoff(fn, config) == "ok"
        assert [c.args[0] for c in no_sleep.await_args_list] == [1.0, 2.0]

    async def test_raises_last_error_when_exhausted(self, no_sleep):
        fn = AsyncMock(side_effect=[TransientError("first"), TransientError("last")])

        with pytest.raises(TransientError, match="last"):
            await retry_with_backoff(fn, RetryConfig(max_attempts=2, jitter=False))

    async def test_non_retryable_propagates_immediately(self, no_sleep):
        """Should not retry exceptions outside retryable_exceptions."""
        fn = AsyncMock(side_effect=ValueError("bad request"))
        config = RetryConfig(max_attempts=5, retryable_exceptions=(TransientError,))

        with pytest.raises(ValueError):
            await retry_with_backoff(fn, config)
        assert fn.await_count == 1

    async def test_backoff_is_capped(self, no_sleep):
        fn = AsyncMock(side_effect=[TransientError()] * 4 + ["ok"])
        config = RetryConfig(max_attempts=5, backoff_base=10.0, backoff_max=15.0, jitter=False)

        await retry_with_backoff(fn, config)

        assert [c.args[0] for c in no_sleep.await_args_list] == [10.0, 15.0, 15.0, 15.0]

    async def test_delay_hint_overrides_backoff(self, no_sleep):
        """A server-provided wait is used as is, capped at backoff_max."""
        hints = iter([3.0, 90.0])
        fn = AsyncMock(side_effect=[TransientError(), TransientError(), "ok"])
        config = RetryConfig(max_attempts=3, backoff_max=30.0, delay_hint=lambda e: next(hints))

        await retry_with_backoff(fn, config)

        assert [c.args[0] for c in no_sleep.await_args_list] == [3.0, 30.0]

    async def test_missing_hint_falls_back_to_backoff(self, no_sleep):
        fn = AsyncMock(side_effect=[TransientError(), "ok"])
        config = RetryConfig(backoff_base=2.0, jitter=False, delay_hint=lambda e: None)

        await retry_with_backoff(fn, config)

        no_sleep.assert_awaited_once_with(2.0)

    async def test_max_attempts_must_be_positive(self):
        with pytest.raises(ValueError):
            await retry_with_backoff(AsyncMock(), RetryConfig(max_attempts=0))
