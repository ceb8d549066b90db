"""
Tests for the retry helpers.
"""

import pytest

from core.retry import async_retry, with_retry


class FlakyError(Exception):
    pass


class TestAsyncRetry:

    @pytest.mark.asyncio
    async def test_returns_after_transient_failures(self):
        attempts = []

        @async_retry(max_attempts=3, delay=0)
        async def flaky():
            attempts.append(1)
            if len(attempts) < 3:
                raise FlakyError("not yet")
            return "ok"

        assert await flaky() == "ok"
        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_raises_last_error_when_exhausted(self):
        attempts = []

        @async_retry(max_attempts=2, delay=0)
        async def always_fails():
            attempts.append(1)
            raise FlakyError(f"attempt {len(attempts)}")

        with pytest.raises(FlakyError, match="attempt 2"):
            await always_fails()
        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_unlisted_exceptions_are_not_retried(self):
        attempts = []

        @async_retry(max_attempts=3, delay=0, exceptions=(FlakyError,))
        async def broken():
            attempts.append(1)
            raise ValueError("bad input")

        with pytest.raises(ValueError):
            await broken()
        assert len(attempts) == 1

    @pytest.mark.asyncio
    async def test_on_retry_callback(self):
        seen = []

        @async_retry(max_attempts=3, delay=0, on_retry=lambda a, m, e: seen.append((a, m, str(e))))
        async def flaky():
            if len(seen) < 2:
                raise FlakyError("boom")
            return True

        assert await flaky()
        assert seen == [(1, 3, "boom"), (2, 3, "boom")]


@pytest.mark.asyncio
async def test_with_retry_takes_a_factory():
    calls = []

    async def launch():
        calls.append(1)
        if len(calls) == 1:
            raise FlakyError("locked")
        return "context"

    assert await with_retry(launch, max_attempts=3, delay=0, label="launch") == "context"
    assert len(calls) == 2
