"""Tests for nvault.core.retry module."""

import pytest

from nvault.core.errors import EmbeddingServiceError
from nvault.core.retry import RetryPolicy, is_retryable


class TestIsRetryable:
    @pytest.mark.parametrize("status", [None, 429, 500, 502, 503, 504])
    def test_transient_statuses(self, status):
        assert is_retryable(EmbeddingServiceError("x", status_code=status))

    @pytest.mark.parametrize("status", [400, 401, 403, 404])
    def test_permanent_statuses(self, status):
        assert not is_retryable(EmbeddingServiceError("x", status_code=status))

    def test_explicit_flag_wins(self):
        assert not is_retryable(EmbeddingServiceError("x", status_code=503, retryable=False))

    def test_foreign_exceptions_not_retryable(self):
        assert not is_retryable(ValueError("x"))


class TestDelays:
    def test_default_schedule(self):
        """Five attempts wait 1, 2, 4 and 8 seconds between them."""
        assert RetryPolicy(max_attempts=5, base_delay=1.0).delays() == [1.0, 2.0, 4.0, 8.0]

    def test_capped(self):
        policy = RetryPolicy(max_attempts=4, base_delay=10.0, max_delay=15.0)
        assert policy.delays() == [10.0, 15.0, 15.0]

    def test_single_attempt(self):
        assert RetryPolicy(max_attempts=1).delays() == []

    @pytest.mark.parametrize(
        "kwargs", [{"max_attempts": 0}, {"base_delay": -1.0}, {"factor": 0.5}]
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            RetryPolicy(**kwargs)


class TestRunAsync:
    """Tests for the async runner."""

    @pytest.mark.asyncio
    async def test_success_first_try(self, fast_retry, sleeps):
        async def _ok():
            return 42

        assert await fast_retry.run(_ok) == 42
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self, fast_retry, sleeps):
        calls = []

        async def _flaky():
            calls.append(1)
            if len(calls) < 4:
                raise EmbeddingServiceError("busy", status_code=503)
            return "ok"

        assert await fast_retry.run(_flaky) == "ok"
        assert sleeps == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, fast_retry, sleeps):
        calls = []

        async def _down():
            calls.append(1)
            raise EmbeddingServiceError("busy", status_code=429)

        with pytest.raises(EmbeddingServiceError):
            await fast_retry.run(_down)
        assert len(calls) == 5
        assert sleeps == [1.0, 2.0, 4.0, 8.0]

    @pytest.mark.asyncio
    async def test_permanent_error_not_retried(self, fast_retry, sleeps):
        calls = []

        async def _bad():
            calls.append(1)
            raise EmbeddingServiceError("bad request", status_code=400)

        with pytest.raises(EmbeddingServiceError):
            await fast_retry.run(_bad)
        assert len(calls) == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_custom_predicate(self, sleeps):
        async def _sleep(delay):
            sleeps.append(delay)

        policy = RetryPolicy(
            max_attempts=3,
            base_delay=0.5,
            retry_on=lambda exc: isinstance(exc, KeyError),
            sleep=_sleep,
        )
        calls = []

        async def _missing():
            calls.append(1)
            raise KeyError("x")

        with pytest.raises(KeyError):
            await policy.run(_missing)
        assert len(calls) == 3
        assert sleeps == [0.5, 1.0]
