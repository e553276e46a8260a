"""
Unit Tests for call_upstream

STAFF ENGINEER PATTERNS:
------------------------
1. Count attempts with a closure rather than patching asyncio
2. Zero backoff keeps the suite fast
3. Cancellation is tested on a real task, not simulated
"""

import asyncio

import pytest

from case_context_engine.core.errors import (
    UpstreamEmbeddingError,
    UpstreamError,
    UpstreamGenerationError,
)
from case_context_engine.core.resilience import call_upstream


def flaky(failures: int, exc: Exception | None = None):
    """Coroutine function that fails `failures` times, then returns 'ok'."""
    state = {"calls": 0}

    async def func(value="ok"):
        state["calls"] += 1
        if state["calls"] <= failures:
            raise exc or ConnectionError("connection reset")
        return value

    return func, state


class TestRetry:

    async def test_success_first_try(self):
        func, state = flaky(0)
        result = await call_upstream(func, operation="embed", backoff_s=0)
        assert result == "ok"
        assert state["calls"] == 1

    async def test_passes_args_and_kwargs(self):
        func, _ = flaky(0)
        assert await call_upstream(func, operation="embed", backoff_s=0, value="hello") == "hello"

    async def test_one_failure_is_retried(self):
        func, state = flaky(1)
        assert await call_upstream(func, operation="embed", backoff_s=0) == "ok"
        assert state["calls"] == 2

    async def test_at_most_one_retry(self):
        func, state = flaky(5)

        with pytest.raises(UpstreamEmbeddingError) as exc_info:
            await call_upstream(
                func, operation="embed", error_cls=UpstreamEmbeddingError, backoff_s=0
            )

        assert state["calls"] == 2
        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert "embed failed" in str(exc_info.value)

    async def test_default_error_class(self):
        func, _ = flaky(5)
        with pytest.raises(UpstreamError):
            await call_upstream(func, operation="query", backoff_s=0)

    async def test_upstream_errors_are_not_rewrapped(self):
        func, state = flaky(5, exc=UpstreamGenerationError("already classified"))

        with pytest.raises(UpstreamGenerationError, match="already classified"):
            await call_upstream(func, operation="generate", backoff_s=0)

        assert state["calls"] == 1


class TestTimeout:

    async def test_timeout_counts_as_failure(self):
        calls = []

        async def slow():
            calls.append(1)
            await asyncio.sleep(10)

        with pytest.raises(UpstreamGenerationError) as exc_info:
            await call_upstream(
                slow,
                operation="generate",
                error_cls=UpstreamGenerationError,
                timeout_s=0.01,
                backoff_s=0,
            )

        assert len(calls) == 2
        assert isinstance(exc_info.value.__cause__, (asyncio.TimeoutError, TimeoutError))

    async def test_cancellation_is_not_retried(self):
        started = asyncio.Event()
        calls = []

        async def hang():
            calls.append(1)
            started.set()
            await asyncio.sleep(10)

        task = asyncio.create_task(call_upstream(hang, operation="generate", backoff_s=0))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(calls) == 1
