"""
Timeout and single-retry wrapper for upstream calls.

Every embedding and generation call goes through call_upstream():
- asyncio.wait_for bounds each attempt
- one retry after a fixed backoff
- the final failure is re-raised as the caller's UpstreamError subclass

asyncio.CancelledError is a BaseException and is never caught here, so a
cancelled caller cancels the in-flight attempt and no retry is made.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

from case_context_engine.core.errors import UpstreamError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def call_upstream(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    operation: str,
    error_cls: type[UpstreamError] = UpstreamError,
    timeout_s: float = 30.0,
    retries: int = 1,
    backoff_s: float = 0.5,
    **kwargs: Any,
) -> T:
    """
    Await func(*args, **kwargs) with a timeout and at most `retries` retries.

    Args:
        func: Coroutine function performing the upstream call
        operation: Short name used in logs and error messages
        error_cls: UpstreamError subclass raised on final failure
        timeout_s: Timeout for each attempt
        retries: Extra attempts after the first (at most one by default)
        backoff_s: Delay before each retry

    Raises:
        error_cls: chained to the last underlying exception
    """
    last_exc: Exception | None = None

    for attempt in range(retries + 1):
        try:
            return await asyncio.wait_for(func(*args, **kwargs), timeout=timeout_s)
        except (asyncio.TimeoutError, TimeoutError) as exc:
            last_exc = exc
            reason = f"timed out after {timeout_s:.1f}s"
        except UpstreamError:
            raise
        except Exception as exc:
            last_exc = exc
            reason = f"{type(exc).__name__}: {exc}"

        if attempt < retries:
            logger.warning(
                "%s failed (attempt %d/%d): %s; retrying in %.1fs",
                operation, attempt + 1, retries + 1, reason, backoff_s,
            )
            await asyncio.sleep(backoff_s)
        else:
            logger.error("%s failed after %d attempt(s): %s", operation, attempt + 1, reason)

    raise error_cls(f"{operation} failed: {last_exc}") from last_exc
