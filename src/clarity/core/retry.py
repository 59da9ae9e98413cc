"""Bounded in-process retry shared by the downloader and the LLM callers.

Thin layer over tenacity's AsyncRetrying so every caller gets the same
stop condition, re-raise semantics and structured retry log line. Callers
choose the delay policy (exponential for downloads, fixed for model calls).

Usage:
    async for attempt in bounded_retry(3, backoff_wait(1.0), event="download.retrying"):
        with attempt:
            return await fetch()
"""

from __future__ import annotations

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_fixed,
)
from tenacity.wait import wait_base

logger = structlog.get_logger(__name__)


def backoff_wait(base_seconds: float) -> wait_base:
    """Exponential delay doubling per attempt: base, 2*base, 4*base..."""
    return wait_exponential(multiplier=base_seconds, exp_base=2)


def fixed_wait(seconds: float) -> wait_base:
    """Constant delay between attempts."""
    return wait_fixed(seconds)


def _log_before_sleep(event: str):
    def _log(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            event,
            attempt=retry_state.attempt_number,
            wait_seconds=retry_state.next_action.sleep if retry_state.next_action else 0,
            error=str(exc) if exc else None,
            error_type=type(exc).__name__ if exc else None,
        )

    return _log


def bounded_retry(
    max_attempts: int,
    wait: wait_base,
    *,
    event: str = "retry.attempt_failed",
    retry_on: tuple[type[BaseException], ...] = (Exception,),
) -> AsyncRetrying:
    """Build an AsyncRetrying that stops after ``max_attempts`` and re-raises.

    Args:
        max_attempts: Total attempts including the first one.
        wait: Delay policy between attempts.
        event: Log event name emitted before each sleep.
        retry_on: Exception types that count as a failed attempt.

    Returns:
        AsyncRetrying iterator; the last exception propagates on exhaustion.
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait,
        retry=retry_if_exception_type(retry_on),
        before_sleep=_log_before_sleep(event),
        reraise=True,
    )
