"""
Bounded retry combinator on tenacity.

One combinator serves both loops of the translation client:
- the outer rerun loop (retry on exceptions, no wait)
- the inner poll loop (retry while the result is empty, fixed wait,
  optional wall-clock deadline)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception,
    retry_if_result,
    stop_after_attempt,
    stop_after_delay,
    wait_fixed,
    wait_none,
)

from mdtrans.errors import RetryExhausted

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """How often and how patiently to retry.

    Attributes:
        max_attempts: Total number of attempts (first call included)
        wait: Seconds between attempts
        deadline: Wall-clock cap in seconds over all attempts
    """
    max_attempts: int
    wait: float = 0.0
    deadline: Optional[float] = None


async def retry_async(
    operation: Callable[[], Awaitable[Any]],
    policy: RetryPolicy,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    give_up_on: tuple[type[BaseException], ...] = (),
    result_predicate: Optional[Callable[[Any], bool]] = None,
) -> Any:
    """Run ``operation`` until it succeeds or the policy is exhausted.

    Args:
        operation: Zero-argument callable returning an awaitable (a
            coroutine function, a partial or a lambda)
        policy: Attempt count, wait and deadline
        retry_on: Exception types that trigger another attempt
        give_up_on: Exception types re-raised at once, even when they
            match ``retry_on``
        result_predicate: Returns True for a result that warrants another
            attempt (e.g. an empty poll result)

    Returns:
        The first accepted result

    Raises:
        RetryExhausted: No attempt succeeded; carries the attempt count
            and the last exception (None when the last result was rejected)
    """
    def _should_retry(error: BaseException) -> bool:
        return isinstance(error, retry_on) and not isinstance(error, give_up_on)

    retry = retry_if_exception(_should_retry)
    if result_predicate is not None:
        retry = retry | retry_if_result(result_predicate)

    stop = stop_after_attempt(policy.max_attempts)
    if policy.deadline is not None:
        stop = stop | stop_after_delay(policy.deadline)

    retrying = AsyncRetrying(
        stop=stop,
        wait=wait_fixed(policy.wait) if policy.wait else wait_none(),
        retry=retry,
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )

    # tenacity only awaits callables it detects as coroutine functions
    async def call() -> Any:
        return await operation()

    try:
        return await retrying(call)
    except RetryError as e:
        last = e.last_attempt
        raise RetryExhausted(last.attempt_number, last.exception() if last.failed else None) from None
