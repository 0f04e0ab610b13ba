"""Exponential backoff for async calls.

Delays grow as ``base_delay * 2**n`` (1s, 2s, 4s with the defaults) plus an
optional random jitter, capped at ``max_delay``. Cancellation is never
retried: ``asyncio.CancelledError`` is not an ``Exception`` subclass, so it
falls straight through.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from ledgerly.utils.logging import get_logger

logger = get_logger("pricing.retry")

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    base_delay: float = 1.0
    max_retries: int = 3
    jitter: float = 0.0
    max_delay: float = 60.0

    def delays(self) -> List[float]:
        """Backoff delays before each retry, without jitter."""
        return [min(self.base_delay * 2 ** n, self.max_delay) for n in range(self.max_retries)]


DEFAULT_POLICY = RetryPolicy()


def build_retrying(
    policy: RetryPolicy,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    before_retry: Optional[Callable[[RetryCallState], None]] = None,
) -> AsyncRetrying:
    wait = wait_exponential(multiplier=policy.base_delay, exp_base=2, min=0, max=policy.max_delay)
    if policy.jitter > 0:
        wait = wait + wait_random(0, policy.jitter)

    def _before_sleep(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            f"Attempt {retry_state.attempt_number} failed ({exc}); "
            f"retrying in {retry_state.next_action.sleep:.1f}s"
        )
        if before_retry is not None:
            before_retry(retry_state)

    return AsyncRetrying(
        stop=stop_after_attempt(policy.max_retries + 1),
        wait=wait,
        retry=retry_if_exception_type(Exception),
        before_sleep=_before_sleep,
        sleep=sleep,
        reraise=True,
    )


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    before_retry: Optional[Callable[[RetryCallState], None]] = None,
) -> T:
    """Await ``func()`` and retry it with exponential backoff on failure.

    Args:
        func: Zero-argument callable returning an awaitable, e.g.
            ``lambda: client.fetch_prices(ids)``
        policy: Backoff settings (default: 1s base, 3 retries, no jitter)
        sleep: Awaitable sleep, replaceable in tests
        before_retry: Called with the tenacity retry state before each wait

    Returns:
        The first successful result

    Raises:
        Exception: The last error once retries are exhausted
    """
    retrying = build_retrying(policy or DEFAULT_POLICY, sleep=sleep, before_retry=before_retry)

    # AsyncRetrying only awaits coroutine functions; a plain callable's
    # awaitable would come back as the result
    async def attempt() -> T:
        return await func()

    return await retrying(attempt)
