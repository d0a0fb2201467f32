"""Bounded exponential backoff for outbound calls.

Token exchange, validator invocation and status publishing all retry a small,
fixed number of times before surfacing a domain error. They share this helper
so the attempt accounting and delay curve are identical everywhere.

Usage
-----
>>> policy = RetryPolicy(max_attempts=3, base_delay_s=1.0)
>>> await retry_async(fetch_token, policy=policy, retry_on=(ExchangeError,))

"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import os
import typing as typ

type Sleep = typ.Callable[[float], typ.Awaitable[None]]


@dc.dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Attempt budget and delay curve for one kind of outbound call.

    Attributes
    ----------
    max_attempts
        Total attempts including the first call. Must be at least 1.
    base_delay_s
        Delay before the second attempt.
    factor
        Multiplier applied to the delay after each failed attempt.
    max_delay_s
        Upper bound for any single delay.

    """

    max_attempts: int = 3
    base_delay_s: float = 1.0
    factor: float = 2.0
    max_delay_s: float = 30.0

    def __post_init__(self) -> None:
        """Reject budgets that could never make a call."""
        if self.max_attempts < 1:
            msg = f"max_attempts must be >= 1, got {self.max_attempts}"
            raise ValueError(msg)

    def delay_for(self, failed_attempt: int) -> float:
        """Return the delay to wait after the ``failed_attempt``-th failure."""
        delay = self.base_delay_s * self.factor ** (failed_attempt - 1)
        return min(delay, self.max_delay_s)

    @classmethod
    def from_env(cls, prefix: str, *, default_attempts: int = 3) -> RetryPolicy:
        """Read ``{prefix}_MAX_ATTEMPTS`` and ``TOLLGATE_BACKOFF_BASE_S``."""
        raw_attempts = os.environ.get(f"{prefix}_MAX_ATTEMPTS", "").strip()
        raw_base = os.environ.get("TOLLGATE_BACKOFF_BASE_S", "").strip()
        try:
            attempts = int(raw_attempts) if raw_attempts else default_attempts
            base = float(raw_base) if raw_base else 1.0
        except ValueError as exc:
            msg = f"invalid retry configuration for {prefix}: {exc}"
            raise ValueError(msg) from exc
        if base < 0:
            msg = f"TOLLGATE_BACKOFF_BASE_S must not be negative, got {base}"
            raise ValueError(msg)
        return cls(max_attempts=attempts, base_delay_s=base)


class RetryExhaustedError(Exception):
    """Raised when every attempt allowed by a :class:`RetryPolicy` failed.

    Attributes
    ----------
    attempts
        Number of attempts made.
    last_error
        Exception raised by the final attempt.

    """

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        """Record the attempt count and final failure."""
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"gave up after {attempts} attempt(s): {last_error}")


async def retry_async[T](
    operation: typ.Callable[[], typ.Awaitable[T]],
    *,
    policy: RetryPolicy,
    retry_on: tuple[type[Exception], ...],
    sleep: Sleep = asyncio.sleep,
    on_retry: typ.Callable[[int, Exception], None] | None = None,
) -> T:
    """Await ``operation`` until it succeeds or the policy is exhausted.

    Only exceptions listed in ``retry_on`` are retried; anything else
    propagates immediately.

    Raises
    ------
    RetryExhaustedError
        When the final permitted attempt fails with a retryable error.

    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except retry_on as exc:
            if attempt >= policy.max_attempts:
                raise RetryExhaustedError(attempt, exc) from exc
            if on_retry is not None:
                on_retry(attempt, exc)
            await sleep(policy.delay_for(attempt))
