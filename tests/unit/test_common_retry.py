"""Unit tests for bounded exponential backoff."""

from __future__ import annotations

import pytest

from tollgate.common.retry import RetryExhaustedError, RetryPolicy, retry_async


class _Flaky:
    """Fail a fixed number of times, then return ``"ok"``."""

    def __init__(self, failures: int, error: type[Exception] = ConnectionError) -> None:
        self.failures = failures
        self.error = error
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            msg = f"attempt {self.calls} failed"
            raise self.error(msg)
        return "ok"


def test_delay_curve_is_exponential_and_capped() -> None:
    """Delays double per failure and never exceed the cap."""
    policy = RetryPolicy(base_delay_s=1.0, factor=2.0, max_delay_s=5.0)

    assert [policy.delay_for(n) for n in range(1, 5)] == [1.0, 2.0, 4.0, 5.0]


def test_policy_rejects_zero_attempts() -> None:
    """A policy must allow at least one call."""
    with pytest.raises(ValueError, match="max_attempts"):
        RetryPolicy(max_attempts=0)


def test_policy_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Attempt budgets are per prefix; the base delay is shared."""
    monkeypatch.setenv("TOLLGATE_TOKEN_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("TOLLGATE_BACKOFF_BASE_S", "0.5")

    policy = RetryPolicy.from_env("TOLLGATE_TOKEN")

    assert policy.max_attempts == 5
    assert policy.base_delay_s == 0.5


def test_policy_rejects_malformed_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Non-numeric budgets are configuration errors."""
    monkeypatch.setenv("TOLLGATE_DISPATCH_MAX_ATTEMPTS", "three")

    with pytest.raises(ValueError, match="TOLLGATE_DISPATCH"):
        RetryPolicy.from_env("TOLLGATE_DISPATCH")


@pytest.mark.asyncio
async def test_retry_succeeds_within_budget() -> None:
    """Transient failures are retried with the policy's delays."""
    operation = _Flaky(failures=2)
    delays: list[float] = []

    async def sleep(delay: float) -> None:
        delays.append(delay)

    result = await retry_async(
        operation,
        policy=RetryPolicy(max_attempts=3, base_delay_s=1.0),
        retry_on=(ConnectionError,),
        sleep=sleep,
    )

    assert result == "ok"
    assert operation.calls == 3
    assert delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_retry_exhaustion_reports_attempts_and_last_error() -> None:
    """Once the budget is spent the final error is surfaced."""
    operation = _Flaky(failures=10)
    retried: list[int] = []

    async def sleep(_delay: float) -> None:
        return None

    with pytest.raises(RetryExhaustedError) as excinfo:
        await retry_async(
            operation,
            policy=RetryPolicy(max_attempts=3),
            retry_on=(ConnectionError,),
            sleep=sleep,
            on_retry=lambda attempt, _exc: retried.append(attempt),
        )

    assert excinfo.value.attempts == 3
    assert str(excinfo.value.last_error) == "attempt 3 failed"
    assert retried == [1, 2], "no retry callback after the final attempt"


@pytest.mark.asyncio
async def test_non_retryable_errors_propagate_immediately() -> None:
    """Errors outside ``retry_on`` are not retried."""
    operation = _Flaky(failures=1, error=KeyError)

    with pytest.raises(KeyError):
        await retry_async(
            operation,
            policy=RetryPolicy(max_attempts=3),
            retry_on=(ConnectionError,),
        )

    assert operation.calls == 1
