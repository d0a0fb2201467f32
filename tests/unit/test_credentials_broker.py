"""Unit tests for the caching, single-flight token broker."""

from __future__ import annotations

import asyncio
import datetime as dt

import pytest

from tests.helpers.dispatch_world import FAST_RETRY, FakeClock, RecordingExchange, no_sleep
from tollgate.credentials import (
    CONTRACTS_REPO_PERMISSIONS,
    PRODUCER_PUBLISH_PERMISSIONS,
    PRODUCER_READ_PERMISSIONS,
    BrokerConfig,
    CredentialError,
    TokenBroker,
    permissions_digest,
)


def _broker(exchange: RecordingExchange, clock: FakeClock) -> TokenBroker:
    return TokenBroker(
        exchange,
        config=BrokerConfig(refresh_margin=dt.timedelta(minutes=2), retry=FAST_RETRY),
        clock=clock,
        sleep=no_sleep,
    )


class _GatedExchange(RecordingExchange):
    """Exchange that blocks until released, to observe concurrent callers."""

    def __init__(self, clock: FakeClock) -> None:
        super().__init__(clock)
        self.release = asyncio.Event()

    async def exchange(self, repository, permissions):  # noqa: ANN001, ANN201
        await self.release.wait()
        return await super().exchange(repository, permissions)


@pytest.mark.asyncio
async def test_fresh_tokens_are_served_from_cache() -> None:
    """A second request inside the validity window does not mint again."""
    clock = FakeClock()
    exchange = RecordingExchange(clock)
    broker = _broker(exchange, clock)

    first = await broker.token_for("acme/checkout-service", PRODUCER_READ_PERMISSIONS)
    second = await broker.token_for("Acme/Checkout-Service", PRODUCER_READ_PERMISSIONS)

    assert first is second
    assert len(exchange.calls) == 1


@pytest.mark.asyncio
async def test_permission_sets_are_cached_separately() -> None:
    """A read token is never reused where publish permissions are needed."""
    clock = FakeClock()
    exchange = RecordingExchange(clock)
    broker = _broker(exchange, clock)

    read = await broker.token_for("acme/checkout-service", PRODUCER_READ_PERMISSIONS)
    publish = await broker.token_for("acme/checkout-service", PRODUCER_PUBLISH_PERMISSIONS)

    assert read is not publish
    assert exchange.calls[1] == ("acme/checkout-service", dict(PRODUCER_PUBLISH_PERMISSIONS))


@pytest.mark.asyncio
async def test_tokens_near_expiry_are_refreshed() -> None:
    """Tokens inside the refresh margin are replaced before use."""
    clock = FakeClock()
    exchange = RecordingExchange(clock)
    broker = _broker(exchange, clock)

    first = await broker.token_for("acme/data-contracts", CONTRACTS_REPO_PERMISSIONS)
    clock.advance(minutes=57)
    cached = await broker.token_for("acme/data-contracts", CONTRACTS_REPO_PERMISSIONS)
    clock.advance(minutes=2)
    refreshed = await broker.token_for("acme/data-contracts", CONTRACTS_REPO_PERMISSIONS)

    assert cached is first, "57 minutes in, three remain: still outside the margin"
    assert refreshed is not first
    assert len(exchange.calls) == 2


@pytest.mark.asyncio
async def test_concurrent_requests_share_one_exchange() -> None:
    """Callers racing for the same token wait on a single refresh."""
    clock = FakeClock()
    exchange = _GatedExchange(clock)
    broker = _broker(exchange, clock)

    waiters = [
        asyncio.create_task(
            broker.token_for("acme/checkout-service", PRODUCER_READ_PERMISSIONS)
        )
        for _ in range(5)
    ]
    await asyncio.sleep(0)
    exchange.release.set()
    tokens = await asyncio.gather(*waiters)

    assert len(exchange.calls) == 1
    assert len({id(token) for token in tokens}) == 1


@pytest.mark.asyncio
async def test_transient_failures_are_retried() -> None:
    """Exchanges failing fewer times than the budget still succeed."""
    clock = FakeClock()
    exchange = RecordingExchange(clock, failures=2)
    broker = _broker(exchange, clock)

    token = await broker.token_for("acme/checkout-service", PRODUCER_READ_PERMISSIONS)

    assert token.token == "token-3"
    assert len(exchange.calls) == 3


@pytest.mark.asyncio
async def test_exhaustion_raises_credential_error() -> None:
    """Three failed exchanges surface one CredentialError naming the repo."""
    clock = FakeClock()
    exchange = RecordingExchange(clock, failures=3)
    broker = _broker(exchange, clock)

    with pytest.raises(CredentialError, match="acme/checkout-service after 3 attempt"):
        await broker.token_for("acme/checkout-service", PRODUCER_READ_PERMISSIONS)

    token = await broker.token_for("acme/checkout-service", PRODUCER_READ_PERMISSIONS)
    assert token.token == "token-4", "a later call starts a fresh attempt"


@pytest.mark.asyncio
async def test_invalidate_forces_a_new_exchange() -> None:
    """Invalidated tokens are minted again on next use."""
    clock = FakeClock()
    exchange = RecordingExchange(clock)
    broker = _broker(exchange, clock)

    await broker.token_for("acme/checkout-service", PRODUCER_READ_PERMISSIONS)
    broker.invalidate("acme/checkout-service", PRODUCER_READ_PERMISSIONS)
    await broker.token_for("acme/checkout-service", PRODUCER_READ_PERMISSIONS)

    assert len(exchange.calls) == 2


def test_permissions_digest_ignores_key_order() -> None:
    """Equal permission sets hash the same regardless of insertion order."""
    assert permissions_digest({"contents": "read", "metadata": "read"}) == (
        permissions_digest({"metadata": "read", "contents": "read"})
    )
    assert permissions_digest(PRODUCER_READ_PERMISSIONS) != permissions_digest(
        PRODUCER_PUBLISH_PERMISSIONS
    )
