"""A fully wired orchestrator over in-memory collaborators.

The world uses real storage, registry, broker and reconciler; only the
network-facing edges (token exchange, validator, PR surface) are replaced by
recording fakes. Scheduled keys are collected rather than run, so tests
decide when advancement happens.
"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import typing as typ

from tollgate.common.retry import RetryPolicy
from tollgate.contracts.registry import ContractRegistry
from tollgate.credentials.broker import TokenBroker
from tollgate.credentials.config import BrokerConfig
from tollgate.credentials.errors import CredentialExchangeError
from tollgate.credentials.models import ScopedToken
from tollgate.dispatch.config import DispatchConfig
from tollgate.dispatch.orchestrator import DispatchOrchestrator, OrchestratorDependencies
from tollgate.reconcile.config import ReconcilerConfig
from tollgate.reconcile.memory import InMemoryPullRequestSurface
from tollgate.reconcile.reconciler import ResultReconciler
from tollgate.validation.mock import MockValidationInvoker

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from tollgate.common.keys import DispatchKey
    from tollgate.contracts.loader import ContractSource
    from tollgate.credentials.models import Permissions

START = dt.datetime(2024, 7, 14, 10, 0, tzinfo=dt.UTC)
CONTRACTS_REPO = "acme/data-contracts"
FAST_RETRY = RetryPolicy(max_attempts=3, base_delay_s=0.0)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: dt.datetime = START) -> None:
        """Start at ``start``."""
        self.now = start

    def __call__(self) -> dt.datetime:
        """Return the current fake time."""
        return self.now

    def advance(self, **kwargs: float) -> dt.datetime:
        """Move forward by a ``timedelta(**kwargs)``."""
        self.now += dt.timedelta(**kwargs)
        return self.now


async def no_sleep(_delay: float) -> None:
    """Skip backoff delays."""


class RecordingExchange:
    """Token exchange that fails a fixed number of times, then succeeds."""

    def __init__(self, clock: FakeClock, *, failures: int = 0) -> None:
        """Store the clock and failure budget."""
        self._clock = clock
        self.failures = failures
        self.calls: list[tuple[str, dict[str, str]]] = []

    async def exchange(self, repository: str, permissions: Permissions) -> ScopedToken:
        """Record the call and mint a one-hour token."""
        self.calls.append((repository, dict(permissions)))
        if self.failures > 0:
            self.failures -= 1
            raise CredentialExchangeError.http_error("mint installation token", 502)
        return ScopedToken(
            token=f"token-{len(self.calls)}",
            repository=repository,
            permissions=dict(permissions),
            expires_at=self._clock() + dt.timedelta(hours=1),
        )


class RecordingScheduler:
    """Collect scheduled keys without running them."""

    def __init__(self) -> None:
        """Start empty."""
        self.scheduled: list[DispatchKey] = []

    def schedule(self, key: DispatchKey) -> None:
        """Remember ``key``."""
        self.scheduled.append(key)


@dc.dataclass(slots=True)
class DispatchWorld:
    """Orchestrator plus handles on every fake it talks to."""

    orchestrator: DispatchOrchestrator
    reconciler: ResultReconciler
    registry: ContractRegistry
    exchange: RecordingExchange
    invoker: MockValidationInvoker
    surface: InMemoryPullRequestSurface
    scheduler: RecordingScheduler
    clock: FakeClock
    config: DispatchConfig


def build_world(  # noqa: PLR0913
    session_factory: async_sessionmaker[AsyncSession],
    source: ContractSource,
    *,
    token_failures: int = 0,
    validator_failures: int = 0,
    surface_failures: int = 0,
    run_timeout: dt.timedelta = dt.timedelta(minutes=30),
) -> DispatchWorld:
    """Wire an orchestrator over fakes and a loaded registry."""
    clock = FakeClock()
    registry = ContractRegistry(source)
    registry.load()
    exchange = RecordingExchange(clock, failures=token_failures)
    broker = TokenBroker(
        exchange,
        config=BrokerConfig(retry=FAST_RETRY),
        clock=clock,
        sleep=no_sleep,
    )
    invoker = MockValidationInvoker(failures=validator_failures)
    surface = InMemoryPullRequestSurface(failures=surface_failures)
    reconciler = ResultReconciler(
        session_factory,
        surface,
        config=ReconcilerConfig(retry=FAST_RETRY),
        clock=clock,
        sleep=no_sleep,
    )
    config = DispatchConfig(
        contracts_repo=CONTRACTS_REPO,
        retry=FAST_RETRY,
        run_timeout=run_timeout,
        callback_url="https://tollgate.example.com/validation-results",
    )
    scheduler = RecordingScheduler()
    orchestrator = DispatchOrchestrator(
        OrchestratorDependencies(
            session_factory=session_factory,
            registry=registry,
            broker=broker,
            invoker=invoker,
            reconciler=reconciler,
        ),
        config=config,
        scheduler=scheduler,
        clock=clock,
        sleep=no_sleep,
    )
    return DispatchWorld(
        orchestrator=orchestrator,
        reconciler=reconciler,
        registry=registry,
        exchange=exchange,
        invoker=invoker,
        surface=surface,
        scheduler=scheduler,
        clock=clock,
        config=config,
    )
