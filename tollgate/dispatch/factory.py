"""Factory for building a DispatchOrchestrator from environment configuration.

The API process and the Dramatiq workers wire the orchestrator the same way:
token broker over the configured credential exchange, the configured
validator backend, and a reconciler publishing through the GitHub REST API.

Usage
-----
Build an orchestrator for the API layer::

    from tollgate.dispatch.factory import build_orchestrator

    runtime = build_orchestrator(session_factory, registry=registry)
    await runtime.orchestrator.receive(event)
    await runtime.aclose()

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from tollgate.credentials.broker import TokenBroker
from tollgate.credentials.config import BrokerConfig
from tollgate.credentials.factory import create_credential_exchange
from tollgate.reconcile.config import GitHubSurfaceConfig, ReconcilerConfig
from tollgate.reconcile.github import GitHubPullRequestSurface
from tollgate.reconcile.reconciler import ResultReconciler
from tollgate.validation.factory import create_validation_invoker

from .config import DispatchConfig, DispatchMode
from .observability import DispatchEventLogger
from .orchestrator import DispatchOrchestrator, OrchestratorDependencies

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from tollgate.contracts.registry import ContractRegistry

    from .scheduler import DispatchScheduler

__all__ = ["OrchestratorRuntime", "build_orchestrator"]


@dc.dataclass(slots=True)
class OrchestratorRuntime:
    """An orchestrator plus the HTTP resources it owns.

    Attributes
    ----------
    orchestrator
        The wired orchestrator.
    closers
        Coroutine functions releasing owned HTTP clients.

    """

    orchestrator: DispatchOrchestrator
    closers: list[cabc.Callable[[], cabc.Awaitable[None]]] = dc.field(
        default_factory=list
    )

    async def aclose(self) -> None:
        """Close every owned client."""
        for close in self.closers:
            await close()


def _closer(resource: object) -> cabc.Callable[[], cabc.Awaitable[None]] | None:
    return getattr(resource, "aclose", None)


def build_orchestrator(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    registry: ContractRegistry,
    scheduler: DispatchScheduler | None = None,
    database_url: str | None = None,
) -> OrchestratorRuntime:
    """Build a ``DispatchOrchestrator`` from environment configuration.

    Parameters
    ----------
    session_factory
        Async session factory for dispatch and publication state.
    registry
        Loaded contract registry.
    scheduler
        Explicit scheduler. When omitted, ``TOLLGATE_DISPATCH_MODE=dramatiq``
        selects Dramatiq workers (which needs ``database_url``) and anything
        else runs advancement in-process.
    database_url
        Database URL passed to Dramatiq workers.

    Raises
    ------
    ValueError
        If Dramatiq mode is selected without a database URL.

    """
    config = DispatchConfig.from_env()
    exchange = create_credential_exchange()
    broker = TokenBroker(exchange, config=BrokerConfig.from_env())
    invoker = create_validation_invoker()
    surface = GitHubPullRequestSurface(GitHubSurfaceConfig.from_env(), broker)
    reconciler = ResultReconciler(
        session_factory, surface, config=ReconcilerConfig.from_env()
    )

    if scheduler is None and config.mode is DispatchMode.DRAMATIQ:
        if database_url is None:
            msg = "TOLLGATE_DISPATCH_MODE=dramatiq requires a database URL"
            raise ValueError(msg)
        from .scheduler import DramatiqDispatchScheduler

        scheduler = DramatiqDispatchScheduler(database_url)

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
        event_logger=DispatchEventLogger(),
    )
    closers = [
        close
        for close in (_closer(exchange), _closer(invoker), _closer(surface))
        if close is not None
    ]
    return OrchestratorRuntime(orchestrator=orchestrator, closers=closers)
