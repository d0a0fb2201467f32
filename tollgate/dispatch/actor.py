"""Dramatiq actors for out-of-process dispatch advancement.

Usage
-----
Queue advancement of an admitted key:

>>> advance_dispatch_job.send(
...     "postgresql+asyncpg://...",
...     "acme/checkout-service",
...     42,
...     "abc123",
... )

Start a worker with ``TOLLGATE_BROKER_URL`` set::

    dramatiq tollgate.dispatch.actor

Run the periodic sweep:

>>> sweep_dispatches_job.send("postgresql+asyncpg://...")

"""

from __future__ import annotations

import asyncio
import threading
import typing as typ

import dramatiq
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from tollgate.common.keys import DispatchKey
from tollgate.contracts.loader import ContractSource
from tollgate.contracts.registry import ContractRegistry
from tollgate.dispatch._broker import ensure_broker_configured
from tollgate.dispatch.factory import build_orchestrator
from tollgate.dispatch.scheduler import DramatiqDispatchScheduler

if typ.TYPE_CHECKING:
    from tollgate.dispatch.orchestrator import DispatchOrchestrator

type SessionFactory = async_sessionmaker[AsyncSession]

# Actors bind to the broker installed when they are declared.
ensure_broker_configured()

# Module-level caches for reusing expensive resources across actor invocations
_ENGINE_CACHE: dict[str, AsyncEngine] = {}
_SESSION_FACTORY_CACHE: dict[str, SessionFactory] = {}
_REGISTRY_CACHE: dict[str, ContractRegistry] = {}
_CACHE_LOCK = threading.Lock()


def _ensure_engine(database_url: str) -> AsyncEngine:
    """Return the cached engine for *database_url*, creating it if absent.

    Each actor call runs in its own ``asyncio.run`` loop, and pooled async
    connections are bound to the loop that opened them, so the engine keeps
    no pool and every session opens a fresh connection.

    Precondition: the caller **must** hold ``_CACHE_LOCK``.
    """
    if database_url not in _ENGINE_CACHE:
        _ENGINE_CACHE[database_url] = create_async_engine(
            database_url, poolclass=NullPool
        )
    return _ENGINE_CACHE[database_url]


def _get_or_create_session_factory(database_url: str) -> SessionFactory:
    """Get or create an async session factory for the given database URL.

    Thread-safe: uses a lock to prevent race conditions in Dramatiq workers.
    """
    with _CACHE_LOCK:
        if database_url not in _SESSION_FACTORY_CACHE:
            engine = _ensure_engine(database_url)
            _SESSION_FACTORY_CACHE[database_url] = async_sessionmaker(
                engine, expire_on_commit=False
            )
        return _SESSION_FACTORY_CACHE[database_url]


def _get_or_load_registry() -> ContractRegistry:
    """Load the contract registry once per worker process.

    The cache is keyed by the mapping path so tests that repoint the
    environment get a fresh registry.
    """
    source = ContractSource.from_env()
    cache_key = str(source.mapping_path)
    with _CACHE_LOCK:
        registry = _REGISTRY_CACHE.get(cache_key)
        if registry is None:
            registry = ContractRegistry(source)
            registry.load()
            _REGISTRY_CACHE[cache_key] = registry
        return registry


def _run_actor_async[T](
    database_url: str,
    async_fn: typ.Callable[[DispatchOrchestrator], typ.Awaitable[T]],
) -> T:
    """Execute common async scaffolding for Dramatiq actors.

    The orchestrator and its HTTP clients are built inside the event loop
    ``asyncio.run`` creates and closed before it ends.
    """
    ensure_broker_configured()
    session_factory = _get_or_create_session_factory(database_url)
    registry = _get_or_load_registry()

    async def run() -> T:
        runtime = build_orchestrator(
            session_factory,
            registry=registry,
            scheduler=DramatiqDispatchScheduler(database_url),
        )
        try:
            return await async_fn(runtime.orchestrator)
        finally:
            await runtime.aclose()

    return asyncio.run(run())


@dramatiq.actor
def advance_dispatch_job(
    database_url: str,
    repo: str,
    pr_number: int,
    head_sha: str,
) -> str | None:
    """Dramatiq actor advancing one admitted dispatch key.

    Returns
    -------
    str | None
        The record's state afterwards, or None if it was already being
        advanced in this worker.

    """
    key = DispatchKey.build(repo, pr_number, head_sha)

    async def execute(orchestrator: DispatchOrchestrator) -> str | None:
        state = await orchestrator.advance(key)
        return state.value if state is not None else None

    return _run_actor_async(database_url, execute)


@dramatiq.actor
def sweep_dispatches_job(database_url: str) -> dict[str, list[str]]:
    """Dramatiq actor running one dispatch sweep.

    Returns
    -------
    dict[str, list[str]]
        Keys expired, republished and resumed, rendered as strings.

    """

    async def execute(orchestrator: DispatchOrchestrator) -> dict[str, list[str]]:
        report = await orchestrator.sweep()
        return {
            "expired": [str(key) for key in report.expired],
            "republished": [str(key) for key in report.republished],
            "resumed": [str(key) for key in report.resumed],
        }

    return _run_actor_async(database_url, execute)
