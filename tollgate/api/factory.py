"""Factory for building the Tollgate service from environment configuration.

This module provides ``build_service()`` which wires storage, the contract
registry, the dispatch orchestrator and the webhook secrets from a database
URL and environment variables. The returned :class:`ServiceRuntime` holds
everything the ASGI lifecycle middleware starts and stops.

Usage
-----
Build the service for the runtime::

    from tollgate.api.factory import build_service

    service = build_service("sqlite+aiosqlite:///tollgate.db")
    app = create_app(service.app_dependencies())
    app.add_middleware(ServiceLifecycle(service))

"""

from __future__ import annotations

import dataclasses as dc
import os
import typing as typ

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from tollgate.api.app import AppDependencies
from tollgate.contracts.loader import ContractSource
from tollgate.contracts.registry import ContractRegistry
from tollgate.dispatch.factory import build_orchestrator
from tollgate.dispatch.storage import init_dispatch_storage
from tollgate.reconcile.storage import init_reconcile_storage
from tollgate.webhooks.config import WebhookConfig

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

    from tollgate.dispatch.factory import OrchestratorRuntime

__all__ = ["ServiceConfig", "ServiceRuntime", "build_service", "init_storage"]

_DEFAULT_SWEEP_INTERVAL_S = 60
_DEFAULT_CONTRACTS_POLL_S = 30


async def init_storage(engine: AsyncEngine) -> None:
    """Create the dispatch and publication tables if they are absent."""
    await init_dispatch_storage(engine)
    await init_reconcile_storage(engine)


@dc.dataclass(frozen=True, slots=True)
class ServiceConfig:
    """Background loop intervals for the API process.

    Attributes
    ----------
    sweep_interval_s
        Seconds between dispatch sweeps.
    contracts_poll_s
        Seconds between contract source fingerprint checks.

    """

    sweep_interval_s: int = _DEFAULT_SWEEP_INTERVAL_S
    contracts_poll_s: int = _DEFAULT_CONTRACTS_POLL_S

    @staticmethod
    def _parse_positive_int(env_var: str, default: int) -> int:
        """Read a positive integer env var, falling back to a default."""
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            return default
        try:
            value = int(raw)
        except ValueError as exc:
            msg = f"{env_var} must be an integer, got: {raw!r}"
            raise ValueError(msg) from exc
        if value < 1:
            msg = f"{env_var} must be positive, got: {value}"
            raise ValueError(msg)
        return value

    @classmethod
    def from_env(cls) -> ServiceConfig:
        """Read ``TOLLGATE_SWEEP_INTERVAL_S`` and ``TOLLGATE_CONTRACTS_POLL_S``."""
        return cls(
            sweep_interval_s=cls._parse_positive_int(
                "TOLLGATE_SWEEP_INTERVAL_S", _DEFAULT_SWEEP_INTERVAL_S
            ),
            contracts_poll_s=cls._parse_positive_int(
                "TOLLGATE_CONTRACTS_POLL_S", _DEFAULT_CONTRACTS_POLL_S
            ),
        )


@dc.dataclass(slots=True)
class ServiceRuntime:
    """Everything one API process owns.

    Attributes
    ----------
    engine
        Async engine for the configured database.
    session_factory
        Session factory with ``expire_on_commit=False``.
    registry
        Contract registry, loaded at startup.
    orchestrator_runtime
        Orchestrator plus the HTTP clients it owns.
    webhook_config
        Secrets for inbound signatures.
    config
        Background loop intervals.

    """

    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    registry: ContractRegistry
    orchestrator_runtime: OrchestratorRuntime
    webhook_config: WebhookConfig
    config: ServiceConfig

    def app_dependencies(self) -> AppDependencies:
        """Return the dependencies the Falcon app needs."""
        return AppDependencies(
            orchestrator=self.orchestrator_runtime.orchestrator,
            registry=self.registry,
            webhook_config=self.webhook_config,
        )


def build_service(database_url: str) -> ServiceRuntime:
    """Build a ``ServiceRuntime`` from environment configuration.

    Nothing is read from disk or the database here; the lifecycle middleware
    creates tables and loads contracts on startup.

    Parameters
    ----------
    database_url
        SQLAlchemy async URL, for example ``sqlite+aiosqlite:///tollgate.db``.

    """
    engine = create_async_engine(database_url)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    registry = ContractRegistry(ContractSource.from_env())
    orchestrator_runtime = build_orchestrator(
        session_factory, registry=registry, database_url=database_url
    )
    return ServiceRuntime(
        engine=engine,
        session_factory=session_factory,
        registry=registry,
        orchestrator_runtime=orchestrator_runtime,
        webhook_config=WebhookConfig.from_env(),
        config=ServiceConfig.from_env(),
    )
