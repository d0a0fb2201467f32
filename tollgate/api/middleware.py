"""ASGI lifespan middleware owning Tollgate's background work.

On startup the middleware creates missing tables, loads the contract
registry and starts two loops: the dispatch sweeper and the contract source
watcher. On shutdown it stops both loops, cancels in-process dispatch tasks,
closes outbound HTTP clients and disposes the database engine.

Usage
-----
Register the middleware on the Falcon app::

    app = create_app(service.app_dependencies())
    app.add_middleware(ServiceLifecycle(service))

"""

from __future__ import annotations

import asyncio
import typing as typ

from tollgate.api.factory import init_storage
from tollgate.contracts.watch import ContractSourceWatcher
from tollgate.dispatch.scheduler import DispatchSweeper, TaskDispatchScheduler
from tollgate.logging import get_logger, log_info, log_warning

if typ.TYPE_CHECKING:
    from tollgate.api.factory import ServiceRuntime

__all__ = ["ServiceLifecycle"]

logger = get_logger(__name__)


class ServiceLifecycle:
    """Falcon middleware handling ASGI ``lifespan`` startup and shutdown.

    Parameters
    ----------
    service
        The wired service runtime.

    """

    def __init__(self, service: ServiceRuntime) -> None:
        """Store the service; nothing starts until ``process_startup``."""
        self._service = service
        self._tasks: list[asyncio.Task[None]] = []

    async def process_startup(self, _scope: dict[str, typ.Any], _event: dict[str, typ.Any]) -> None:
        """Create tables, load contracts and start background loops.

        A contract load failure does not abort startup: ``/ready`` stays
        503 and the watcher keeps retrying until the source is fixed.
        """
        service = self._service
        await init_storage(service.engine)

        watcher = ContractSourceWatcher(service.registry)
        await asyncio.to_thread(watcher.tick)
        if not service.registry.is_loaded:
            log_warning(logger, "Starting without contracts; readiness stays false")

        orchestrator = service.orchestrator_runtime.orchestrator
        sweeper = DispatchSweeper(orchestrator.sweep)
        self._tasks = [
            asyncio.create_task(
                sweeper.run(service.config.sweep_interval_s), name="dispatch sweeper"
            ),
            asyncio.create_task(
                watcher.run(service.config.contracts_poll_s), name="contract watcher"
            ),
        ]
        log_info(logger, "Tollgate background loops started")

    async def process_shutdown(self, _scope: dict[str, typ.Any], _event: dict[str, typ.Any]) -> None:
        """Stop loops and release every owned resource."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        scheduler = self._service.orchestrator_runtime.orchestrator.scheduler
        if isinstance(scheduler, TaskDispatchScheduler):
            await scheduler.aclose()
        await self._service.orchestrator_runtime.aclose()
        await self._service.engine.dispose()
        log_info(logger, "Tollgate stopped")
