"""Schedulers that run dispatch advancement outside the request path.

Webhook handlers return as soon as an event is admitted. Advancing the new
record (resolving contracts, minting tokens and invoking the validator)
happens either in an asyncio task in the same process or on a Dramatiq
worker.
"""

from __future__ import annotations

import asyncio
import typing as typ

from tollgate.logging import get_logger, log_exception

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    import dramatiq

    from tollgate.common.keys import DispatchKey

logger = get_logger(__name__)


class DispatchScheduler(typ.Protocol):
    """Arrange for a dispatch key to be advanced soon."""

    def schedule(self, key: DispatchKey) -> None:
        """Queue ``key`` for advancement without waiting for it."""
        ...


class TaskDispatchScheduler:
    """Advance dispatch keys in asyncio tasks on the running loop.

    Failures are logged; the record stays where it stopped and the sweep
    picks it up again.
    """

    def __init__(self, advance: cabc.Callable[[DispatchKey], cabc.Awaitable[object]]) -> None:
        """Store the coroutine function that advances a key."""
        self._advance = advance
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        """Return the number of advancement tasks still running."""
        return len(self._tasks)

    def schedule(self, key: DispatchKey) -> None:
        """Start a task advancing ``key``."""
        task = asyncio.get_running_loop().create_task(
            self._run(key), name=f"advance {key}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, key: DispatchKey) -> None:
        try:
            await self._advance(key)
        except Exception as exc:  # noqa: BLE001 - task boundary; the sweep retries
            log_exception(logger, f"Advancing {key} failed", exc)

    async def drain(self) -> None:
        """Wait until every scheduled task, including ones they schedule, ends."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def aclose(self) -> None:
        """Cancel outstanding tasks."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


class DramatiqDispatchScheduler:
    """Enqueue :func:`~tollgate.dispatch.actor.advance_dispatch_job` messages."""

    def __init__(self, database_url: str, *, actor: dramatiq.Actor | None = None) -> None:
        """Store the database URL workers connect to."""
        self._database_url = database_url
        self._actor = actor

    def schedule(self, key: DispatchKey) -> None:
        """Send one advancement message for ``key``."""
        from tollgate.dispatch._broker import ensure_broker_configured

        ensure_broker_configured()
        actor = self._actor
        if actor is None:
            from tollgate.dispatch.actor import advance_dispatch_job

            actor = advance_dispatch_job
        actor.send(self._database_url, key.repo, key.pr_number, key.head_sha)


class DispatchSweeper:
    """Run :meth:`DispatchOrchestrator.sweep` on a fixed interval."""

    def __init__(self, sweep: cabc.Callable[[], cabc.Awaitable[object]]) -> None:
        """Store the sweep coroutine function."""
        self._sweep = sweep

    async def run(self, poll_interval: float = 60.0) -> None:
        """Sweep forever; a failed sweep is logged and retried next interval."""
        while True:
            try:
                await self._sweep()
            except Exception as exc:  # noqa: BLE001 - keep the loop alive
                log_exception(logger, "Dispatch sweep failed", exc)
            await asyncio.sleep(poll_interval)
