"""Watcher that reloads the contract registry when source files change."""

from __future__ import annotations

import asyncio
import typing as typ

from tollgate.logging import get_logger, log_warning

from .errors import ResolutionError
from .loader import source_fingerprint

if typ.TYPE_CHECKING:
    from .registry import ContractRegistry

logger = get_logger(__name__)


class ContractSourceWatcher:
    """Poll the contract source and reload the registry when it changes.

    A reload that fails validation leaves the previous snapshot in service.
    The watcher remembers the failing fingerprint so the same broken files
    are not re-parsed on every tick.
    """

    def __init__(self, registry: ContractRegistry) -> None:
        """Bind the watcher to ``registry``."""
        self.registry = registry
        self._last_seen: str | None = (
            registry.snapshot.fingerprint if registry.is_loaded else None
        )

    def tick(self) -> bool:
        """Reload if the source fingerprint moved; return whether it did."""
        fingerprint = source_fingerprint(self.registry.source)
        if fingerprint == self._last_seen:
            return False

        self._last_seen = fingerprint
        try:
            self.registry.reload()
        except ResolutionError as exc:
            log_warning(
                logger,
                "Ignoring contract change %s: %d issue(s)",
                fingerprint[:12],
                len(exc.issues),
            )
            return False
        return True

    async def run(self, poll_interval: float = 30.0) -> None:
        """Run the watcher loop forever with the given poll interval."""
        while True:
            await asyncio.to_thread(self.tick)
            await asyncio.sleep(poll_interval)
