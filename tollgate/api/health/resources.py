"""Health check resources for Kubernetes liveness and readiness checks.

Usage
-----
Register health endpoints on the Falcon app::

    from tollgate.api.health.resources import HealthResource, ReadyResource

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(registry))

"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from tollgate.contracts.registry import ContractRegistry

__all__ = ["HealthResource", "ReadyResource"]


class HealthResource:
    """Liveness resource returning ``{"status": "ok"}``."""

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /health requests."""
        resp.media = {"status": "ok"}
        resp.status = HTTPStatus.OK


class ReadyResource:
    """Readiness resource.

    Without a registry the process only serves health checks and is always ready.
    With one, traffic is accepted only after the first contract snapshot
    loaded; until then the endpoint answers 503.

    """

    def __init__(self, registry: ContractRegistry | None = None) -> None:
        """Store the registry whose load state gates readiness."""
        self._registry = registry

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /ready requests."""
        if self._registry is not None and not self._registry.is_loaded:
            resp.media = {"status": "loading", "reason": "contracts not loaded"}
            resp.status = HTTPStatus.SERVICE_UNAVAILABLE
            return
        media: dict[str, typ.Any] = {"status": "ready"}
        if self._registry is not None:
            media["contracts_fingerprint"] = self._registry.snapshot.fingerprint
        resp.media = media
        resp.status = HTTPStatus.OK
