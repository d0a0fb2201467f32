"""Contract registry administration.

``POST /contracts/reload`` rebuilds the registry from its source files. The
empty or arbitrary body is signed with the webhook secret so only holders of
that secret (typically the contracts repository's CI) can trigger a reload.

Usage
-----
Register the resource on the Falcon app::

    app.add_route(
        "/contracts/reload",
        ContractReloadResource(secret=config.webhook_secret, registry=registry),
    )

"""

from __future__ import annotations

import asyncio
import typing as typ

import falcon

from tollgate.webhooks.authenticator import verify_signature

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from tollgate.contracts.registry import ContractRegistry

__all__ = ["ContractReloadResource"]


class ContractReloadResource:
    """Resource swapping in a freshly loaded contract snapshot."""

    def __init__(self, *, secret: str, registry: ContractRegistry) -> None:
        """Store the signing secret and registry."""
        self._secret = secret
        self._registry = registry

    async def on_post(self, req: Request, resp: Response) -> None:
        """Handle POST /contracts/reload.

        A ``ResolutionError`` propagates to the 422 handler; the snapshot in
        service stays unchanged.
        """
        body = await req.stream.read()
        verify_signature(self._secret, body, req.get_header("X-Hub-Signature-256"))

        # File reads and YAML parsing block; keep them off the event loop.
        snapshot = await asyncio.to_thread(self._registry.reload)
        resp.status = falcon.HTTP_200
        resp.media = {
            "status": "reloaded",
            "contracts": len(snapshot.contracts),
            "producers": len(snapshot.mappings),
            "fingerprint": snapshot.fingerprint,
        }
