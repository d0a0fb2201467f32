"""GitHub webhook intake.

``POST /webhooks/github`` authenticates the delivery, admits relevant pull
request events and returns 202 before any validation work starts.

Usage
-----
Register the resource on the Falcon app::

    app.add_route(
        "/webhooks/github",
        GitHubWebhookResource(authenticator=authenticator, orchestrator=orchestrator),
    )

"""

from __future__ import annotations

import typing as typ

import falcon

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from tollgate.dispatch.orchestrator import DispatchOrchestrator
    from tollgate.webhooks.authenticator import WebhookAuthenticator

__all__ = ["GitHubWebhookResource"]

IGNORED = "ignored"


class GitHubWebhookResource:
    """Resource receiving GitHub App webhook deliveries."""

    def __init__(
        self,
        *,
        authenticator: WebhookAuthenticator,
        orchestrator: DispatchOrchestrator,
    ) -> None:
        """Store the authenticator and orchestrator."""
        self._authenticator = authenticator
        self._orchestrator = orchestrator

    async def on_post(self, req: Request, resp: Response) -> None:
        """Handle POST /webhooks/github.

        Authentication failures propagate as ``AuthenticationError`` and are
        answered with 401 by the registered error handler.
        """
        body = await req.stream.read()
        delivery_id = req.get_header("X-GitHub-Delivery")
        event = self._authenticator.authenticate(
            body,
            signature=req.get_header("X-Hub-Signature-256"),
            event_name=req.get_header("X-GitHub-Event"),
            delivery_id=delivery_id,
        )

        resp.status = falcon.HTTP_202
        if event is None:
            resp.media = {"status": IGNORED, "delivery_id": delivery_id}
            return

        admission = await self._orchestrator.receive(event)
        resp.media = {
            "status": admission.decision.value,
            "delivery_id": delivery_id,
            "dispatch_key": str(admission.record.key),
        }
